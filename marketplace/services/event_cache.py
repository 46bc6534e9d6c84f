# marketplace/services/event_cache.py
import redis
from redis.exceptions import RedisError

from marketplace.utils.retry import redis_retry
from marketplace.utils.settings import REDIS_URL, PROCESSED_EVENT_TTL_SECONDS
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


class ProcessedEventCache:
    """
    -zapamietuje id eventow providera ktore zostaly juz zacommitowane
    -ponowne dostarczenie tego samego eventu konczy sie od razu 200
    -to tylko skrot, o poprawnosci decyduja warunki na statusach w bazie
    """

    def __init__(self, url: str | None = None, ttl: int = PROCESSED_EVENT_TTL_SECONDS):
        self.redis = redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )
        self.ttl = ttl

    @staticmethod
    def _key(event_id: str) -> str:
        return f"webhook:event:{event_id}"

    @redis_retry()
    def _exists(self, key: str) -> bool:
        return bool(self.redis.exists(key))

    @redis_retry()
    def _set(self, key: str) -> bool:
        #SET webhook:event:evt_1 "1" NX EX 604800
        return bool(self.redis.set(name=key, value="1", nx=True, ex=self.ttl))

    def was_processed(self, event_id: str | None) -> bool:
        if not event_id:
            return False
        try:
            return self._exists(self._key(event_id))
        except RedisError as e:
            #redis nie dziala - przetwarzamy normalnie, preconditions i tak chronia stan
            logger.warning(f"Processed-event lookup failed for {event_id}: {e}")
            return False

    def mark_processed(self, event_id: str | None):
        if not event_id:
            return
        try:
            self._set(self._key(event_id))
        except RedisError as e:
            logger.warning(f"Failed to mark event {event_id} as processed: {e}")
