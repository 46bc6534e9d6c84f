# marketplace/api/deps.py
from functools import lru_cache

from marketplace.services.event_cache import ProcessedEventCache
from marketplace.services.payment_gateway import PaymentGatewayAdapter


#jedna instancja na proces, w testach podmieniane przez dependency_overrides
@lru_cache
def get_gateway() -> PaymentGatewayAdapter:
    return PaymentGatewayAdapter()


@lru_cache
def get_event_cache() -> ProcessedEventCache:
    return ProcessedEventCache()
