# marketplace/api/routers/webhooks.py
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from marketplace.api.deps import get_event_cache, get_gateway
from marketplace.data.database import get_db
from marketplace.domain.errors import DomainError
from marketplace.domain.schemas import WebhookAck
from marketplace.services.event_cache import ProcessedEventCache
from marketplace.services.payment_gateway import NormalizedEvent, PaymentGatewayAdapter
from marketplace.services.webhook_reconciler import APPLIED, SKIPPED, WebhookReconciler
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _reconcile(db: Session, cache: ProcessedEventCache, event: NormalizedEvent):
    if cache.was_processed(event.event_id):
        logger.info(f"Event {event.event_id} already processed, skipping")
        return

    outcome = WebhookReconciler(db).apply(event)

    #zapamietujemy tylko eventy ktorych efekt jest juz w bazie
    if outcome.result in (APPLIED, SKIPPED):
        cache.mark_processed(event.event_id)


@router.post("/payments", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    stripe_signature: str | None = Header(None),
    db: Session = Depends(get_db),
    gateway: PaymentGatewayAdapter = Depends(get_gateway),
    cache: ProcessedEventCache = Depends(get_event_cache),
):
    """
    Webhook providera platnosci.
    200 dla wszystkiego co przeszlo weryfikacje podpisu (takze duplikaty i nieznane typy),
    400 zly podpis, 500 blad wewnetrzny - provider ponowi.
    """
    # WAŻNE: podpis liczony z surowego body
    raw_body = await request.body()

    try:
        event = gateway.verify_and_parse(raw_body, stripe_signature)
    except DomainError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    except RuntimeError as e:
        logger.error(f"Webhook rejected: {e}")
        raise HTTPException(status_code=500, detail="Webhook secret not configured")

    try:
        await run_in_threadpool(_reconcile, db, cache, event)
    except Exception:
        #szczegoly zalogowal reconciler
        raise HTTPException(status_code=500, detail="Webhook handler failed")

    return {"received": True}
