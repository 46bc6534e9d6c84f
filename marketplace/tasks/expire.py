# marketplace/tasks/expire.py
from datetime import datetime, timedelta, timezone
from sqlalchemy.orm import Session

from marketplace.celery_worker import celery_app
from marketplace.data.database import SessionLocal
from marketplace.domain.errors import DomainError
from marketplace.domain.states import CUSTOMER_CANCELLABLE_ITEM, OrderStatus, PaymentStatus, values
from marketplace.repos.order_repo import OrderRepo
from marketplace.services.notification_service import NotificationEmitter
from marketplace.services.vendor_state_machine import VendorOrderStateMachine
from marketplace.utils.settings import ORDER_PAYMENT_TTL_SECONDS
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)

_UNPAID = [PaymentStatus.PENDING.value, PaymentStatus.FAILED.value]


def expire_unpaid_orders(db: Session, now: datetime | None = None, ttl_seconds: int = ORDER_PAYMENT_TTL_SECONDS) -> int:
    """
    Anuluje zamowienia ktore nie zostaly oplacone w ciagu ttl_seconds.
    Stan magazynowy zarezerwowany przy checkoucie wraca.
    Kazde zamowienie w osobnej transakcji, blad jednego nie blokuje reszty.
    """
    now = now or datetime.now(timezone.utc)
    repo = OrderRepo(db)

    stale = [order.id for order in repo.list_stale_unpaid(now - timedelta(seconds=ttl_seconds), _UNPAID)]
    logger.info(f"Found {len(stale)} unpaid orders to expire")

    expired = 0
    for order_id in stale:
        notifier = NotificationEmitter(db)
        state_machine = VendorOrderStateMachine(db, notifier=notifier)
        try:
            #warunek na payment_status - webhook mogl przyjsc w miedzyczasie
            rowcount = repo.update_order(
                order_id,
                [OrderStatus.PENDING.value],
                payment_statuses=_UNPAID,
                status=OrderStatus.CANCELLED.value,
                cancelled_at=now,
                updated_at=now,
            )
            if rowcount == 0:
                db.rollback()
                logger.info(f"Order {order_id} changed concurrently, not expired")
                continue

            state_machine.cancel_items(order_id, values(CUSTOMER_CANCELLABLE_ITEM), now)
            order = repo.get_order(order_id)

            notifier.enqueue(
                user_id=order.user_id,
                type="order",
                title="Order Cancelled",
                message=f"Your order #{order.order_number} was cancelled because payment was not completed.",
                link=f"/dashboard/orders/{order_id}",
                data={"order_id": order_id, "order_number": order.order_number},
            )
            db.commit()
        except DomainError as e:
            db.rollback()
            notifier.discard_pending()
            logger.warning(f"Order {order_id} not expired: {e}")
            continue
        except Exception:
            db.rollback()
            notifier.discard_pending()
            logger.exception(f"Expiring order {order_id} failed")
            continue

        notifier.dispatch_pending()
        expired += 1
        logger.info(f"Order {order_id} expired, inventory restored")

    return expired


@celery_app.task(name="marketplace.tasks.expire.expire_unpaid_orders_task")
def expire_unpaid_orders_task():
    logger.info("Expire unpaid orders task started")

    db = SessionLocal()
    try:
        return expire_unpaid_orders(db)
    finally:
        db.close()
