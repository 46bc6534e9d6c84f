# marketplace/services/webhook_reconciler.py
from dataclasses import dataclass
from datetime import datetime, timezone
from sqlalchemy.orm import Session

from marketplace.domain.states import (
    OrderItemStatus,
    OrderStatus,
    PaymentEventKind,
    PaymentStatus,
    PAYMENT_EVENT_PRECONDITIONS,
    TERMINAL_ORDER_STATUSES,
    values,
)
from marketplace.repos.order_repo import OrderRepo
from marketplace.repos.payment_repo import PaymentRepo
from marketplace.services.inventory_ledger import InventoryLedger
from marketplace.services.notification_service import NotificationEmitter
from marketplace.services.payment_gateway import NormalizedEvent
from marketplace.services.vendor_balance import DbVendorBalance, VendorBalance, vendor_net_amounts
from marketplace.services.vendor_state_machine import VendorOrderStateMachine
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)

APPLIED = "applied"
SKIPPED = "skipped"
UNKNOWN_INTENT = "unknown_intent"
IGNORED = "ignored"

_DEAD_ITEM_STATUSES = (OrderItemStatus.CANCELLED.value, OrderItemStatus.REFUNDED.value)


@dataclass(frozen=True)
class ReconcileOutcome:
    result: str
    kind: PaymentEventKind
    intent_id: str | None = None
    order_id: int | None = None


class WebhookReconciler:
    """
    Eventy platnosci -> stan Payment / Order / OrderItem.

    Kazdy event to UPDATE z warunkiem na aktualny Payment.status
    (PAYMENT_EVENT_PRECONDITIONS). rowcount 0 = duplikat albo event spozniony -> no-op.
    Kolejnosc i ilosc dostarczen nie ma znaczenia.

    Jedna transakcja na event, blad -> rollback i wyjatek dalej (provider ponowi).
    """

    def __init__(
        self,
        db: Session,
        balance: VendorBalance | None = None,
        notifier: NotificationEmitter | None = None,
        ledger: InventoryLedger | None = None,
    ):
        self.db = db
        self.payment_repo = PaymentRepo(db)
        self.order_repo = OrderRepo(db)
        self.balance = balance or DbVendorBalance(db)
        self.notifier = notifier or NotificationEmitter(db)
        self.state_machine = VendorOrderStateMachine(db, ledger=ledger, notifier=self.notifier)

    def apply(self, event: NormalizedEvent) -> ReconcileOutcome:
        if event.kind == PaymentEventKind.UNRECOGNIZED:
            logger.info(f"Unhandled event type: {event.raw_type} ({event.event_id})")
            return ReconcileOutcome(IGNORED, event.kind)

        if not event.intent_id:
            logger.warning(f"Event {event.event_id} ({event.raw_type}) has no payment intent, ignored")
            return ReconcileOutcome(IGNORED, event.kind)

        handlers = {
            PaymentEventKind.PAYMENT_SUCCEEDED: self._payment_succeeded,
            PaymentEventKind.PAYMENT_FAILED: self._payment_failed,
            PaymentEventKind.CHARGE_REFUNDED: self._charge_refunded,
        }

        try:
            outcome = handlers[event.kind](event)
            self.db.commit()
        except Exception:
            self.db.rollback()
            self.notifier.discard_pending()
            logger.exception(f"Webhook handler failed for {event.raw_type} ({event.event_id})")
            raise

        self.notifier.dispatch_pending()
        return outcome

    def _find_payment(self, event: NormalizedEvent):
        payment = self.payment_repo.get_by_intent(event.intent_id)
        if payment is None:
            #np. intent utworzony ale checkout nie doszedl do skutku
            logger.warning(f"No payment for intent {event.intent_id} ({event.raw_type}), acknowledged")
        return payment

    def _transition_payment(self, event: NormalizedEvent, to_status: PaymentStatus, now: datetime, **values_) -> bool:
        preconditions = values(PAYMENT_EVENT_PRECONDITIONS[event.kind])
        rowcount = self.payment_repo.transition(
            event.intent_id, preconditions, to_status.value, updated_at=now, **values_
        )
        if rowcount == 0:
            logger.info(
                f"Duplicate or stale {event.raw_type} for intent {event.intent_id} "
                f"({event.event_id}), no-op"
            )
            return False
        return True

    def _payment_succeeded(self, event: NormalizedEvent) -> ReconcileOutcome:
        payment = self._find_payment(event)
        if payment is None:
            return ReconcileOutcome(UNKNOWN_INTENT, event.kind, event.intent_id)
        order_id = payment.order_id

        now = datetime.now(timezone.utc)
        if not self._transition_payment(event, PaymentStatus.PAID, now, failure_reason=None):
            return ReconcileOutcome(SKIPPED, event.kind, event.intent_id, order_id)

        confirmed = self.order_repo.update_order(
            order_id,
            [OrderStatus.PENDING.value],
            status=OrderStatus.CONFIRMED.value,
            payment_status=PaymentStatus.PAID.value,
            paid_at=now,
            updated_at=now,
        )
        if confirmed:
            self.order_repo.update_items_status(
                order_id, [OrderItemStatus.PENDING.value], OrderItemStatus.CONFIRMED.value, now
            )
        else:
            #zamowienie juz anulowane (np. wygasle) - zapisujemy tylko fakt platnosci
            self.order_repo.update_order(
                order_id, None, payment_status=PaymentStatus.PAID.value, paid_at=now, updated_at=now
            )

        order = self.order_repo.get_order(order_id)
        if order.status == OrderStatus.CANCELLED.value:
            logger.warning(f"Payment {event.intent_id} succeeded for cancelled order {order_id}, needs refund")

        #tylko zywe pozycje, anulowane juz oddaly towar
        live = [i for i in self.order_repo.get_items(order_id) if i.status not in _DEAD_ITEM_STATUSES]
        for vendor_id, amount in vendor_net_amounts(live).items():
            self.balance.credit(vendor_id, amount)

        logger.info(f"Payment {event.intent_id} succeeded, order {order_id} -> {order.status}")

        self.notifier.enqueue(
            user_id=order.user_id,
            type="order",
            title="Order Confirmed",
            message=f"Your order #{order.order_number} has been confirmed. Total: ${order.total}",
            link=f"/dashboard/orders/{order_id}",
            data={"order_id": order_id, "order_number": order.order_number},
        )
        return ReconcileOutcome(APPLIED, event.kind, event.intent_id, order_id)

    def _payment_failed(self, event: NormalizedEvent) -> ReconcileOutcome:
        payment = self._find_payment(event)
        if payment is None:
            return ReconcileOutcome(UNKNOWN_INTENT, event.kind, event.intent_id)
        order_id = payment.order_id

        now = datetime.now(timezone.utc)
        reason = event.failure_message or "Payment failed"
        if not self._transition_payment(event, PaymentStatus.FAILED, now, failure_reason=reason):
            return ReconcileOutcome(SKIPPED, event.kind, event.intent_id, order_id)

        #status zamowienia bez zmian, klient moze ponowic platnosc
        self.order_repo.update_order(
            order_id, None, payment_status=PaymentStatus.FAILED.value, updated_at=now
        )

        order = self.order_repo.get_order(order_id)
        logger.info(f"Payment {event.intent_id} failed for order {order_id}: {reason}")

        self.notifier.enqueue(
            user_id=order.user_id,
            type="payment",
            title="Payment Failed",
            message=f"Payment for order #{order.order_number} failed. Please try again.",
            link=f"/dashboard/orders/{order_id}",
            data={"order_id": order_id, "order_number": order.order_number, "reason": reason},
        )
        return ReconcileOutcome(APPLIED, event.kind, event.intent_id, order_id)

    def _charge_refunded(self, event: NormalizedEvent) -> ReconcileOutcome:
        payment = self._find_payment(event)
        if payment is None:
            return ReconcileOutcome(UNKNOWN_INTENT, event.kind, event.intent_id)
        order_id = payment.order_id
        was_paid = payment.status == PaymentStatus.PAID.value

        now = datetime.now(timezone.utc)
        if not self._transition_payment(event, PaymentStatus.REFUNDED, now):
            return ReconcileOutcome(SKIPPED, event.kind, event.intent_id, order_id)

        order = self.order_repo.get_order(order_id)
        if OrderStatus(order.status) in TERMINAL_ORDER_STATUSES:
            #anulowane/dostarczone zostaje, zmienia sie tylko platnosc
            self.order_repo.update_order(
                order_id, None, payment_status=PaymentStatus.REFUNDED.value, updated_at=now
            )
        else:
            self.order_repo.update_order(
                order_id,
                [s.value for s in OrderStatus if s not in TERMINAL_ORDER_STATUSES],
                status=OrderStatus.REFUNDED.value,
                payment_status=PaymentStatus.REFUNDED.value,
                updated_at=now,
            )

        refunded = self.state_machine.refund_items(order_id, now)

        if was_paid:
            for vendor_id, amount in vendor_net_amounts(refunded).items():
                self.balance.credit(vendor_id, -amount)

        order = self.order_repo.get_order(order_id)
        logger.info(
            f"Charge refunded for intent {event.intent_id}, order {order_id} -> {order.status}, "
            f"{len(refunded)} item(s) refunded"
        )

        self.notifier.enqueue(
            user_id=order.user_id,
            type="payment",
            title="Order Refunded",
            message=f"Your order #{order.order_number} has been refunded.",
            link=f"/dashboard/orders/{order_id}",
            data={"order_id": order_id, "order_number": order.order_number},
        )
        return ReconcileOutcome(APPLIED, event.kind, event.intent_id, order_id)
