# marketplace/services/order_service.py
from datetime import datetime, timezone
from typing import Dict, Any
from sqlalchemy.orm import Session

from marketplace.data.models.order import OrderModel
from marketplace.domain.errors import DomainError, IllegalTransition, NotFound, ValidationFailed
from marketplace.domain.states import (
    CUSTOMER_CANCELLABLE_ITEM,
    CUSTOMER_CANCELLABLE_ORDER,
    OrderStatus,
    PaymentStatus,
    values,
)
from marketplace.repos.order_repo import OrderRepo
from marketplace.repos.payment_repo import PaymentRepo
from marketplace.services.inventory_ledger import InventoryLedger
from marketplace.services.notification_service import NotificationEmitter
from marketplace.services.vendor_balance import DbVendorBalance, VendorBalance, vendor_net_amounts
from marketplace.services.vendor_state_machine import VendorOrderStateMachine
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


def serialize_tracking(tracking) -> Dict[str, Any]:
    return {
        "id": tracking.id,
        "order_item_id": tracking.order_item_id,
        "carrier": tracking.carrier,
        "tracking_number": tracking.tracking_number,
        "tracking_url": tracking.tracking_url,
        "status": tracking.status,
        "status_details": tracking.status_details,
        "estimated_delivery": tracking.estimated_delivery,
        "created_at": tracking.created_at,
    }


def serialize_item(item) -> Dict[str, Any]:
    return {
        "id": item.id,
        "vendor_id": item.vendor_id,
        "product_id": item.product_id,
        "variant_id": item.variant_id,
        "product_name": item.product_name,
        "variant_name": item.variant_name,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "subtotal": item.subtotal,
        "status": item.status,
    }


class OrderService:
    """
    Serwis odpowiedzialny za zamowienia klienta.
    - get_order: zamowienie + pozycje + platnosc + tracking
    - cancel_order: anulowanie przed realizacja, zwrot stanow magazynowych
    """

    def __init__(
        self,
        db: Session,
        balance: VendorBalance | None = None,
        notifier: NotificationEmitter | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.payment_repo = PaymentRepo(db)
        self.balance = balance or DbVendorBalance(db)
        self.notifier = notifier or NotificationEmitter(db)
        self.state_machine = VendorOrderStateMachine(db, InventoryLedger(db), self.notifier)

    def get_order(self, order_id: int, user_id: int) -> Dict[str, Any]:
        """
        Use Case: Pobranie zamowienia (Query).
        """
        order = self._owned_order(order_id, user_id)
        payment = self.payment_repo.get_by_order(order_id)

        return {
            "id": order.id,
            "order_number": order.order_number,
            "user_id": order.user_id,
            "status": order.status,
            "payment_status": order.payment_status,
            "subtotal": order.subtotal,
            "tax": order.tax,
            "shipping_cost": order.shipping_cost,
            "discount": order.discount,
            "total": order.total,
            "currency": order.currency,
            "shipping_method": order.shipping_method,
            "shipping_address": order.shipping_address,
            "billing_address": order.billing_address,
            "notes": order.notes,
            "created_at": order.created_at,
            "paid_at": order.paid_at,
            "shipped_at": order.shipped_at,
            "delivered_at": order.delivered_at,
            "cancelled_at": order.cancelled_at,
            "items": [serialize_item(item) for item in self.repo.get_items(order_id)],
            "payment": {
                "status": payment.status,
                "amount": payment.amount,
                "currency": payment.currency,
                "failure_reason": payment.failure_reason,
            } if payment else None,
            "tracking": [serialize_tracking(t) for t in self.repo.get_tracking_for_order(order_id)],
        }

    def apply_action(self, order_id: int, user_id: int, action: str) -> Dict[str, Any]:
        if action != "cancel":
            raise ValidationFailed("Invalid action", action=action)
        return self.cancel_order(order_id, user_id)

    def cancel_order(self, order_id: int, user_id: int) -> Dict[str, Any]:
        """
        Use Case: Anulowanie zamowienia przez klienta.

        1. Zamowienie i wszystkie pozycje musza byc przed realizacja
        2. Pozycje -> cancelled (warunkowo, wyscig z vendorem = IllegalTransition)
        3. Zwrot stanow magazynowych
        4. Zamowienie -> cancelled
        """
        order = self._owned_order(order_id, user_id)
        current = order.status
        was_paid = order.payment_status == PaymentStatus.PAID.value

        if OrderStatus(current) not in CUSTOMER_CANCELLABLE_ORDER:
            raise IllegalTransition(current, OrderStatus.CANCELLED.value, [])

        now = datetime.now(timezone.utc)
        try:
            cancelled = self.state_machine.cancel_items(order_id, values(CUSTOMER_CANCELLABLE_ITEM), now)

            rowcount = self.repo.update_order(
                order_id,
                values(CUSTOMER_CANCELLABLE_ORDER),
                status=OrderStatus.CANCELLED.value,
                cancelled_at=now,
                updated_at=now,
            )
            if rowcount == 0:
                fresh = self.repo.get_order(order_id)
                raise IllegalTransition(fresh.status, OrderStatus.CANCELLED.value, [])

            #vendor dostal juz srodki za oplacone pozycje
            if was_paid:
                for vendor_id, amount in vendor_net_amounts(cancelled).items():
                    self.balance.credit(vendor_id, -amount)

            order = self.repo.get_order(order_id)
            self.notifier.enqueue(
                user_id=user_id,
                type="order",
                title="Order Cancelled",
                message=f"Your order #{order.order_number} has been cancelled.",
                link=f"/dashboard/orders/{order_id}",
                data={"order_id": order_id, "order_number": order.order_number},
            )
            self.db.commit()
        except DomainError:
            self._rollback()
            raise
        except Exception:
            self._rollback()
            logger.exception(f"Cancelling order {order_id} failed")
            raise

        self.notifier.dispatch_pending()
        logger.info(f"Order {order_id} cancelled by user {user_id}, {len(cancelled)} item(s) restocked")
        if was_paid:
            #platnosc zostaje 'paid', zwrot robi operator / webhook charge.refunded
            logger.warning(f"Paid order {order_id} cancelled by customer, needs refund")
        return self.get_order(order_id, user_id)

    def _rollback(self):
        self.db.rollback()
        self.notifier.discard_pending()

    def _owned_order(self, order_id: int, user_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)

        if not order:
            raise NotFound("Order not found")

        if order.user_id != user_id:
            raise PermissionError("Access to order denied")

        return order
