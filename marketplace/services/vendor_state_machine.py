# marketplace/services/vendor_state_machine.py
from datetime import datetime, timezone
from sqlalchemy.orm import Session

from marketplace.data.models.order import OrderItemModel
from marketplace.data.models.tracking import OrderTrackingModel
from marketplace.domain.errors import Conflict, IllegalTransition
from marketplace.domain.states import (
    OrderItemStatus,
    OrderStatus,
    TERMINAL_ITEM_STATUSES,
    TERMINAL_ORDER_STATUSES,
    TRACKING_AUTO_SHIP_FROM,
    VENDOR_TRANSITIONS,
    values,
)
from marketplace.repos.order_repo import OrderRepo
from marketplace.services.inventory_ledger import InventoryLedger
from marketplace.services.notification_service import NotificationEmitter
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)

_DEAD_ITEM_STATUSES = (OrderItemStatus.CANCELLED.value, OrderItemStatus.REFUNDED.value)
_SHIPPED_OR_LATER = (OrderItemStatus.SHIPPED.value, OrderItemStatus.DELIVERED.value)


def allowed_targets(current: str) -> list[str]:
    try:
        return values(VENDOR_TRANSITIONS[OrderItemStatus(current)])
    except ValueError:
        return []


def check_vendor_transition(current: str, target: str):
    allowed = allowed_targets(current)
    if target not in allowed:
        raise IllegalTransition(current, target, allowed)


class VendorOrderStateMachine:
    """
    Statusy pozycji zamowienia (per vendor).

    Vendor: tylko przejscia z VENDOR_TRANSITIONS + auto-shipped przy trackingu.
    System (anulowanie klienta, refund z webhooka): cancel/refund + zwrot stanu magazynu.

    Kazde przejscie to UPDATE z warunkiem na aktualny status - kto pierwszy
    zacommituje wygrywa, drugi dostaje IllegalTransition.
    Commit robi wolajacy.
    """

    def __init__(
        self,
        db: Session,
        ledger: InventoryLedger | None = None,
        notifier: NotificationEmitter | None = None,
    ):
        self.repo = OrderRepo(db)
        self.ledger = ledger or InventoryLedger(db)
        self.notifier = notifier or NotificationEmitter(db)

    #vendor
    def vendor_transition(self, item: OrderItemModel, target: str) -> OrderItemModel:
        current = item.status
        item_id, order_id = item.id, item.order_id

        check_vendor_transition(current, target)

        now = datetime.now(timezone.utc)
        rowcount = self.repo.update_item_status(item_id, [current], target, now)
        if rowcount == 0:
            #status zmienil sie miedzy odczytem a zapisem
            fresh = self.repo.get_item(item_id)
            raise IllegalTransition(fresh.status, target, allowed_targets(fresh.status))

        logger.info(f"Order item {item_id}: {current} -> {target}")
        self._roll_up(order_id, now)

        order = self.repo.get_order(order_id)
        self.notifier.enqueue(
            user_id=order.user_id,
            type="order",
            title="Order Status Updated",
            message=f"Your order #{order.order_number} has been updated to {target}",
            link=f"/dashboard/orders/{order_id}",
            data={"order_id": order_id, "order_item_id": item_id, "new_status": target},
        )
        return self.repo.get_item(item_id)

    def add_tracking(
        self,
        item: OrderItemModel,
        carrier: str,
        tracking_number: str,
        tracking_url: str | None = None,
        status: str | None = None,
        status_details: str | None = None,
        estimated_delivery: str | None = None,
    ) -> tuple[OrderTrackingModel, str]:
        current = item.status
        item_id, order_id = item.id, item.order_id

        if current in _DEAD_ITEM_STATUSES:
            raise Conflict("Cannot add tracking to cancelled or refunded orders", status=current)

        tracking = self.repo.add_tracking(
            OrderTrackingModel(
                order_id=order_id,
                order_item_id=item_id,
                carrier=carrier,
                tracking_number=tracking_number,
                tracking_url=tracking_url or None,
                status=status or "in_transit",
                status_details=status_details,
                estimated_delivery=estimated_delivery,
            )
        )

        new_status = current
        now = datetime.now(timezone.utc)

        #tracking = paczka wyszla, auto przejscie na shipped
        if OrderItemStatus(current) in TRACKING_AUTO_SHIP_FROM:
            rowcount = self.repo.update_item_status(item_id, [current], OrderItemStatus.SHIPPED.value, now)
            if rowcount == 0:
                fresh = self.repo.get_item(item_id)
                raise IllegalTransition(fresh.status, OrderItemStatus.SHIPPED.value, allowed_targets(fresh.status))
            new_status = OrderItemStatus.SHIPPED.value
            logger.info(f"Order item {item_id}: {current} -> shipped (tracking added)")
            self._roll_up(order_id, now)

        order = self.repo.get_order(order_id)
        self.notifier.enqueue(
            user_id=order.user_id,
            type="order",
            title="Shipment Update",
            message=(
                f"Your order #{order.order_number} has been shipped via {carrier}. "
                f"Tracking: {tracking_number}"
            ),
            link=f"/dashboard/orders/{order_id}",
            data={
                "order_id": order_id,
                "order_item_id": item_id,
                "carrier": carrier,
                "tracking_number": tracking_number,
                "tracking_url": tracking_url or None,
            },
        )
        return tracking, new_status

    #system: anulowanie klienta / refund
    def cancel_items(self, order_id: int, from_statuses: list[str], now: datetime) -> list[OrderItemModel]:
        return self._release_items(order_id, from_statuses, OrderItemStatus.CANCELLED.value, now, strict=True)

    def refund_items(self, order_id: int, now: datetime) -> list[OrderItemModel]:
        live = [s for s in values(OrderItemStatus) if OrderItemStatus(s) not in TERMINAL_ITEM_STATUSES]
        return self._release_items(order_id, live, OrderItemStatus.REFUNDED.value, now, strict=False)

    def _release_items(
        self,
        order_id: int,
        from_statuses: list[str],
        to_status: str,
        now: datetime,
        strict: bool,
    ) -> list[OrderItemModel]:
        items = self.repo.get_items(order_id)
        lines = [(i.id, i.status, i.product_id, i.variant_id, i.quantity) for i in items]
        moved = []

        for item_id, current, product_id, variant_id, quantity in lines:
            if current not in from_statuses:
                if strict and current not in _DEAD_ITEM_STATUSES:
                    raise IllegalTransition(current, to_status, [])
                continue

            rowcount = self.repo.update_item_status(item_id, [current], to_status, now)
            if rowcount == 0:
                #vendor zmienil status w miedzyczasie
                fresh = self.repo.get_item(item_id)
                if strict:
                    raise IllegalTransition(fresh.status, to_status, [])
                logger.info(f"Order item {item_id} moved to {fresh.status} concurrently, skipped")
                continue

            #anulowanie / zwrot oddaje ilosc do magazynu
            self.ledger.release(product_id, variant_id, quantity)
            logger.info(f"Order item {item_id}: {current} -> {to_status}, restored {quantity}")
            moved.append(item_id)

        return [self.repo.get_item(item_id) for item_id in moved]

    def _roll_up(self, order_id: int, now: datetime):
        """
        Status zamowienia wynika z pozycji:
        wszystkie zywe pozycje shipped+ -> shipped, wszystkie delivered -> delivered.
        """
        order = self.repo.get_order(order_id)
        if OrderStatus(order.status) in TERMINAL_ORDER_STATUSES:
            return

        live = [i.status for i in self.repo.get_items(order_id) if i.status not in _DEAD_ITEM_STATUSES]
        if not live:
            return

        if all(s == OrderItemStatus.DELIVERED.value for s in live):
            self.repo.update_order(
                order_id,
                [OrderStatus.CONFIRMED.value, OrderStatus.SHIPPED.value],
                status=OrderStatus.DELIVERED.value,
                shipped_at=order.shipped_at or now,
                delivered_at=now,
                updated_at=now,
            )
            logger.info(f"Order {order_id} delivered")
        elif all(s in _SHIPPED_OR_LATER for s in live) and order.status == OrderStatus.CONFIRMED.value:
            self.repo.update_order(
                order_id,
                [OrderStatus.CONFIRMED.value],
                status=OrderStatus.SHIPPED.value,
                shipped_at=now,
                updated_at=now,
            )
            logger.info(f"Order {order_id} shipped")
