# marketplace/services/vendor_order_service.py
import math
from typing import Dict, Any
from sqlalchemy.orm import Session

from marketplace.data.models.order import OrderItemModel, OrderModel
from marketplace.data.models.vendor import VendorModel
from marketplace.domain.errors import DomainError, NotFound, ValidationFailed
from marketplace.domain.states import OrderItemStatus, values
from marketplace.repos.order_repo import OrderRepo
from marketplace.repos.vendor_repo import VendorRepo
from marketplace.services.inventory_ledger import InventoryLedger
from marketplace.services.notification_service import NotificationEmitter
from marketplace.services.order_service import serialize_tracking
from marketplace.services.vendor_state_machine import VendorOrderStateMachine, allowed_targets
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)

MAX_PER_PAGE = 100


def serialize_vendor_item(item: OrderItemModel, order: OrderModel) -> Dict[str, Any]:
    return {
        "id": item.id,
        "order_id": item.order_id,
        "order_number": order.order_number,
        "product_id": item.product_id,
        "product_name": item.product_name,
        "variant_id": item.variant_id,
        "variant_name": item.variant_name,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "subtotal": item.subtotal,
        "commission_amount": item.commission_amount,
        "status": item.status,
        "allowed_transitions": allowed_targets(item.status),
        "shipping_address": order.shipping_address,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
        "order_created_at": order.created_at,
    }


class VendorOrderService:
    """
    Widok vendora na jego pozycje zamowien + akcje (status, tracking).
    Vendor widzi tylko swoje pozycje, obce = 404.
    """

    def __init__(self, db: Session, notifier: NotificationEmitter | None = None):
        self.db = db
        self.repo = OrderRepo(db)
        self.vendor_repo = VendorRepo(db)
        self.notifier = notifier or NotificationEmitter(db)
        self.state_machine = VendorOrderStateMachine(db, InventoryLedger(db), self.notifier)

    #query
    def list_orders(
        self,
        user_id: int,
        status: str | None = None,
        search: str | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> Dict[str, Any]:
        vendor = self._vendor(user_id)

        if status == "all":
            status = None
        if status and status not in values(OrderItemStatus):
            raise ValidationFailed("Invalid filter parameters", status=status)
        if page < 1 or per_page < 1 or per_page > MAX_PER_PAGE:
            raise ValidationFailed("Invalid filter parameters", page=page, per_page=per_page)

        rows, total = self.repo.list_vendor_items(
            vendor.id, status, search, offset=(page - 1) * per_page, limit=per_page
        )

        counts = self.repo.vendor_status_counts(vendor.id)
        stats = {s: counts.get(s, 0) for s in values(OrderItemStatus)}

        return {
            "orders": [serialize_vendor_item(item, order) for item, order in rows],
            "pagination": {
                "page": page,
                "per_page": per_page,
                "total": total,
                "total_pages": math.ceil(total / per_page),
            },
            "stats": stats,
        }

    def get_order(self, user_id: int, item_id: int) -> Dict[str, Any]:
        item = self._owned_item(user_id, item_id)
        order = self.repo.get_order(item.order_id)

        data = serialize_vendor_item(item, order)
        data["tracking"] = [serialize_tracking(t) for t in self.repo.get_tracking_for_item(item_id)]
        return data

    def get_tracking(self, user_id: int, item_id: int) -> list[Dict[str, Any]]:
        self._owned_item(user_id, item_id)
        return [serialize_tracking(t) for t in self.repo.get_tracking_for_item(item_id)]

    #commands
    def update_status(self, user_id: int, item_id: int, target: str) -> Dict[str, Any]:
        item = self._owned_item(user_id, item_id)

        self._run(lambda: self.state_machine.vendor_transition(item, target))

        logger.info(f"Vendor user {user_id} moved order item {item_id} to {target}")
        return self.get_order(user_id, item_id)

    def add_tracking(
        self,
        user_id: int,
        item_id: int,
        carrier: str,
        tracking_number: str,
        tracking_url: str | None = None,
        status: str | None = None,
        status_details: str | None = None,
        estimated_delivery: str | None = None,
    ) -> Dict[str, Any]:
        item = self._owned_item(user_id, item_id)

        tracking, new_status = self._run(
            lambda: self.state_machine.add_tracking(
                item,
                carrier=carrier,
                tracking_number=tracking_number,
                tracking_url=tracking_url,
                status=status,
                status_details=status_details,
                estimated_delivery=estimated_delivery,
            )
        )

        logger.info(f"Tracking {carrier} {tracking_number} added to order item {item_id}")
        return {
            "tracking": serialize_tracking(tracking),
            "order_item_status": new_status,
        }

    def _run(self, action):
        """Akcja state machine w jednej transakcji, powiadomienia po commicie."""
        try:
            result = action()
            self.db.commit()
        except DomainError:
            self._rollback()
            raise
        except Exception:
            self._rollback()
            logger.exception("Vendor order action failed")
            raise

        self.notifier.dispatch_pending()
        return result

    def _rollback(self):
        self.db.rollback()
        self.notifier.discard_pending()

    def _vendor(self, user_id: int) -> VendorModel:
        vendor = self.vendor_repo.get_by_user(user_id)
        if not vendor:
            raise PermissionError("Vendor profile not found")
        return vendor

    def _owned_item(self, user_id: int, item_id: int) -> OrderItemModel:
        vendor = self._vendor(user_id)
        item = self.repo.get_item(item_id)
        if not item or item.vendor_id != vendor.id:
            raise NotFound("Order not found")
        return item
