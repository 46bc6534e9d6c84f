# marketplace/repos/order_repo.py
from datetime import datetime
from sqlalchemy import select, update, func

from marketplace.data.models.order import OrderModel, OrderItemModel
from marketplace.data.models.tracking import OrderTrackingModel
from marketplace.repos.base import BaseRepo


class OrderRepo(BaseRepo):

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        #flush od razu, konflikt order_number wychodzi tutaj
        self.db.flush()
        return order

    def add_items(self, items: list[OrderItemModel]):
        self.db.add_all(items)
        self.db.flush()

    def number_exists(self, order_number: str) -> bool:
        stmt = select(OrderModel.id).where(OrderModel.order_number == order_number)
        return self.db.execute(stmt).first() is not None

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def get_items(self, order_id: int) -> list[OrderItemModel]:
        stmt = select(OrderItemModel).where(OrderItemModel.order_id == order_id).order_by(OrderItemModel.id)
        return list(self.db.execute(stmt).scalars().all())

    def get_item(self, item_id: int) -> OrderItemModel | None:
        return self.db.get(OrderItemModel, item_id)

    def update_order(
        self,
        order_id: int,
        from_statuses: list[str] | None,
        payment_statuses: list[str] | None = None,
        **values,
    ) -> int:
        stmt = update(OrderModel).where(OrderModel.id == order_id)
        if from_statuses is not None:
            stmt = stmt.where(OrderModel.status.in_(from_statuses))
        if payment_statuses is not None:
            stmt = stmt.where(OrderModel.payment_status.in_(payment_statuses))
        return self.conditional_update(stmt.values(**values))

    def update_item_status(self, item_id: int, from_statuses: list[str], to_status: str, now: datetime) -> int:
        stmt = (
            update(OrderItemModel)
            .where(OrderItemModel.id == item_id, OrderItemModel.status.in_(from_statuses))
            .values(status=to_status, updated_at=now)
        )
        return self.conditional_update(stmt)

    def update_items_status(self, order_id: int, from_statuses: list[str], to_status: str, now: datetime) -> int:
        stmt = (
            update(OrderItemModel)
            .where(OrderItemModel.order_id == order_id, OrderItemModel.status.in_(from_statuses))
            .values(status=to_status, updated_at=now)
        )
        return self.conditional_update(stmt)

    def list_stale_unpaid(self, created_before: datetime, payment_statuses: list[str]) -> list[OrderModel]:
        stmt = select(OrderModel).where(
            OrderModel.status == "pending",
            OrderModel.payment_status.in_(payment_statuses),
            OrderModel.created_at < created_before,
        )
        return list(self.db.execute(stmt).scalars().all())

    # vendor
    def list_vendor_items(
        self,
        vendor_id: int,
        status: str | None,
        search: str | None,
        offset: int,
        limit: int,
    ) -> tuple[list[tuple[OrderItemModel, OrderModel]], int]:
        base = (
            select(OrderItemModel, OrderModel)
            .join(OrderModel, OrderModel.id == OrderItemModel.order_id)
            .where(OrderItemModel.vendor_id == vendor_id)
        )
        if status:
            base = base.where(OrderItemModel.status == status)
        if search:
            base = base.where(OrderModel.order_number.ilike(f"%{search}%"))

        total = self.db.execute(select(func.count()).select_from(base.subquery())).scalar_one()
        rows = self.db.execute(
            base.order_by(OrderItemModel.created_at.desc(), OrderItemModel.id.desc()).offset(offset).limit(limit)
        ).all()
        return [(row[0], row[1]) for row in rows], total

    def vendor_status_counts(self, vendor_id: int) -> dict[str, int]:
        stmt = (
            select(OrderItemModel.status, func.count())
            .where(OrderItemModel.vendor_id == vendor_id)
            .group_by(OrderItemModel.status)
        )
        return {status: count for status, count in self.db.execute(stmt).all()}

    # tracking
    def add_tracking(self, tracking: OrderTrackingModel) -> OrderTrackingModel:
        self.db.add(tracking)
        self.db.flush()
        return tracking

    def get_tracking_for_order(self, order_id: int) -> list[OrderTrackingModel]:
        stmt = (
            select(OrderTrackingModel)
            .where(OrderTrackingModel.order_id == order_id)
            .order_by(OrderTrackingModel.created_at.desc(), OrderTrackingModel.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_tracking_for_item(self, item_id: int) -> list[OrderTrackingModel]:
        stmt = (
            select(OrderTrackingModel)
            .where(OrderTrackingModel.order_item_id == item_id)
            .order_by(OrderTrackingModel.created_at.desc(), OrderTrackingModel.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())
