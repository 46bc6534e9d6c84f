# marketplace/repos/payment_repo.py
from sqlalchemy import select, update

from marketplace.data.models.payment import PaymentModel
from marketplace.repos.base import BaseRepo


class PaymentRepo(BaseRepo):

    def add(self, payment: PaymentModel) -> PaymentModel:
        self.db.add(payment)
        self.db.flush()
        return payment

    def get_by_intent(self, intent_id: str) -> PaymentModel | None:
        stmt = select(PaymentModel).where(PaymentModel.external_intent_id == intent_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_order(self, order_id: int) -> PaymentModel | None:
        stmt = select(PaymentModel).where(PaymentModel.order_id == order_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def transition(self, intent_id: str, from_statuses: list[str], to_status: str, **values) -> int:
        #UPDATE payments SET status='paid' WHERE intent='pi_1' AND status IN ('pending')
        stmt = (
            update(PaymentModel)
            .where(
                PaymentModel.external_intent_id == intent_id,
                PaymentModel.status.in_(from_statuses),
            )
            .values(status=to_status, **values)
        )
        return self.conditional_update(stmt)
