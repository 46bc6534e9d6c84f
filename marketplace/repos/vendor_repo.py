# marketplace/repos/vendor_repo.py
from decimal import Decimal
from sqlalchemy import select, update

from marketplace.data.models.vendor import VendorModel
from marketplace.repos.base import BaseRepo


class VendorRepo(BaseRepo):

    def get(self, vendor_id: int) -> VendorModel | None:
        return self.db.get(VendorModel, vendor_id)

    def get_by_user(self, user_id: int) -> VendorModel | None:
        stmt = select(VendorModel).where(VendorModel.user_id == user_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def add_to_balance(self, vendor_id: int, amount: Decimal) -> int:
        stmt = (
            update(VendorModel)
            .where(VendorModel.id == vendor_id)
            .values(pending_balance=VendorModel.pending_balance + amount)
        )
        return self.conditional_update(stmt)
