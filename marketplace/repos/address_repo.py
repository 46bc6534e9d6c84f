# marketplace/repos/address_repo.py
from sqlalchemy import select

from marketplace.data.models.address import AddressModel
from marketplace.repos.base import BaseRepo


class AddressRepo(BaseRepo):

    def get_for_user(self, address_id: int, user_id: int) -> AddressModel | None:
        stmt = select(AddressModel).where(AddressModel.id == address_id, AddressModel.user_id == user_id)
        return self.db.execute(stmt).scalar_one_or_none()
