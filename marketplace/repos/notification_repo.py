# marketplace/repos/notification_repo.py
from sqlalchemy import select

from marketplace.data.models.notification import NotificationModel
from marketplace.repos.base import BaseRepo


class NotificationRepo(BaseRepo):

    def add(self, notification: NotificationModel) -> NotificationModel:
        self.db.add(notification)
        self.db.flush()
        return notification

    def list_for_user(self, user_id: int) -> list[NotificationModel]:
        stmt = (
            select(NotificationModel)
            .where(NotificationModel.user_id == user_id)
            .order_by(NotificationModel.id)
        )
        return list(self.db.execute(stmt).scalars().all())
