# marketplace/services/notification_service.py
from sqlalchemy.orm import Session

from marketplace.celery_worker import celery_app
from marketplace.data.models.notification import NotificationModel
from marketplace.repos.notification_repo import NotificationRepo
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationEmitter:
    """
    Zapis powiadomien dla uzytkownika.
    enqueue - rekord w transakcji wolajacego (znika razem z rollbackiem)
    dispatch_pending - po commicie przekazuje rekordy do celery (dostarczenie poza zakresem)
    """

    def __init__(self, db: Session):
        self.repo = NotificationRepo(db)
        self._pending: list[NotificationModel] = []

    def enqueue(
        self,
        user_id: int,
        type: str,
        title: str,
        message: str,
        link: str | None = None,
        data: dict | None = None,
    ) -> NotificationModel:
        notification = self.repo.add(
            NotificationModel(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                link=link,
                data=data,
            )
        )
        self._pending.append(notification)
        return notification

    def discard_pending(self):
        #po rollbacku rekordy nie istnieja
        self._pending.clear()

    def dispatch_pending(self):
        pending, self._pending = self._pending, []

        for notification in pending:
            try:
                deliver_notification_task.delay(
                    notification.id,
                    notification.user_id,
                    notification.type,
                    notification.title,
                )
            except Exception as e:
                #rekord jest zapisany, brak brokera nie cofa operacji biznesowej
                logger.warning(f"Failed to dispatch notification {notification.id}: {e}")


@celery_app.task(name="marketplace.services.notification_service.deliver_notification_task")
def deliver_notification_task(notification_id: int, user_id: int, type: str, title: str):
    """
    Celery task - w prawdziwym systemie wyslalby email/SMS/push.
    Teraz tylko loguje.
    """
    logger.info(f"[NOTIFICATION] User {user_id}: [{type}] {title} (notification {notification_id})")

    return {"notification_id": notification_id, "user_id": user_id, "status": "sent"}
