# marketplace/celery_worker.py
from celery import Celery

from marketplace.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CELERY_TASK_ALWAYS_EAGER,
    ORDER_PAYMENT_TTL_SECONDS,
)

celery_app = Celery(
    "marketplace",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# WAŻNE: Explicite importuj taski, żeby Celery je zarejestrował
celery_app.conf.imports = (
    "marketplace.tasks.expire",
    "marketplace.services.notification_service",
)

#testy i dev bez brokera
celery_app.conf.task_always_eager = CELERY_TASK_ALWAYS_EAGER

# Konfiguracja beat schedule
celery_app.conf.beat_schedule = {
    "expire-unpaid-orders": {
        "task": "marketplace.tasks.expire.expire_unpaid_orders_task",
        #sprawdzamy kilka razy w ciagu TTL
        "schedule": float(max(60, ORDER_PAYMENT_TTL_SECONDS // 24)),
    },
}

celery_app.conf.timezone = "UTC"
