"""
Celery application for the billing scans: overdue invoices and stale
payment requests. Both run on beat; workers consume the "billing" queue.
"""
from celery import Celery

from app.core.config import settings

BILLING_TASK_MODULES = [
    "app.modules.invoices.tasks",
    "app.modules.payments.tasks",
]

celery_app = Celery(
    "billing",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=BILLING_TASK_MODULES,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # Scans touch every open invoice; keep them bounded
    task_time_limit=10 * 60,
    task_soft_time_limit=8 * 60,
    worker_prefetch_multiplier=1,
    result_expires=3600,
    task_routes={module + ".*": {"queue": "billing"} for module in BILLING_TASK_MODULES},
    beat_schedule={
        "mark-overdue-invoices": {
            "task": "app.modules.invoices.tasks.mark_overdue_invoices",
            "schedule": settings.OVERDUE_SCAN_INTERVAL,
        },
        "expire-payment-requests": {
            "task": "app.modules.payments.tasks.expire_payment_requests",
            "schedule": settings.PAYMENT_EXPIRY_SCAN_INTERVAL,
        },
    },
)
