"""
Storefront — Celery application

Uses Redis as both broker and result backend.
Workers deliver outbound webhooks out of the request path.
"""
from celery import Celery
from storefront.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "storefront",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["storefront.tasks.webhook_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,           # Only ack after task completes (fault-tolerant)
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    beat_schedule={
        "redeliver-pending-webhooks": {
            "task": "redeliver_pending",
            "schedule": 300.0,
        },
    },
)
