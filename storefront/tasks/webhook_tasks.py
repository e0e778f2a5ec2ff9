"""
Storefront — Celery tasks (outbound webhook delivery)

Worker processes these tasks asynchronously, separate from the FastAPI app.
Each outbox row is retried with a fixed delay until delivered; after the
last retry it is marked failed and left for an operator.
"""
import logging
from datetime import timedelta

import httpx
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from storefront.core.celery_app import celery_app
from storefront.core.config import get_settings
from storefront.core.errors import NotificationDeliveryFailure
from storefront.db.database import utcnow
from storefront.services.webhooks import deliver_event, mark_failed, pending_event_ids

settings = get_settings()
logger = logging.getLogger(__name__)

# Sync engine for Celery (Celery tasks are not async-native)
sync_engine = create_engine(settings.sync_database_url, pool_pre_ping=True)

REDELIVERY_GRACE = timedelta(minutes=2)


@celery_app.task(
    name="deliver_webhook",
    bind=True,
    max_retries=settings.WEBHOOK_MAX_RETRIES,
    default_retry_delay=settings.WEBHOOK_RETRY_DELAY_SECONDS,
    acks_late=True,
)
def deliver_webhook(self, event_id: str):
    with Session(sync_engine) as session, httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
        try:
            deliver_event(session, event_id, client)
        except NotificationDeliveryFailure as exc:
            if self.request.retries >= self.max_retries:
                mark_failed(session, event_id)
                logger.error("Webhook event %s failed after %d attempts: %s",
                             event_id, self.request.retries + 1, exc)
                return
            logger.warning("Webhook event %s attempt %d failed: %s",
                           event_id, self.request.retries + 1, exc)
            raise self.retry(exc=exc)


@celery_app.task(name="redeliver_pending")
def redeliver_pending():
    """Re-enqueue outbox rows whose original enqueue never reached the broker."""
    with Session(sync_engine) as session:
        event_ids = pending_event_ids(session, utcnow() - REDELIVERY_GRACE)
    for event_id in event_ids:
        deliver_webhook.delay(event_id)
    if event_ids:
        logger.info("Re-enqueued %d pending webhook events", len(event_ids))
    return len(event_ids)
