"""
Storefront — Outbound webhooks (outbox pattern)

Order changes write an OutboundEvent row in the same transaction as the
change itself. After commit the event id is handed to the Celery worker,
which POSTs the payload to the operator's automation endpoint and retries
until it succeeds or runs out of attempts. Receivers deduplicate on the
x-idempotency-key header ({order_id}:{event_type}).

Delivery failures never reach the request that caused the event.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from storefront.core.celery_app import celery_app
from storefront.core.config import get_settings
from storefront.core.errors import NotificationDeliveryFailure
from storefront.db.database import as_utc, utcnow
from storefront.models.order import EventStatus, Order, OutboundEvent
from storefront.models.profile import Profile
from storefront.schemas.order import OrderItemRow

settings = get_settings()
logger = logging.getLogger(__name__)

ORDER_CREATED = "order.created"
ORDER_ACCEPTED = "order.accepted"


def _iso(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


# ─── Payloads ─────────────────────────────────────────────────────────────────

def order_created_payload(store: Profile, order: Order, lines: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "event": ORDER_CREATED,
        "site": {
            "pageName": store.name,
            "storeName": store.storename or store.name,
            "profileId": store.profile_id,
        },
        "order": {
            "id": order.order_id,
            "totalAmount": order.total_amount,
            "customerPhone": order.phone_number,
            "items": lines,
            "createdAt": _iso(order.created_at),
            "status": order.status.value,
        },
        "notify": {"to": "store", "phone": store.storenumber},
    }


def order_accepted_payload(store: Profile, order: Order, items: list[OrderItemRow]) -> dict[str, Any]:
    return {
        "event": ORDER_ACCEPTED,
        "orderId": order.order_id,
        "status": order.status.value,
        "order": {
            "phoneNumber": order.phone_number,
            "totalAmount": order.total_amount,
            "createdAt": _iso(order.created_at),
        },
        "items": [
            {
                "id": item.id,
                "menuItemId": item.menu_item_id,
                "menuName": item.menu_name,
                "quantity": item.quantity,
                "price": item.price,
                "subtotal": item.subtotal,
            }
            for item in items
        ],
        "store": {
            "id": store.profile_id,
            "storename": store.storename,
            "domain": store.name,
            "email": store.email,
            "storenumber": store.storenumber,
        },
        "timestamp": utcnow().isoformat(),
    }


def record_event(db: AsyncSession, event_type: str, order_id: str, payload: dict[str, Any]) -> OutboundEvent:
    """Stage an outbox row on the caller's session; committed with the order change."""
    event = OutboundEvent(event_type=event_type, order_id=order_id, payload=payload)
    db.add(event)
    return event


async def enqueue_delivery(event_ids: list[str]) -> None:
    """Hand committed events to the worker. A lost enqueue is picked up by the redelivery sweep."""
    for event_id in event_ids:
        try:
            await asyncio.to_thread(celery_app.send_task, "deliver_webhook", args=[event_id])
        except Exception as exc:
            logger.warning("Could not enqueue webhook event %s: %s", event_id, exc)


# ─── Delivery (worker side, sync session) ─────────────────────────────────────

def webhook_target(event_type: str) -> tuple[str, str]:
    if event_type == ORDER_CREATED:
        return settings.WEBHOOK_URL_ORDER_CREATED, settings.WEBHOOK_SECRET_ORDER_CREATED
    if event_type == ORDER_ACCEPTED:
        return settings.WEBHOOK_URL_ORDER_ACCEPTED, settings.WEBHOOK_SECRET_ORDER_ACCEPTED
    return "", ""


def deliver_event(session: Session, event_id: str, http: httpx.Client) -> EventStatus | None:
    """
    Attempt one delivery. Returns the resulting status, or raises
    NotificationDeliveryFailure after recording the failed attempt.
    """
    event = session.get(OutboundEvent, event_id)
    if event is None:
        logger.warning("Webhook event %s no longer exists", event_id)
        return None
    if event.status in (EventStatus.DELIVERED, EventStatus.SKIPPED):
        return event.status

    url, secret = webhook_target(event.event_type)
    if not url:
        logger.error("Webhook URL for %s is not set; order %s notification not sent",
                     event.event_type, event.order_id)
        event.status = EventStatus.SKIPPED
        session.commit()
        return event.status

    headers = {
        "content-type": "application/json",
        "x-idempotency-key": f"{event.order_id}:{event.event_type}",
        "x-event-type": event.event_type,
    }
    if secret:
        headers["x-webhook-secret"] = secret

    event.attempts += 1
    try:
        response = http.post(url, json=event.payload, headers=headers)
    except httpx.HTTPError as exc:
        event.last_error = str(exc)[:500] or exc.__class__.__name__
        session.commit()
        raise NotificationDeliveryFailure(f"{event.event_type} webhook unreachable") from exc

    if not response.is_success:
        event.last_error = f"HTTP {response.status_code}"
        session.commit()
        raise NotificationDeliveryFailure(
            f"{event.event_type} webhook answered {response.status_code}"
        )

    event.status = EventStatus.DELIVERED
    event.delivered_at = utcnow()
    event.last_error = None
    session.commit()
    logger.info("Delivered %s webhook for order %s", event.event_type, event.order_id)
    return event.status


def mark_failed(session: Session, event_id: str) -> None:
    event = session.get(OutboundEvent, event_id)
    if event is not None and event.status == EventStatus.PENDING:
        event.status = EventStatus.FAILED
        session.commit()


def pending_event_ids(session: Session, older_than: datetime) -> list[str]:
    result = session.execute(
        select(OutboundEvent.id).where(
            OutboundEvent.status == EventStatus.PENDING,
            OutboundEvent.attempts == 0,
            OutboundEvent.created_at <= older_than,
        )
    )
    return list(result.scalars().all())
