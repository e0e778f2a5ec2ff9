"""
Storefront — Realtime order channel

Order inserts and updates are published on a per-store Redis channel
(orders:{store_id}); owner dashboards subscribe through the SSE endpoint.
There is no replay: a dashboard that is not connected misses the event and
reconciles by re-querying.
"""
import json
import logging
from datetime import datetime
from enum import Enum

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from storefront.db.database import as_utc
from storefront.models.order import Order

logger = logging.getLogger(__name__)


class ChangeEvent(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"


def order_channel(store_id: str) -> str:
    return f"orders:{store_id}"


def order_snapshot(order: Order, item_count: int) -> dict:
    created: datetime | None = as_utc(order.created_at)
    return {
        "order_id": order.order_id,
        "phone_number": order.phone_number,
        "total_amount": order.total_amount,
        "status": order.status.value,
        "created_at": created.isoformat() if created else None,
        "item_count": item_count,
    }


async def publish_order_change(
    redis: aioredis.Redis, event: ChangeEvent, order: Order, item_count: int
) -> bool:
    """Best effort: a lost publish only delays the dashboard until its next refresh."""
    message = json.dumps({"event": event.value, "order": order_snapshot(order, item_count)})
    try:
        await redis.publish(order_channel(order.profile_id), message)
        return True
    except RedisError as exc:
        logger.warning("Realtime publish for order %s failed: %s", order.order_id, exc)
        return False
