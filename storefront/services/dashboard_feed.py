"""
Storefront — Owner dashboard feed

Turns raw channel messages into what one connected dashboard should do.
Every change yields a "refetch" so the dashboard reconciles against the
database; inserts matching the dashboard's filters additionally yield an
"order_created" toast (and a chime when the operator armed sound).
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from storefront.services.realtime import ChangeEvent

logger = logging.getLogger(__name__)


@dataclass
class FeedAction:
    kind: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_sse(self) -> str:
        return f"event: {self.kind}\ndata: {json.dumps(self.data)}\n\n"


@dataclass
class DashboardFeed:
    date_from: datetime
    date_to: datetime
    phone: str = ""
    sound_armed: bool = False
    toast_seconds: int = 10

    def matches(self, order: dict[str, Any]) -> bool:
        created_raw = order.get("created_at")
        if not created_raw:
            return False
        created = datetime.fromisoformat(created_raw)
        if not (self.date_from <= created <= self.date_to):
            return False
        return not self.phone or self.phone in str(order.get("phone_number") or "")

    def handle(self, raw: str) -> list[FeedAction]:
        try:
            message = json.loads(raw)
            event = ChangeEvent(message["event"])
            order = message["order"]
        except (ValueError, KeyError, TypeError):
            logger.warning("Ignoring malformed order channel message: %.200s", raw)
            return []

        actions: list[FeedAction] = []
        if event is ChangeEvent.INSERT and self.matches(order):
            actions.append(FeedAction("order_created", {
                "order_id": order["order_id"],
                "item_count": order.get("item_count", 0),
                "total_amount": order.get("total_amount"),
                "phone_number": order.get("phone_number"),
                "expires_in": self.toast_seconds,
                "chime": self.sound_armed,
            }))
        actions.append(FeedAction("refetch", {"order_id": order.get("order_id"), "event": event.value}))
        return actions
