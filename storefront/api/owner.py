"""
Storefront — Owner dashboard routes

  GET  /owner/orders                 → filtered, paginated order list
  GET  /owner/orders/{id}/items      → order lines with menu names
  POST /owner/orders/{id}/accept     → PENDING → ACCEPT
  GET  /owner/orders/stream          → SSE feed of the store's order changes
  GET  /owner/menu                   → full menu, inactive items included
  POST /owner/uploads/{kind}         → menu / store image upload
"""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import AsyncGenerator
from zoneinfo import ZoneInfo

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.deps import redis_dep, require_owner
from storefront.core.config import get_settings
from storefront.db.database import as_utc, get_db
from storefront.models.order import OrderStatus
from storefront.models.profile import Profile
from storefront.schemas.menu import MenuItemResponse, UploadResponse
from storefront.schemas.order import (
    AcceptResponse,
    DashboardFilters,
    OrderItemRow,
    OrderListResponse,
    OrderRow,
    StoreInfo,
)
from storefront.services import catalog, storage
from storefront.services.dashboard_feed import DashboardFeed
from storefront.services.orders import accept_order, list_orders, order_item_rows
from storefront.services.realtime import order_channel

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/owner", tags=["owner"])

UPLOAD_BUCKETS = {
    "menu": settings.MENU_IMAGE_BUCKET,
    "store": settings.STORE_IMAGE_BUCKET,
}


def resolve_range(date_from: datetime | None, date_to: datetime | None) -> tuple[datetime, datetime]:
    """
    Default range is today 00:00 (store timezone) until now. Naive bounds are
    read in the store timezone; both are returned in UTC.
    """
    tz = ZoneInfo(settings.STORE_TIMEZONE)
    now = datetime.now(tz)
    start = date_from or now.replace(hour=0, minute=0, second=0, microsecond=0)
    end = date_to or now
    if start.tzinfo is None:
        start = start.replace(tzinfo=tz)
    if end.tzinfo is None:
        end = end.replace(tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


@router.get("/orders", response_model=OrderListResponse)
async def dashboard_orders(
    page: int = Query(1, ge=1),
    phone: str = Query("", max_length=32),
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    owner: Profile = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    start, end = resolve_range(date_from, date_to)
    phone = phone.strip()
    orders, total_count = await list_orders(
        db,
        owner.profile_id,
        page=page,
        page_size=settings.ORDERS_PAGE_SIZE,
        phone=phone,
        date_from=start,
        date_to=end,
    )
    return OrderListResponse(
        orders=[
            OrderRow(
                order_id=o.order_id,
                phone_number=o.phone_number,
                total_amount=o.total_amount,
                status=o.status,
                created_at=as_utc(o.created_at),
            )
            for o in orders
        ],
        total_count=total_count,
        page=page,
        page_size=settings.ORDERS_PAGE_SIZE,
        filters=DashboardFilters(phone=phone, date_from=start, date_to=end),
        store=StoreInfo.model_validate(owner, from_attributes=True),
    )


@router.get("/orders/stream")
async def stream_orders(
    request: Request,
    phone: str = Query("", max_length=32),
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    sound: bool = False,
    owner: Profile = Depends(require_owner),
    redis: aioredis.Redis = Depends(redis_dep),
):
    """
    SSE endpoint for the owner dashboard. Each change on the store's channel
    becomes a "refetch" event; inserts within the filters also raise an
    "order_created" toast.
    """
    start, end = resolve_range(date_from, date_to)
    if date_to is None:
        # An open dashboard keeps receiving orders placed after it connected
        end = datetime.max.replace(tzinfo=timezone.utc)

    feed = DashboardFeed(
        date_from=start,
        date_to=end,
        phone=phone.strip(),
        sound_armed=sound,
        toast_seconds=settings.NOTIFICATION_TOAST_SECONDS,
    )
    return StreamingResponse(
        sse_generator(redis, owner.profile_id, feed, request),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # Disable Nginx buffering
            "Connection": "keep-alive",
        },
    )


async def sse_generator(
    redis: aioredis.Redis, store_id: str, feed: DashboardFeed, request: Request
) -> AsyncGenerator[str, None]:
    """Subscribe to the store's order channel and yield SSE events until the client leaves."""
    channel_name = order_channel(store_id)
    pubsub = redis.pubsub()
    await pubsub.subscribe(channel_name)

    try:
        yield f": connected to store {store_id}\n\n"
        yield f"retry: {settings.SSE_RETRY_MILLISECONDS}\n\n"

        last_sent = time.monotonic()
        while True:
            if await request.is_disconnected():
                break

            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            if message and message["type"] == "message":
                data = message["data"]
                if isinstance(data, bytes):
                    data = data.decode("utf-8", errors="replace")
                for action in feed.handle(data):
                    yield action.to_sse()
                last_sent = time.monotonic()
            elif time.monotonic() - last_sent >= settings.SSE_KEEPALIVE_INTERVAL_SECONDS:
                yield ": keepalive\n\n"
                last_sent = time.monotonic()
    finally:
        await pubsub.unsubscribe(channel_name)
        await pubsub.aclose()


@router.get("/orders/{order_id}/items", response_model=list[OrderItemRow])
async def order_items(
    order_id: str,
    owner: Profile = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    return await order_item_rows(db, owner.profile_id, order_id)


@router.post("/orders/{order_id}/accept", response_model=AcceptResponse)
async def accept(
    order_id: str,
    owner: Profile = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(redis_dep),
):
    accepted = await accept_order(db, redis, order_id, owner)
    return AcceptResponse(order_id=order_id, accepted=accepted, status=OrderStatus.ACCEPT if accepted else None)


@router.get("/menu", response_model=list[MenuItemResponse])
async def owner_menu(
    owner: Profile = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    return await catalog.list_menu(db, owner.profile_id)


@router.post("/uploads/{kind}", response_model=UploadResponse)
async def upload_image(
    kind: str,
    file: UploadFile = File(...),
    owner: Profile = Depends(require_owner),
):
    bucket = UPLOAD_BUCKETS.get(kind)
    if bucket is None:
        raise HTTPException(status_code=404, detail=f"Unknown upload kind '{kind}'.")

    data = await file.read()
    content_type = file.content_type or ""
    storage.check_image(data, content_type)
    filename = storage.object_name(f"{kind}-{owner.profile_id}", content_type)
    url = await asyncio.to_thread(storage.upload, bucket, filename, data, content_type)
    return UploadResponse(bucket=bucket, filename=filename, url=url)
