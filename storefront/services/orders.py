"""
Storefront — Order submission and lifecycle

Submission:
  1. validate caller, store, phone and cart lines
  2. INSERT order (PENDING), flush for its id
  3. INSERT order items with the cart's price snapshots
  4. INSERT the order.created outbox row
  5. COMMIT (steps 2–4 succeed or fail together)
  6. publish INSERT on the store channel, enqueue webhook delivery

Lifecycle: PENDING → ACCEPT. CANCEL is declared but nothing sets it.
"""
import logging
import re
from datetime import datetime
from typing import Any

import redis.asyncio as aioredis
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.errors import AuthRequired, PersistenceError, ValidationError
from storefront.models.menu import MenuItem
from storefront.models.order import Order, OrderItem, OrderStatus
from storefront.models.profile import Profile
from storefront.schemas.order import CartLine, OrderItemRow
from storefront.services import webhooks
from storefront.services.cart import Cart
from storefront.services.catalog import owned_item_ids
from storefront.services.identity import resolve_profile
from storefront.services.realtime import ChangeEvent, publish_order_change

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"^[0-9-]+$")


def normalize_phone(raw: str | None) -> str:
    phone = (raw or "").strip()
    if not phone:
        raise ValidationError("전화번호를 입력해주세요.", field="phone_number")
    if not PHONE_PATTERN.match(phone):
        raise ValidationError("올바른 전화번호 형식이 아닙니다.", field="phone_number")
    return phone


async def order_for_draft(db: AsyncSession, draft_token: str) -> str | None:
    result = await db.execute(select(Order.order_id).where(Order.draft_token == draft_token))
    return result.scalar_one_or_none()


async def submit_order(
    db: AsyncSession,
    redis: aioredis.Redis,
    store: Profile,
    caller: dict[str, Any] | None,
    lines: list[CartLine],
    phone_number: str | None,
    *,
    total_amount: int | None = None,
    auto_order: bool = False,
    draft_token: str | None = None,
) -> str:
    """Create one order and its items for `store`; returns the new order id."""
    if caller is None:
        raise AuthRequired()

    if auto_order and not (phone_number or "").strip():
        profile = await resolve_profile(db, caller["sub"])
        phone_number = profile.customernumber if profile else None
    phone = normalize_phone(phone_number)

    cart = Cart.from_lines(lines)
    if cart.is_empty:
        raise ValidationError("메뉴를 선택해주세요.", field="items")
    if total_amount is not None and total_amount != cart.total():
        raise ValidationError("주문 금액이 일치하지 않습니다.", field="total_amount")

    cart_lines = cart.lines()
    item_ids = {line.id for line in cart_lines}
    if await owned_item_ids(db, store.profile_id, item_ids) != item_ids:
        raise ValidationError("주문할 수 없는 메뉴가 포함되어 있습니다.", field="items")

    if draft_token:
        existing = await order_for_draft(db, draft_token)
        if existing:
            logger.info("Draft %s already produced order %s", draft_token[:8], existing)
            return existing

    try:
        order = Order(
            profile_id=store.profile_id,
            phone_number=phone,
            total_amount=cart.total(),
            status=OrderStatus.PENDING,
            draft_token=draft_token,
        )
        db.add(order)
        await db.flush()

        for position, line in enumerate(cart_lines):
            db.add(OrderItem(
                order_id=order.order_id,
                menu_item_id=line.id,
                menu_name=line.name,
                position=position,
                quantity=line.quantity,
                price=line.price,
            ))

        event = webhooks.record_event(
            db,
            webhooks.ORDER_CREATED,
            order.order_id,
            webhooks.order_created_payload(store, order, [line.model_dump() for line in cart_lines]),
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        if draft_token:
            existing = await order_for_draft(db, draft_token)
            if existing:
                return existing
        logger.exception("Order insert rejected for store %s", store.profile_id)
        raise PersistenceError()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Order insert failed for store %s", store.profile_id)
        raise PersistenceError()

    logger.info("Order %s created for store %s (%d lines, total %d)",
                order.order_id, store.profile_id, len(cart_lines), order.total_amount)
    await publish_order_change(redis, ChangeEvent.INSERT, order, len(cart_lines))
    await webhooks.enqueue_delivery([event.id])
    return order.order_id


async def order_item_rows(db: AsyncSession, store_id: str, order_id: str) -> list[OrderItemRow]:
    result = await db.execute(
        select(OrderItem, MenuItem.name)
        .join(Order, Order.order_id == OrderItem.order_id)
        .outerjoin(MenuItem, MenuItem.id == OrderItem.menu_item_id)
        .where(OrderItem.order_id == order_id, Order.profile_id == store_id)
        .order_by(OrderItem.position.asc())
    )
    return [
        OrderItemRow(
            id=item.id,
            order_id=item.order_id,
            menu_item_id=item.menu_item_id,
            menu_name=live_name or item.menu_name or f"#{item.menu_item_id}",
            quantity=item.quantity,
            price=item.price,
            subtotal=item.price * item.quantity,
        )
        for item, live_name in result.all()
    ]


async def accept_order(
    db: AsyncSession, redis: aioredis.Redis, order_id: str, owner: Profile
) -> bool:
    """
    Move an order of the owner's store to ACCEPT.

    The update is filtered on the owner's store id; an order of another store
    (or an unknown id) changes nothing and returns False without raising.
    Accepting an already accepted order succeeds again and emits another event.
    """
    try:
        result = await db.execute(
            update(Order)
            .where(Order.order_id == order_id, Order.profile_id == owner.profile_id)
            .values(status=OrderStatus.ACCEPT)
        )
        if result.rowcount == 0:
            await db.rollback()
            logger.warning("Accept of order %s by store %s changed no rows", order_id, owner.profile_id)
            return False

        order = await db.get(Order, order_id, populate_existing=True)
        items = await order_item_rows(db, owner.profile_id, order_id)
        event = webhooks.record_event(
            db,
            webhooks.ORDER_ACCEPTED,
            order_id,
            webhooks.order_accepted_payload(owner, order, items),
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Accept of order %s failed", order_id)
        raise PersistenceError()

    logger.info("Order %s accepted by store %s", order_id, owner.profile_id)
    await publish_order_change(redis, ChangeEvent.UPDATE, order, len(items))
    await webhooks.enqueue_delivery([event.id])
    return True


async def list_orders(
    db: AsyncSession,
    store_id: str,
    *,
    page: int,
    page_size: int,
    phone: str,
    date_from: datetime,
    date_to: datetime,
) -> tuple[list[Order], int]:
    """One page of the store's orders, newest first, and the filtered total."""
    conditions = [
        Order.profile_id == store_id,
        Order.created_at >= date_from,
        Order.created_at <= date_to,
    ]
    if phone:
        pattern = phone.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        conditions.append(Order.phone_number.ilike(f"%{pattern}%", escape="\\"))

    total_count = await db.scalar(select(func.count()).select_from(Order).where(*conditions))
    result = await db.execute(
        select(Order)
        .where(*conditions)
        .order_by(Order.created_at.desc())
        .offset((max(page, 1) - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total_count or 0
