"""
Storefront — Command dispatch

POST /commands takes one Command and runs the handler registered for its
type. Adding a command shape without a handler fails at import.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, get_args

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.deps import redis_dep, require_user
from storefront.core.config import get_settings
from storefront.core.errors import Forbidden, ValidationError
from storefront.db.database import get_db
from storefront.models.profile import Profile, Role
from storefront.schemas.commands import (
    AcceptOrder,
    AddMenuItem,
    Command,
    CommandRequest,
    CommandResult,
    DeleteMenuItem,
    EditMenuItem,
    Logout,
    ReorderMenu,
    UpdatePhone,
    UpdateProfile,
)
from storefront.services import catalog
from storefront.services.identity import ensure_profile, resolve_profile, sign_out
from storefront.services.orders import accept_order, normalize_phone

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(tags=["commands"])


@dataclass
class CommandContext:
    user: dict[str, Any]
    db: AsyncSession
    redis: aioredis.Redis
    response: Response

    async def owner(self) -> Profile:
        profile = await resolve_profile(self.db, self.user["sub"])
        if profile is None or profile.role not in (Role.OWNER, Role.ADMIN):
            raise Forbidden()
        return profile


Handler = Callable[[Any, CommandContext], Awaitable[CommandResult]]


# ── Menu ──────────────────────────────────────────────────────

async def add_menu_item(cmd: AddMenuItem, ctx: CommandContext) -> CommandResult:
    owner = await ctx.owner()
    item = await catalog.add_item(
        ctx.db,
        owner.profile_id,
        name=cmd.name,
        price=cmd.price,
        image=cmd.image,
        description=cmd.description,
        category=cmd.category,
        is_active=cmd.is_active,
    )
    return CommandResult(action=cmd.action, message="메뉴가 추가되었습니다.", data={"id": item.id})


async def edit_menu_item(cmd: EditMenuItem, ctx: CommandContext) -> CommandResult:
    owner = await ctx.owner()
    changed = await catalog.edit_item(
        ctx.db,
        owner.profile_id,
        cmd.id,
        name=cmd.name,
        price=cmd.price,
        image=cmd.image,
        description=cmd.description,
        category=cmd.category,
        is_active=cmd.is_active,
    )
    return CommandResult(action=cmd.action, message="메뉴가 수정되었습니다.", data={"updated": changed})


async def delete_menu_item(cmd: DeleteMenuItem, ctx: CommandContext) -> CommandResult:
    owner = await ctx.owner()
    deleted = await catalog.delete_item(ctx.db, owner.profile_id, cmd.id)
    return CommandResult(action=cmd.action, message="메뉴가 삭제되었습니다.", data={"deleted": deleted})


async def reorder_menu(cmd: ReorderMenu, ctx: CommandContext) -> CommandResult:
    owner = await ctx.owner()
    changed = await catalog.reorder(ctx.db, owner.profile_id, cmd.positions)
    return CommandResult(action=cmd.action, data={"updated": changed})


# ── Profile / session ─────────────────────────────────────────

async def update_profile(cmd: UpdateProfile, ctx: CommandContext) -> CommandResult:
    owner = await ctx.owner()
    profile = await catalog.update_store_profile(
        ctx.db,
        owner,
        name=cmd.name,
        storename=cmd.storename,
        storenumber=cmd.storenumber,
        store_image=cmd.store_image,
    )
    return CommandResult(action=cmd.action, message="프로필이 저장되었습니다.", data={"name": profile.name})


async def update_phone(cmd: UpdatePhone, ctx: CommandContext) -> CommandResult:
    phone = normalize_phone(cmd.phone_number)
    profile = await ensure_profile(ctx.db, ctx.user["sub"], None, Role.CUSTOMER)
    profile.customernumber = phone
    await ctx.db.commit()
    return CommandResult(action=cmd.action, message="전화번호가 저장되었습니다.", data={"phone_number": phone})


async def logout(cmd: Logout, ctx: CommandContext) -> CommandResult:
    await sign_out(ctx.redis, ctx.user)
    ctx.response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return CommandResult(action=cmd.action)


# ── Orders ────────────────────────────────────────────────────

async def accept_order_command(cmd: AcceptOrder, ctx: CommandContext) -> CommandResult:
    owner = await ctx.owner()
    accepted = await accept_order(ctx.db, ctx.redis, cmd.order_id, owner)
    return CommandResult(action=cmd.action, data={"order_id": cmd.order_id, "accepted": accepted})


HANDLERS: dict[type, Handler] = {
    AddMenuItem: add_menu_item,
    EditMenuItem: edit_menu_item,
    DeleteMenuItem: delete_menu_item,
    ReorderMenu: reorder_menu,
    UpdateProfile: update_profile,
    AcceptOrder: accept_order_command,
    Logout: logout,
    UpdatePhone: update_phone,
}

_unhandled = set(get_args(get_args(Command)[0])) - set(HANDLERS)
if _unhandled:
    raise RuntimeError(f"Commands without a handler: {sorted(c.__name__ for c in _unhandled)}")


@router.post("/commands", response_model=CommandResult)
async def dispatch(
    response: Response,
    payload: CommandRequest,
    user: dict[str, Any] = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(redis_dep),
):
    command = payload.root
    handler = HANDLERS.get(type(command))
    if handler is None:
        raise ValidationError("알 수 없는 요청입니다.", field="action")
    logger.info("Command %s from %s", command.action, user["sub"])
    return await handler(command, CommandContext(user=user, db=db, redis=redis, response=response))
