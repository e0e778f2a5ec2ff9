"""
Storefront — Customer-facing store routes

  GET  /stores/{name}                 → store page (active menu, categories)
  POST /stores/{name}/orders          → submit the cart
  POST /stores/{name}/checkout/draft  → stage the cart before phone capture
  POST /stores/{name}/checkout/login  → stage the cart, then go to the OAuth provider
"""
import logging
from typing import Any

import redis.asyncio as aioredis
from fastapi import APIRouter, Cookie, Depends, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.deps import current_user, redis_dep
from storefront.core.config import get_settings
from storefront.db.database import get_db
from storefront.schemas.menu import MenuItemResponse, StorePageResponse
from storefront.schemas.order import (
    DraftStageRequest,
    DraftStageResponse,
    OrderSubmitRequest,
    OrderSubmitResponse,
)
from storefront.services import catalog, oauth
from storefront.services.cart import Cart
from storefront.services.drafts import claim_draft, stage_draft
from storefront.services.identity import resolve_profile, resolve_store
from storefront.services.orders import order_for_draft, submit_order

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/stores", tags=["store"])


def set_draft_cookie(response, token: str) -> None:
    response.set_cookie(
        settings.DRAFT_COOKIE_NAME,
        token,
        max_age=settings.DRAFT_TTL_SECONDS,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )


async def reusable_draft_token(db: AsyncSession, token: str | None) -> str | None:
    """The cookie's token, unless an order was already placed from it."""
    if token and await order_for_draft(db, token):
        return None
    return token


@router.get("/{name}", response_model=StorePageResponse)
async def store_page(
    name: str,
    db: AsyncSession = Depends(get_db),
    user: dict[str, Any] | None = Depends(current_user),
):
    store = await resolve_store(db, name)
    items = await catalog.list_active_menu(db, store.profile_id)

    user_id = user_email = None
    needs_phone_number = False
    if user is not None:
        profile = await resolve_profile(db, user["sub"])
        user_id = user["sub"]
        user_email = profile.email if profile else None
        needs_phone_number = profile is None or not profile.customernumber

    return StorePageResponse(
        name=store.name,
        storename=store.storename or store.name,
        store_image=store.store_image,
        menu_items=[MenuItemResponse.model_validate(item) for item in items],
        categories=catalog.categories_of(items),
        user_id=user_id,
        user_email=user_email,
        needs_phone_number=needs_phone_number,
    )


@router.post("/{name}/orders", response_model=OrderSubmitResponse)
async def place_order(
    name: str,
    payload: OrderSubmitRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(redis_dep),
    user: dict[str, Any] | None = Depends(current_user),
    draft_token: str | None = Cookie(None, alias=settings.DRAFT_COOKIE_NAME),
):
    """
    Submit the cart. Without a session this answers 401 with requires_auth,
    which the page turns into a login prompt. A completed automatic order
    consumes the staged draft and its cookie.
    """
    store = await resolve_store(db, name)
    draft_token = draft_token if payload.auto_order else None
    order_id = await submit_order(
        db,
        redis,
        store,
        user,
        payload.items,
        payload.phone_number,
        total_amount=payload.total_amount,
        auto_order=payload.auto_order,
        draft_token=draft_token,
    )
    if draft_token:
        await claim_draft(redis, draft_token)
        response.delete_cookie(settings.DRAFT_COOKIE_NAME)
    return OrderSubmitResponse(message="주문이 완료되었습니다.", order_id=order_id)


@router.post("/{name}/checkout/draft", response_model=DraftStageResponse)
async def stage_checkout(
    name: str,
    payload: DraftStageRequest,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(redis_dep),
    draft_token: str | None = Cookie(None, alias=settings.DRAFT_COOKIE_NAME),
):
    store = await resolve_store(db, name)
    draft = Cart.from_lines(payload.items).to_draft(store.name, payload.phone_number)
    token = await stage_draft(redis, draft, token=await reusable_draft_token(db, draft_token))
    body = DraftStageResponse(
        draft_token=token,
        total_amount=draft.total_amount,
        expires_in=settings.DRAFT_TTL_SECONDS,
    )
    response = JSONResponse(body.model_dump())
    set_draft_cookie(response, token)
    return response


@router.post("/{name}/checkout/login")
async def checkout_login(
    name: str,
    payload: DraftStageRequest,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(redis_dep),
    draft_token: str | None = Cookie(None, alias=settings.DRAFT_COOKIE_NAME),
):
    """Stage the cart so it survives the provider round trip, then hand off to OAuth."""
    store = await resolve_store(db, name)
    draft = Cart.from_lines(payload.items).to_draft(store.name, payload.phone_number)
    token = await stage_draft(redis, draft, token=await reusable_draft_token(db, draft_token))
    url = await oauth.sign_in_with_oauth(redis, settings.OAUTH_PROVIDER_NAME, f"/stores/{store.name}")
    logger.info("Checkout draft %s staged for store %s; redirecting to login", token[:8], store.name)

    response = RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)
    set_draft_cookie(response, token)
    return response
