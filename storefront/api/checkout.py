"""
Storefront — Checkout recovery routes

After an OAuth round trip a customer without a phone number lands on
/customer/phone. Saving the number claims the staged draft and submits it
automatically:

  no draft          → redirect home (abandoned)
  submit succeeds   → clear the draft cookie, redirect to order-success
  submit fails      → put the draft back, 500 with the generic message
"""
import logging
from typing import Any

import redis.asyncio as aioredis
from fastapi import APIRouter, Cookie, Depends, Form, Query, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.deps import redis_dep, require_user
from storefront.core.config import get_settings
from storefront.core.errors import GENERIC_FAILURE_MESSAGE, StorefrontError
from storefront.db.database import get_db
from storefront.models.profile import Role
from storefront.services.drafts import CheckoutState, claim_draft, peek_draft, restore_draft
from storefront.services.identity import ensure_profile, resolve_profile, resolve_store
from storefront.services.orders import normalize_phone, submit_order

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/customer", tags=["checkout"])


@router.get("/phone")
async def phone_form(
    user: dict[str, Any] = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(redis_dep),
    draft_token: str | None = Cookie(None, alias=settings.DRAFT_COOKIE_NAME),
):
    profile = await resolve_profile(db, user["sub"])
    if profile is not None and profile.customernumber:
        return RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)

    draft = await peek_draft(redis, draft_token)
    return {
        "state": CheckoutState.AWAITING_PHONE.value,
        "has_draft": draft is not None,
        "store_name": draft.store_name if draft else None,
        "total_amount": draft.total_amount if draft else None,
    }


@router.post("/phone")
async def save_phone(
    phoneNumber: str = Form(...),
    user: dict[str, Any] = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(redis_dep),
    draft_token: str | None = Cookie(None, alias=settings.DRAFT_COOKIE_NAME),
):
    phone = normalize_phone(phoneNumber)

    profile = await ensure_profile(db, user["sub"], None, Role.CUSTOMER)
    profile.customernumber = phone
    await db.commit()
    logger.info("Saved phone number for customer %s", profile.profile_id)

    draft = await claim_draft(redis, draft_token)
    if draft is None:
        logger.info("No checkout draft for customer %s (%s)", profile.profile_id, CheckoutState.ABANDONED.value)
        return RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)

    try:
        store = await resolve_store(db, draft.store_name)
        order_id = await submit_order(
            db,
            redis,
            store,
            user,
            draft.items,
            draft.phone_number or phone,
            total_amount=draft.total_amount,
            auto_order=True,
            draft_token=draft_token,
        )
    except StorefrontError as exc:
        logger.error("Automatic submission of draft %s failed: %s", draft_token[:8], exc.message)
        await restore_draft(redis, draft_token, draft)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": GENERIC_FAILURE_MESSAGE, "state": CheckoutState.FAILED.value},
        )

    response = RedirectResponse(
        f"/customer/order-success?orderId={order_id}", status_code=status.HTTP_303_SEE_OTHER
    )
    response.delete_cookie(settings.DRAFT_COOKIE_NAME)
    return response


@router.get("/order-success")
async def order_success(orderId: str = Query(...)):
    return {
        "success": True,
        "state": CheckoutState.COMPLETED.value,
        "order_id": orderId,
        "message": "주문이 완료되었습니다.",
    }
