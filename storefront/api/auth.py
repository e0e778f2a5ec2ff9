"""
Storefront — Auth API routes
"""
import logging
from typing import Any

import httpx
import redis.asyncio as aioredis
from fastapi import APIRouter, Cookie, Depends, HTTPException, Query, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.deps import http_client, redis_dep, require_profile, require_user
from storefront.core.config import get_settings
from storefront.db.database import get_db
from storefront.models.profile import Profile, Role
from storefront.schemas.auth import LoginRequest, MeResponse, SignUpRequest, TokenResponse
from storefront.services import oauth
from storefront.services.drafts import peek_draft
from storefront.services.identity import (
    DuplicateIdentity,
    sign_in_with_password,
    sign_out,
    sign_up,
)

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


def set_session_cookie(response, token: str) -> None:
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        max_age=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )


def safe_next(next_url: str | None) -> str:
    """Only same-site relative paths are valid redirect targets."""
    if not next_url or not next_url.startswith("/") or next_url.startswith("//"):
        return "/"
    return next_url


@router.post("/signup", response_model=MeResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: SignUpRequest, db: AsyncSession = Depends(get_db)):
    """Create an email/password identity. Owners sign up here; customers usually arrive via OAuth."""
    if payload.role == Role.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin accounts cannot self-register.")
    try:
        profile = await sign_up(db, payload.email, payload.password, payload.role)
    except DuplicateIdentity:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered.")
    return profile


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    token = await sign_in_with_password(db, payload.email, payload.password)
    body = TokenResponse(access_token=token, expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60)
    # JSON for API clients, cookie for browsers
    response = JSONResponse(body.model_dump())
    set_session_cookie(response, token)
    return response


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    user: dict[str, Any] = Depends(require_user),
    redis: aioredis.Redis = Depends(redis_dep),
):
    await sign_out(redis, user)
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return response


@router.get("/me", response_model=MeResponse)
async def me(profile: Profile = Depends(require_profile)):
    return profile


@router.get("/oauth/{provider}")
async def start_oauth(
    provider: str,
    next: str = Query("/"),
    redis: aioredis.Redis = Depends(redis_dep),
):
    try:
        url = await oauth.sign_in_with_oauth(redis, provider, safe_next(next))
    except oauth.OAuthError:
        raise HTTPException(status_code=404, detail="Unknown identity provider.")
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/callback")
async def oauth_callback(
    code: str | None = None,
    state: str | None = None,
    next: str = Query("/"),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(redis_dep),
    http: httpx.AsyncClient = Depends(http_client),
    draft_token: str | None = Cookie(None, alias=settings.DRAFT_COOKIE_NAME),
):
    """
    Exchange the provider code for a session and return to the page that
    started the login. A customer without a phone number who has a staged
    checkout draft is sent to phone capture first.
    """
    next_url = safe_next(next)
    bound_target = await oauth.consume_state(redis, state)
    if code is None or bound_target is None:
        logger.warning("OAuth callback without valid code/state")
        return RedirectResponse(f"{next_url}?error=auth_failed", status_code=status.HTTP_303_SEE_OTHER)

    try:
        token, profile = await oauth.exchange_code_for_session(db, http, code, bound_target)
    except oauth.OAuthError as exc:
        logger.error("OAuth code exchange failed: %s", exc)
        return RedirectResponse(f"{next_url}?error=auth_failed", status_code=status.HTTP_303_SEE_OTHER)

    target = bound_target
    if profile.role == Role.CUSTOMER and not profile.customernumber:
        if await peek_draft(redis, draft_token):
            target = "/customer/phone"

    response = RedirectResponse(target, status_code=status.HTTP_303_SEE_OTHER)
    set_session_cookie(response, token)
    return response
