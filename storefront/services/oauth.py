"""
Storefront — OAuth provider boundary (authorization-code flow)

  sign_in_with_oauth        → provider authorize URL; callback carries ?next=
  exchange_code_for_session → token endpoint + userinfo, upsert identity,
                              lazily create a customer profile, issue session
"""
import logging
import secrets
from urllib.parse import urlencode

import httpx
import redis.asyncio as aioredis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import get_settings
from storefront.models.profile import Profile, User
from storefront.services.identity import ensure_profile, issue_session

settings = get_settings()
logger = logging.getLogger(__name__)

STATE_PREFIX = "oauth:state:"
STATE_TTL_SECONDS = 600


class OAuthError(Exception):
    pass


def callback_url(next_url: str) -> str:
    return f"{settings.PUBLIC_BASE_URL}/auth/callback?{urlencode({'next': next_url})}"


async def sign_in_with_oauth(redis: aioredis.Redis, provider: str, redirect_target: str) -> str:
    if provider != settings.OAUTH_PROVIDER_NAME:
        raise OAuthError(f"Unsupported provider '{provider}'")

    state = secrets.token_urlsafe(16)
    await redis.setex(f"{STATE_PREFIX}{state}", STATE_TTL_SECONDS, redirect_target)
    query = urlencode({
        "client_id": settings.OAUTH_CLIENT_ID,
        "redirect_uri": callback_url(redirect_target),
        "response_type": "code",
        "state": state,
    })
    return f"{settings.OAUTH_AUTHORIZE_URL}?{query}"


async def consume_state(redis: aioredis.Redis, state: str | None) -> str | None:
    """Return the redirect target bound to this state, once."""
    if not state:
        return None
    return await redis.getdel(f"{STATE_PREFIX}{state}")


def _extract_identity(data: dict) -> tuple[str, str | None]:
    subject = data.get("id") or data.get("sub")
    if subject is None:
        raise OAuthError("Userinfo response carries no subject")
    email = data.get("email") or (data.get("kakao_account") or {}).get("email")
    return str(subject), email


async def exchange_code_for_session(
    db: AsyncSession, http: httpx.AsyncClient, code: str, next_url: str
) -> tuple[str, Profile]:
    try:
        token_response = await http.post(
            settings.OAUTH_TOKEN_URL,
            data={
                "grant_type": "authorization_code",
                "client_id": settings.OAUTH_CLIENT_ID,
                "client_secret": settings.OAUTH_CLIENT_SECRET,
                "redirect_uri": callback_url(next_url),
                "code": code,
            },
        )
        token_response.raise_for_status()
        provider_token = token_response.json()["access_token"]

        userinfo_response = await http.get(
            settings.OAUTH_USERINFO_URL,
            headers={"Authorization": f"Bearer {provider_token}"},
        )
        userinfo_response.raise_for_status()
        subject, email = _extract_identity(userinfo_response.json())
    except (httpx.HTTPError, KeyError, ValueError) as exc:
        raise OAuthError(str(exc)) from exc

    result = await db.execute(
        select(User).where(
            User.oauth_provider == settings.OAUTH_PROVIDER_NAME,
            User.oauth_subject == subject,
        )
    )
    user = result.scalar_one_or_none()
    if user is None:
        user = User(
            email=None,
            oauth_provider=settings.OAUTH_PROVIDER_NAME,
            oauth_subject=subject,
        )
        db.add(user)
        await db.flush()
        logger.info("Registered %s identity %s", settings.OAUTH_PROVIDER_NAME, user.id)

    profile = await ensure_profile(db, user.id, email)
    await db.commit()
    return issue_session(user.id, profile.role), profile
