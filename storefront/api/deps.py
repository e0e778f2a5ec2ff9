"""
Storefront — Shared route dependencies
"""
from typing import Any, AsyncGenerator

import httpx
import redis.asyncio as aioredis
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import get_settings
from storefront.core.errors import AuthRequired, Forbidden
from storefront.core.redis_client import get_redis
from storefront.db.database import get_db
from storefront.models.profile import Profile, Role
from storefront.services.identity import resolve_profile

settings = get_settings()


def redis_dep() -> aioredis.Redis:
    return get_redis()


async def http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
        yield client


def current_user(request: Request) -> dict[str, Any] | None:
    return getattr(request.state, "user", None)


def require_user(user: dict[str, Any] | None = Depends(current_user)) -> dict[str, Any]:
    if user is None:
        raise AuthRequired("로그인이 필요합니다.")
    return user


async def require_profile(
    user: dict[str, Any] = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    profile = await resolve_profile(db, user["sub"])
    if profile is None:
        raise AuthRequired("로그인이 필요합니다.")
    return profile


async def require_owner(profile: Profile = Depends(require_profile)) -> Profile:
    if profile.role not in (Role.OWNER, Role.ADMIN):
        raise Forbidden()
    return profile
