"""
Storefront — Identity context

Maps an authenticated identity to its profile, issues session tokens for the
email/password provider and keeps a Redis denylist of signed-out tokens.
"""
import logging
from typing import Any

import redis.asyncio as aioredis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.errors import AuthRequired, StoreNotFound
from storefront.core.security import (
    create_access_token,
    hash_password,
    seconds_until_expiry,
    verify_password,
)
from storefront.models.profile import Profile, Role, User

logger = logging.getLogger(__name__)

REVOKED_PREFIX = "revoked:"


class DuplicateIdentity(Exception):
    pass


async def resolve_profile(db: AsyncSession, identity_id: str) -> Profile | None:
    result = await db.execute(select(Profile).where(Profile.profile_id == identity_id))
    return result.scalar_one_or_none()


async def resolve_store(db: AsyncSession, name: str | None) -> Profile:
    """Resolve the store path segment to its profile or raise StoreNotFound."""
    if not name:
        raise StoreNotFound()
    result = await db.execute(select(Profile).where(Profile.name == name))
    store = result.scalar_one_or_none()
    if store is None:
        raise StoreNotFound()
    return store


async def ensure_profile(
    db: AsyncSession, identity_id: str, email: str | None, role: Role = Role.CUSTOMER
) -> Profile:
    """Return the identity's profile, creating it lazily on first use. An existing role is kept."""
    profile = await resolve_profile(db, identity_id)
    if profile is None:
        profile = Profile(profile_id=identity_id, email=email, role=role)
        db.add(profile)
        await db.flush()
        logger.info("Created %s profile for identity %s", role.value, identity_id)
    return profile


def issue_session(user_id: str, role: Role) -> str:
    return create_access_token({"sub": user_id, "role": role.value})


async def sign_up(db: AsyncSession, email: str, password: str, role: Role) -> Profile:
    existing = await db.execute(select(User).where(User.email == email))
    if existing.scalar_one_or_none():
        raise DuplicateIdentity(email)

    user = User(email=email, hashed_password=hash_password(password))
    db.add(user)
    await db.flush()
    profile = await ensure_profile(db, user.id, email, role)
    await db.commit()
    return profile


async def sign_in_with_password(db: AsyncSession, email: str, password: str) -> str:
    result = await db.execute(select(User).where(User.email == email))
    user: User | None = result.scalar_one_or_none()
    if not user or not user.hashed_password or not verify_password(password, user.hashed_password):
        raise AuthRequired("이메일 또는 비밀번호가 올바르지 않습니다.")

    profile = await ensure_profile(db, user.id, user.email)
    await db.commit()
    return issue_session(user.id, profile.role)


async def sign_out(redis: aioredis.Redis, claims: dict[str, Any]) -> None:
    jti = claims.get("jti")
    if jti:
        await redis.setex(f"{REVOKED_PREFIX}{jti}", seconds_until_expiry(claims), "1")


async def is_revoked(redis: aioredis.Redis, claims: dict[str, Any]) -> bool:
    jti = claims.get("jti")
    if not jti:
        return True
    return await redis.exists(f"{REVOKED_PREFIX}{jti}") > 0
