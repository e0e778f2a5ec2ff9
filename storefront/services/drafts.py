"""
Storefront — Checkout continuation drafts

A cart interrupted by a login or phone-capture redirect is staged in Redis
under a random token that travels in an HttpOnly cookie:

  stage   → SETEX checkout:draft:{token}   (expires after DRAFT_TTL_SECONDS)
  claim   → GETDEL                         (exactly one caller gets the draft)
  restore → SETEX again after a failed submission so a retry sees the same draft
"""
import logging
import secrets
from enum import Enum

import redis.asyncio as aioredis
from pydantic import ValidationError as PydanticValidationError

from storefront.core.config import get_settings
from storefront.schemas.order import PendingOrderDraft

settings = get_settings()
logger = logging.getLogger(__name__)

DRAFT_PREFIX = "checkout:draft:"


class CheckoutState(str, Enum):
    BROWSING = "browsing"
    AWAITING_AUTH = "awaiting_auth"
    AWAITING_PHONE = "awaiting_phone"
    AUTO_SUBMITTING = "auto_submitting"
    COMPLETED = "completed"
    FAILED = "failed"
    ABANDONED = "abandoned"


def _key(token: str) -> str:
    return f"{DRAFT_PREFIX}{token}"


async def stage_draft(redis: aioredis.Redis, draft: PendingOrderDraft, token: str | None = None) -> str:
    """Store the draft and return its token. Re-staging under an existing token overwrites it."""
    token = token or secrets.token_urlsafe(24)
    await redis.setex(_key(token), settings.DRAFT_TTL_SECONDS, draft.model_dump_json())
    return token


async def peek_draft(redis: aioredis.Redis, token: str | None) -> PendingOrderDraft | None:
    if not token:
        return None
    raw = await redis.get(_key(token))
    return _parse(token, raw)


async def claim_draft(redis: aioredis.Redis, token: str | None) -> PendingOrderDraft | None:
    if not token:
        return None
    raw = await redis.getdel(_key(token))
    return _parse(token, raw)


async def restore_draft(redis: aioredis.Redis, token: str, draft: PendingOrderDraft) -> None:
    await stage_draft(redis, draft, token=token)
    logger.info("Checkout draft %s restored after failed submission", token[:8])


def _parse(token: str, raw: str | None) -> PendingOrderDraft | None:
    if raw is None:
        return None
    try:
        return PendingOrderDraft.model_validate_json(raw)
    except PydanticValidationError:
        logger.warning("Discarding unreadable checkout draft %s", token[:8])
        return None
