"""
Storefront — Session middleware
Resolves the caller's identity from a Bearer token or the session cookie.
Anonymous requests pass through; routes that need an identity ask for it
through the require_user / require_owner dependencies.
"""
import logging

from fastapi import Request, Response
from jose import JWTError
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from storefront.core.config import get_settings
from storefront.core.redis_client import get_redis
from storefront.core.security import decode_token
from storefront.services.identity import is_revoked

settings = get_settings()
logger = logging.getLogger(__name__)


def extract_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1]
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


class SessionAuthMiddleware(BaseHTTPMiddleware):
    """
    Attaches decoded claims to request.state.user, or None when the token is
    missing, invalid, expired or signed out.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.user = None
        token = extract_token(request)
        if token:
            try:
                claims = decode_token(token)
                if not await is_revoked(get_redis(), claims):
                    request.state.user = claims
            except JWTError as exc:
                logger.debug("Ignoring invalid session token: %s", exc)
            except RedisError as exc:
                logger.warning("Token revocation check unavailable: %s", exc)
        return await call_next(request)
