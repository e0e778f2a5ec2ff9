"""
Storefront — Idempotency Key Middleware

Order submissions may carry an Idempotency-Key header, scoped to the caller:
  - Cache hit  → return the stored response (no second order)
  - Cache miss → execute handler, store a successful response in Redis
"""
import json
import re
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from storefront.core.config import get_settings
from storefront.core.redis_client import get_redis

settings = get_settings()

IDEMPOTENCY_PREFIX = "idempotent:"
IDEMPOTENCY_METHODS = {"POST"}
IDEMPOTENCY_PATH = re.compile(r"^/stores/[^/]+/orders/?$")


class IdempotencyMiddleware(BaseHTTPMiddleware):
    """
    Applies to order submission only. Only 2xx responses are stored, so a
    login prompt or validation failure can be retried with the same key.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method not in IDEMPOTENCY_METHODS:
            return await call_next(request)

        if not IDEMPOTENCY_PATH.match(request.url.path):
            return await call_next(request)

        idem_key = request.headers.get("Idempotency-Key")
        if not idem_key:
            return await call_next(request)

        # Set by SessionAuthMiddleware; anonymous submissions are never cached
        user = getattr(request.state, "user", None)
        if not user:
            return await call_next(request)

        redis = get_redis()
        cache_key = f"{IDEMPOTENCY_PREFIX}{user['sub']}:{request.url.path}:{idem_key}"

        # Cache HIT → replay stored response
        cached = await redis.get(cache_key)
        if cached:
            data = json.loads(cached)
            return JSONResponse(
                content=data["body"],
                status_code=data["status_code"],
                headers={"X-Idempotency-Replay": "true"},
            )

        # Cache MISS → proceed to handler
        response = await call_next(request)

        body_bytes = b""
        async for chunk in response.body_iterator:
            body_bytes += chunk

        if 200 <= response.status_code < 300:
            try:
                body = json.loads(body_bytes)
            except ValueError:
                body = body_bytes.decode("utf-8", errors="replace")
            await redis.setex(
                cache_key,
                settings.IDEMPOTENCY_KEY_TTL_SECONDS,
                json.dumps({"body": body, "status_code": response.status_code}),
            )

        return Response(
            content=body_bytes,
            status_code=response.status_code,
            media_type=response.media_type,
            headers=dict(response.headers),
        )
