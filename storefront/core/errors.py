"""
Storefront — Domain errors

Each error carries the HTTP status and the message shown to the user.
Underlying causes are logged by whoever raises; they never reach the response.
"""
from fastapi import Request
from fastapi.responses import JSONResponse

GENERIC_FAILURE_MESSAGE = "주문 처리 중 오류가 발생했습니다."


class StorefrontError(Exception):
    status_code: int = 500
    message: str = GENERIC_FAILURE_MESSAGE

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_content(self) -> dict:
        return {"success": False, "message": self.message}


class AuthRequired(StorefrontError):
    """Caller must log in first. Rendered as a login prompt, not an error page."""
    status_code = 401
    message = "주문하려면 로그인이 필요합니다."

    def to_content(self) -> dict:
        return {**super().to_content(), "requires_auth": True}


class Forbidden(StorefrontError):
    status_code = 403
    message = "권한이 없습니다."


class StoreNotFound(StorefrontError):
    status_code = 404
    message = "가게를 찾을 수 없습니다."


class ValidationError(StorefrontError):
    status_code = 400
    message = "입력값이 올바르지 않습니다."

    def __init__(self, message: str | None = None, field: str | None = None):
        super().__init__(message)
        self.field = field

    def to_content(self) -> dict:
        return {**super().to_content(), "field": self.field}


class PersistenceError(StorefrontError):
    status_code = 500
    message = GENERIC_FAILURE_MESSAGE


class NotificationDeliveryFailure(StorefrontError):
    """Webhook POST failed. Caught inside webhook delivery, never surfaced."""
    status_code = 502
    message = "알림 전송에 실패했습니다."


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_content())
