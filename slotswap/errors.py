"""Domain error taxonomy - every error is user-facing and maps to a 4xx response"""

from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse


class SlotSwapError(Exception):
    """Base class for recoverable, user-facing errors"""

    status_code = 400
    default_detail = "Request could not be processed"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFoundError(SlotSwapError):
    status_code = 404
    default_detail = "Not found"


class ForbiddenError(SlotSwapError):
    status_code = 403
    default_detail = "Not authorized to perform this action"


class InvalidOperationError(SlotSwapError):
    status_code = 400
    default_detail = "Invalid operation"


class ConflictError(SlotSwapError):
    """Raised when a guarded write lost a race with a concurrent operation"""

    status_code = 409
    default_detail = "The resource was modified by another request. Please retry."


class UnauthorizedError(SlotSwapError):
    status_code = 401
    default_detail = "Not authenticated"


async def slotswap_error_handler(request: Request, exc: SlotSwapError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)
