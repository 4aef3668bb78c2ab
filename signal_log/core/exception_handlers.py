"""Global exception handlers for consistent error responses.

Design:
- ValidationAppError → 400, AuthenticationAppError → 403
- RateLimitExceeded → the limiter's plain-text 429
- Unexpected Exception → generic 500 (safety net)
- All responses carry the request_id for correlation
"""

import logging

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from signal_log.core.errors import AppError, AuthenticationAppError
from signal_log.core.logging import get_request_id
from signal_log.core.rate_limit import RateLimitExceeded

logger = logging.getLogger(__name__)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError as ``{"error": {...}}`` with a matching status code."""
    status_code = 403 if isinstance(exc, AuthenticationAppError) else 400

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "status_code": status_code,
            "request_path": request.url.path,
            "has_details": bool(exc.details),
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(status_code=status_code, content={"error": error_content})


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    return exc.response


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback for unexpected errors; never leaks exception text to clients."""
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the handlers on ``app``. Safe to call more than once."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RateLimitExceeded)(rate_limit_exceeded_handler)
    app.exception_handler(Exception)(general_exception_handler)
