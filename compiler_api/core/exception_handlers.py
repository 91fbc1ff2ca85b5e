"""Global exception handlers for consistent error responses.

Every error leaves the API in one shape::

    {"success": false, "message": ..., "code": ..., "statusCode": ...,
     "timestamp": ..., "request_id": ...}

Design:
- AppError subclasses carry their own HTTP status (400, 401, 404, 500)
- JudgeAppError answers with the upstream status when one was received
- Framework 404/405 and request validation errors use the same envelope
- RateLimitExceededError is control flow, rendered as the 429 limiter body
- Unexpected Exception → generic 500 (safety net, no details leaked)
"""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from compiler_api.core.errors import AppError, JudgeAppError
from compiler_api.core.logging import get_request_id
from compiler_api.core.rate_limit import RateLimitExceededError, rate_limit_exceeded_handler

logger = logging.getLogger(__name__)


def error_body(status_code: int, code: str, message: str, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "success": False,
        "message": message,
        "code": code,
        "statusCode": status_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": get_request_id(),
    }
    body.update(extra)
    return body


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the error's status code and the standard envelope;
        ``details`` is included only when present.
    """
    status_code = exc.http_status if isinstance(exc, JudgeAppError) else exc.status_code

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    extra: dict[str, Any] = {}
    if isinstance(exc, JudgeAppError):
        # Compile clients read the upstream reason from ``error``.
        extra["error"] = exc.message
        message = "Code execution failed"
    else:
        message = exc.message
    if exc.details:
        extra["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content=error_body(status_code, exc.code, message, **extra),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors (unknown route, wrong method) in the envelope."""

    if exc.status_code == 404:
        code, message = "not_found", f"Not Found - {request.url.path}"
    else:
        code, message = "http_error", str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, code, message),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    logger.info(
        "request_validation_failed",
        extra={"request_path": request.url.path, "error_count": len(errors)},
    )
    return JSONResponse(
        status_code=400,
        content=error_body(400, "validation_error", "Invalid request", details={"errors": errors}),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs the failure for debugging while returning a generic message, so no
    stack trace or internal detail reaches the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
        exc_info=exc,
    )

    return JSONResponse(
        status_code=500,
        content=error_body(500, "internal_server_error", "An unexpected error occurred. Please try again later."),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Example:
        >>> from fastapi import FastAPI
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(RateLimitExceededError)(rate_limit_exceeded_handler)
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
