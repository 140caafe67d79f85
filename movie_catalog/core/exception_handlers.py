"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- Client-side AppError subclasses -> 400/404/409/422/429 with their message
- Server-side AppError subclasses -> 500 with a generic message (logged)
- Framework errors (unknown route, bad method, unparsable input) -> same shape
- Unexpected Exception -> generic 500 (safety net)
- All responses include request_id for distributed tracing
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from movie_catalog.core.config import settings
from movie_catalog.core.errors import (
    AppError,
    BadRequestAppError,
    EditConflictAppError,
    InternalAppError,
    NotFoundAppError,
    RateLimitedAppError,
    StorageAppError,
    StorageTimeoutAppError,
    ValidationAppError,
)
from movie_catalog.core.logging import get_request_id

logger = logging.getLogger(__name__)

SERVER_ERROR_MESSAGE = "the server encountered a problem and could not process your request"


def _error_response(
    status_code: int,
    code: str,
    message: str,
    *,
    details: dict | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    error_content = {
        "code": code,
        "message": message,
        "request_id": get_request_id(),
    }

    # Include details only if present (optional structured context)
    if details:
        error_content["details"] = details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers,
    )


def _rate_limit_headers(exc: RateLimitedAppError) -> dict[str, str] | None:
    if not settings.limiter.include_headers or not exc.details:
        return None
    return {
        "Retry-After": str(exc.details.get("retry_after", 1)),
        "X-RateLimit-Limit": str(exc.details.get("limit", 0)),
        "X-RateLimit-Remaining": str(exc.details.get("remaining", 0)),
    }


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Routes domain errors to appropriate HTTP status codes:
    - BadRequestAppError -> 400 Bad Request
    - NotFoundAppError -> 404 Not Found
    - EditConflictAppError -> 409 Conflict
    - ValidationAppError -> 422 Unprocessable Entity (field messages)
    - RateLimitedAppError -> 429 Too Many Requests
    - StorageAppError, StorageTimeoutAppError, InternalAppError and anything
      else -> 500 with a generic message

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    if isinstance(exc, ValidationAppError):
        status_code = 422
    elif isinstance(exc, BadRequestAppError):
        status_code = 400
    elif isinstance(exc, NotFoundAppError):
        status_code = 404
    elif isinstance(exc, EditConflictAppError):
        status_code = 409
    elif isinstance(exc, RateLimitedAppError):
        status_code = 429
    else:
        status_code = 500

    if status_code == 500:
        if isinstance(exc, StorageTimeoutAppError):
            event = "storage_timeout"
        elif isinstance(exc, StorageAppError):
            event = "storage_error"
        elif isinstance(exc, InternalAppError):
            # Logic defect: never expected in a correct build.
            event = "internal_error"
        else:
            event = "server_error"
        logger.error(
            event,
            extra={
                "error_code": exc.code,
                "error_message": exc.message,
                "error_details": exc.details,
                "request_path": request.url.path,
                "request_method": request.method,
                "request_id": get_request_id(),
            },
        )
        return _error_response(500, "internal_server_error", SERVER_ERROR_MESSAGE)

    logger.info(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        },
    )

    headers = _rate_limit_headers(exc) if isinstance(exc, RateLimitedAppError) else None
    return _error_response(
        status_code,
        exc.code,
        exc.message,
        details=dict(exc.details) if exc.details else None,
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors (unknown route, bad method) in the app shape."""

    if exc.status_code == 404:
        return _error_response(404, "not_found", "the requested resource could not be found")
    if exc.status_code == 405:
        return _error_response(
            405,
            "method_not_allowed",
            f"the {request.method} method is not supported for this resource",
            headers=getattr(exc, "headers", None),
        )
    return _error_response(
        exc.status_code,
        "http_error",
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report unparsable requests (bad JSON, wrong types, unknown fields) as 400."""

    problems: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "invalid value")
        problems.append(f"{location}: {message}" if location else message)

    logger.info(
        "bad_request",
        extra={
            "request_path": request.url.path,
            "problems": len(problems),
            "request_id": get_request_id(),
        },
    )
    return _error_response(
        400,
        "bad_request",
        "; ".join(problems) or "body contains badly-formed JSON",
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Catches any exception not handled by specific handlers.
    Logs detailed information for debugging while returning generic message.
    Prevents information leakage (no stack traces to client).

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with generic error (no implementation details leaked).
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return _error_response(500, "internal_server_error", SERVER_ERROR_MESSAGE)


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Must be called during app initialization, before route registration.
    Order matters: specific handlers registered before general fallback.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(Exception)(general_exception_handler)
