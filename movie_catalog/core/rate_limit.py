"""Rate limiting middleware for the HTTP layer.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: routes know nothing about limiting; one middleware
  guards the whole `/v1` surface.
- Explicit ownership: the limiter instance is built by the app factory and
  lives on ``app.state``; there is no module-level registry.
- Early rejection: admission is decided in HTTP middleware, before routing,
  body parsing or any handler work, so over-budget clients get 429 even for
  unknown paths or malformed bodies.

Rate limiting strategy:
- Token bucket per client address (host only, no port).
- A missing client address is an internal error, not a throttling decision.
"""

from __future__ import annotations

import hashlib
import logging

from fastapi import Request, Response

from movie_catalog.adapters.rate_limit.base import AbstractRateLimiter
from movie_catalog.adapters.rate_limit.in_memory import InMemoryTokenBucketRateLimiter
from movie_catalog.core.config import LimiterSettings, settings
from movie_catalog.core.errors import AppError, InternalAppError, RateLimitedAppError
from movie_catalog.core.exception_handlers import app_error_handler

logger = logging.getLogger(__name__)

RATE_LIMITED_PREFIX = "/v1"


def build_rate_limiter(limiter_settings: LimiterSettings | None = None) -> AbstractRateLimiter:
    """Create the limiter configured by ``LIMITER_*`` settings."""

    cfg = limiter_settings or settings.limiter
    return InMemoryTokenBucketRateLimiter(rate=cfg.rps, burst=cfg.burst)


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """Return the limiter owned by the running application.

    Raises:
        InternalAppError: If the app was built without a limiter.
    """

    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        raise InternalAppError(
            code="rate_limiter_missing",
            message="rate limiter is not configured on the application",
        )
    return limiter


def client_identity(request: Request) -> str:
    """Extract the client identity (remote host without port).

    Raises:
        InternalAppError: If the connection carries no usable address.
    """

    host = request.client.host.strip() if request.client and request.client.host else ""
    if not host:
        raise InternalAppError(
            code="client_address_unavailable",
            message="unable to determine the client address",
        )
    return host


def _hash_limiter_key(key: str) -> str:
    """Hash the client identity for logging without exposing addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


async def enforce_rate_limit(request: Request) -> None:
    """Admit or reject one request from the calling client.

    When enabled, consumes one token from the client's bucket. If the bucket
    is empty, raises ``RateLimitedAppError`` (rendered as HTTP 429).

    Raises:
        RateLimitedAppError: When the client is over budget.
        InternalAppError: When the client address cannot be determined.
    """

    if not settings.limiter.enabled:
        return

    limiter = get_rate_limiter(request)
    key = client_identity(request)

    result = limiter.allow(key)
    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_hash": _hash_limiter_key(key),
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return

    retry_after = result.retry_after_seconds or 1
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_hash": _hash_limiter_key(key),
            "limit": result.limit,
            "rate_rps": settings.limiter.rps,
            "retry_after_s": retry_after,
        },
    )

    raise RateLimitedAppError(
        code="rate_limit_exceeded",
        message="rate limit exceeded",
        details={
            "limit": result.limit,
            "remaining": result.remaining,
            "retry_after": retry_after,
        },
    )


def _is_rate_limited_path(path: str) -> bool:
    return path == RATE_LIMITED_PREFIX or path.startswith(RATE_LIMITED_PREFIX + "/")


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """Apply ``enforce_rate_limit`` to every ``/v1`` request before routing.

    Rejections are rendered by ``app_error_handler`` so they share the error
    envelope, status mapping and ``Retry-After`` headers of handled errors.
    """

    if _is_rate_limited_path(request.url.path):
        try:
            await enforce_rate_limit(request)
        except AppError as exc:
            return await app_error_handler(request, exc)
    return await call_next(request)
