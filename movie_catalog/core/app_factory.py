"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers and
owned resources) to improve testability. The rate limiter is created here
and stored on ``app.state``; the database pool and the idle-state sweeper are
tied to the application lifespan.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from movie_catalog.adapters.db.pool import close_pool, open_pool
from movie_catalog.adapters.db.schema import apply_schema
from movie_catalog.adapters.rate_limit.sweeper import IdleStateSweeper
from movie_catalog.api.routes import health_router, movies_router
from movie_catalog.core.config import settings
from movie_catalog.core.exception_handlers import setup_exception_handlers
from movie_catalog.core.logging import configure_logging
from movie_catalog.core.middleware import request_id_middleware
from movie_catalog.core.openapi import apply_openapi_customizations
from movie_catalog.core.rate_limit import build_rate_limiter, rate_limit_middleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the DB pool and start the sweeper; undo both on shutdown."""

    if getattr(app.state, "db_pool", None) is None:
        app.state.db_pool = await open_pool(settings.db)
    if settings.db.auto_migrate:
        await apply_schema(app.state.db_pool)

    sweeper: IdleStateSweeper | None = None
    if settings.limiter.enabled:
        sweeper = IdleStateSweeper(
            app.state.rate_limiter,
            interval_seconds=settings.limiter.sweep_interval_seconds,
            idle_seconds=settings.limiter.idle_seconds,
        )
        sweeper.start()
    app.state.sweeper = sweeper

    logger.info(
        "app.started",
        extra={
            "environment": settings.app_env,
            "version": settings.app.version,
            "rate_limit_enabled": settings.limiter.enabled,
        },
    )
    try:
        yield
    finally:
        if sweeper is not None:
            await sweeper.stop()
        await close_pool(app.state.db_pool)
        app.state.db_pool = None
        logger.info("app.stopped")


def create_app(*, db_pool=None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        db_pool: Optional pre-built pool (anything with asyncpg's
            ``fetch``/``fetchrow``/``fetchval``/``execute``). When omitted the
            lifespan opens one from ``DB_*`` settings.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Movie Catalog API",
        description=(
            "JSON API to create, read, update, delete and list movies. "
            "Listing supports full-text title search, genre filtering, "
            "safelisted sorting and pagination. Updates use optimistic "
            "locking on a version number; clients are rate limited per address."
        ),
        version=settings.app.version,
        lifespan=lifespan,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )

    app.state.rate_limiter = build_rate_limiter(settings.limiter)
    app.state.db_pool = db_pool
    app.state.sweeper = None

    # Middleware; the last registered runs first, so request ids are assigned
    # before admission and rejected requests still carry one
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(health_router, prefix="/v1")
    app.include_router(movies_router, prefix="/v1")

    # OpenAPI customizations (tags, shared error responses)
    apply_openapi_customizations(app)

    return app
