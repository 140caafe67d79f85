"""
Async PostgreSQL connection pool (raw SQL) using asyncpg.

The app factory opens the pool on startup and closes it on shutdown (see
``movie_catalog/core/app_factory.py``); the pool object is kept on
``app.state`` and handed to repositories, never stored in a module global.

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
"""

from __future__ import annotations

import asyncio
import logging

import asyncpg

from movie_catalog.core.config import DatabaseSettings, settings

logger = logging.getLogger(__name__)


def database_dsn(db_settings: DatabaseSettings | None = None) -> str:
    cfg = db_settings or settings.db
    dsn = cfg.dsn.strip()
    if not dsn:
        raise RuntimeError("DB_DSN is not set.")
    return dsn


async def open_pool(db_settings: DatabaseSettings | None = None) -> asyncpg.Pool:
    """Create the pool and verify the database answers.

    Raises:
        RuntimeError: If no DSN is configured.
        asyncio.TimeoutError: If the database does not answer the startup ping
            within ``DB_CONNECT_TIMEOUT_SECONDS``.
    """
    cfg = db_settings or settings.db
    pool = await asyncpg.create_pool(
        dsn=database_dsn(cfg),
        min_size=cfg.min_pool_size,
        max_size=cfg.max_pool_size,
        max_inactive_connection_lifetime=cfg.max_idle_seconds,
        timeout=cfg.connect_timeout_seconds,
    )
    try:
        await asyncio.wait_for(pool.fetchval("SELECT 1"), timeout=cfg.connect_timeout_seconds)
    except BaseException:
        await pool.close()
        raise

    logger.info(
        "db.pool_established",
        extra={"min_size": cfg.min_pool_size, "max_size": cfg.max_pool_size},
    )
    return pool


async def close_pool(pool: asyncpg.Pool | None) -> None:
    if pool is None:
        return None
    await pool.close()
    logger.info("db.pool_closed")
