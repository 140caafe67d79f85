"""
Movies table DDL.

The same statements ship as SQL files under ``migrations/`` for external
migration tools; ``apply_schema`` runs them idempotently when
``DB_AUTO_MIGRATE`` is enabled.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS movies (
        id bigserial PRIMARY KEY,
        created_at timestamp(0) with time zone NOT NULL DEFAULT now(),
        title text NOT NULL,
        year integer NOT NULL,
        runtime integer NOT NULL,
        genres text[] NOT NULL,
        version integer NOT NULL DEFAULT 1
    )
    """,
    """
    DO $$
    BEGIN
        IF NOT EXISTS (SELECT 1 FROM pg_constraint WHERE conname = 'movies_runtime_check') THEN
            ALTER TABLE movies ADD CONSTRAINT movies_runtime_check CHECK (runtime > 0);
        END IF;
        IF NOT EXISTS (SELECT 1 FROM pg_constraint WHERE conname = 'movies_year_check') THEN
            ALTER TABLE movies ADD CONSTRAINT movies_year_check
                CHECK (year BETWEEN 2000 AND date_part('year', now()));
        END IF;
        IF NOT EXISTS (SELECT 1 FROM pg_constraint WHERE conname = 'genres_length_check') THEN
            ALTER TABLE movies ADD CONSTRAINT genres_length_check
                CHECK (array_length(genres, 1) BETWEEN 1 AND 5);
        END IF;
    END
    $$
    """,
    """
    CREATE INDEX IF NOT EXISTS movies_title_idx
        ON movies USING GIN (to_tsvector('simple', title))
    """,
    """
    CREATE INDEX IF NOT EXISTS movies_genres_idx
        ON movies USING GIN (genres)
    """,
)


async def apply_schema(pool) -> None:
    """Create the movies table, constraints and search indexes if missing."""

    async with pool.acquire() as conn:
        async with conn.transaction():
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)
    logger.info("db.schema_applied", extra={"statements": len(SCHEMA_STATEMENTS)})
