"""
Movie persistence (raw SQL over asyncpg).

Every operation is a single SQL statement bounded by ``timeout_seconds``; a
slow database surfaces as ``StorageTimeoutAppError`` instead of tying up the
request. Updates use optimistic locking on the ``version`` column: the UPDATE
only matches the row when its version still equals the version the caller
read, so of several concurrent writers starting from the same version exactly
one wins and the others get ``EditConflictAppError``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, TypeVar

import asyncpg

from movie_catalog.core.errors import (
    StorageAppError,
    StorageTimeoutAppError,
    edit_conflict,
    not_found,
)
from movie_catalog.core.filters import Filters, Metadata, calculate_metadata

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_QUERY_TIMEOUT_SECONDS = 3.0

_STORAGE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


@dataclass
class Movie:
    """A movie row. ``id``, ``created_at`` and ``version`` are store-assigned."""

    title: str | None = None
    year: int | None = None
    runtime: int | None = None
    genres: list[str] | None = field(default=None)
    id: int = 0
    created_at: datetime | None = None
    version: int = 0

    def to_public_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "year": self.year,
            "runtime": self.runtime,
            "genres": list(self.genres or []),
            "version": self.version,
        }


def _row_to_movie(row: Any) -> Movie:
    return Movie(
        id=int(row["id"]),
        created_at=row["created_at"],
        title=str(row["title"]),
        year=int(row["year"]),
        runtime=int(row["runtime"]),
        genres=list(row["genres"] or []),
        version=int(row["version"]),
    )


def _affected_rows(status: str) -> int:
    # asyncpg returns the command tag, e.g. "DELETE 1".
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


class MovieRepository:
    """CRUD and listing operations over the ``movies`` table."""

    def __init__(self, pool: Any, *, timeout_seconds: float = DEFAULT_QUERY_TIMEOUT_SECONDS) -> None:
        self._pool = pool
        self._timeout = timeout_seconds

    async def _run(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await a single statement with the query ceiling and map failures."""

        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.error(
                "db.timeout",
                extra={"operation": operation, "timeout_s": self._timeout},
            )
            raise StorageTimeoutAppError(
                code="storage_timeout",
                message=f"{operation} did not complete within {self._timeout}s",
                details={"operation": operation, "timeout_s": self._timeout},
            ) from exc
        except _STORAGE_ERRORS as exc:
            logger.error(
                "db.error",
                extra={
                    "operation": operation,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            raise StorageAppError(
                code="storage_error",
                message=f"{operation} failed: {type(exc).__name__}",
                details={"operation": operation},
            ) from exc

    async def get(self, movie_id: int) -> Movie:
        if movie_id < 1:
            raise not_found()

        row = await self._run(
            "movies.get",
            self._pool.fetchrow(
                """
                SELECT id, created_at, title, year, runtime, genres, version
                FROM movies
                WHERE id = $1
                """,
                movie_id,
            ),
        )
        if row is None:
            raise not_found()
        return _row_to_movie(row)

    async def insert(self, movie: Movie) -> Movie:
        """Insert a validated movie and fill in its store-assigned fields."""

        row = await self._run(
            "movies.insert",
            self._pool.fetchrow(
                """
                INSERT INTO movies (title, year, runtime, genres)
                VALUES ($1, $2, $3, $4)
                RETURNING id, created_at, version
                """,
                movie.title,
                movie.year,
                movie.runtime,
                list(movie.genres or []),
            ),
        )
        if row is None:
            raise StorageAppError(
                code="storage_error",
                message="movies.insert returned no row",
                details={"operation": "movies.insert"},
            )

        movie.id = int(row["id"])
        movie.created_at = row["created_at"]
        movie.version = int(row["version"])
        logger.info("movies.inserted", extra={"movie_id": movie.id})
        return movie

    async def update(self, movie: Movie) -> Movie:
        """Persist ``movie`` if its row is still at ``movie.version``.

        Raises:
            EditConflictAppError: The row was changed (or deleted) since the
                caller read it.
        """

        row = await self._run(
            "movies.update",
            self._pool.fetchrow(
                """
                UPDATE movies
                SET title = $1, year = $2, runtime = $3, genres = $4, version = version + 1
                WHERE id = $5 AND version = $6
                RETURNING version
                """,
                movie.title,
                movie.year,
                movie.runtime,
                list(movie.genres or []),
                movie.id,
                movie.version,
            ),
        )
        if row is None:
            logger.info(
                "movies.update.conflict",
                extra={"movie_id": movie.id, "expected_version": movie.version},
            )
            raise edit_conflict({"movie_id": movie.id, "expected_version": movie.version})

        movie.version = int(row["version"])
        return movie

    async def delete(self, movie_id: int) -> None:
        if movie_id < 1:
            raise not_found()

        status = await self._run(
            "movies.delete",
            self._pool.execute("DELETE FROM movies WHERE id = $1", movie_id),
        )
        if _affected_rows(status) == 0:
            raise not_found()
        logger.info("movies.deleted", extra={"movie_id": movie_id})

    async def list(
        self,
        title: str,
        genres: list[str],
        filters: Filters,
    ) -> tuple[list[Movie], Metadata]:
        """Return one page of matching movies plus metadata for the full match set.

        ``filters`` must have passed ``validate_filters``; the ORDER BY column
        comes from its closed lookup table, never from the raw sort token.
        """

        # Column and direction are from a fixed table, everything else is bound.
        query = f"""
            SELECT count(*) OVER() AS total_records,
                   id, created_at, title, year, runtime, genres, version
            FROM movies
            WHERE (to_tsvector('simple', title) @@ plainto_tsquery('simple', $1) OR $1 = '')
              AND (genres @> $2::text[] OR cardinality($2::text[]) = 0)
            ORDER BY {filters.sort_column()} {filters.sort_direction()}, id ASC
            LIMIT $3 OFFSET $4
        """
        rows = await self._run(
            "movies.list",
            self._pool.fetch(query, title, list(genres), filters.limit(), filters.offset()),
        )

        if rows:
            total_records = int(rows[0]["total_records"])
        elif filters.offset() > 0:
            # Page past the end: the window count is unavailable, count directly.
            total_records = int(
                await self._run(
                    "movies.count",
                    self._pool.fetchval(
                        """
                        SELECT count(*)
                        FROM movies
                        WHERE (to_tsvector('simple', title) @@ plainto_tsquery('simple', $1) OR $1 = '')
                          AND (genres @> $2::text[] OR cardinality($2::text[]) = 0)
                        """,
                        title,
                        list(genres),
                    ),
                )
                or 0
            )
        else:
            total_records = 0

        movies = [_row_to_movie(row) for row in rows]
        return movies, calculate_metadata(total_records, filters.page, filters.page_size)
