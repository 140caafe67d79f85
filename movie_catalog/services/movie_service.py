"""Movie business logic between the HTTP layer and the repository.

This service owns the rules the database does not express:
- Field validation (title length, year range, runtime, genre set)
- Partial-update semantics (absent field keeps its value)
- Client-side version expectations on update
- Listing filter validation before anything reaches SQL
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from movie_catalog.adapters.db.movies_repository import Movie, MovieRepository
from movie_catalog.core.errors import ValidationAppError, edit_conflict
from movie_catalog.core.filters import Filters, Metadata, validate_filters
from movie_catalog.core.validator import Validator, unique

logger = logging.getLogger(__name__)

MAX_TITLE_BYTES = 500
MIN_YEAR = 2000
MAX_GENRES = 5

UPDATABLE_FIELDS = ("title", "year", "runtime", "genres")


def _current_year() -> int:
    return datetime.now(timezone.utc).year


def validate_movie(v: Validator, movie: Movie, *, current_year: int | None = None) -> None:
    """Record every field problem of ``movie`` on ``v``.

    Checks for a field run in order and the last failing one wins, so the
    presence check of each field comes last: a missing year reads
    "must be provided", not a range message.
    """
    this_year = current_year if current_year is not None else _current_year()

    title = movie.title if isinstance(movie.title, str) else ""
    v.check(len(title.encode("utf-8")) <= MAX_TITLE_BYTES, "title", "must not be more than 500 bytes long")
    v.check(title != "", "title", "must be provided")

    year = movie.year or 0
    v.check(year >= MIN_YEAR, "year", "must be 2000 or later")
    v.check(year <= this_year, "year", "must not be in the future")
    v.check(year != 0, "year", "must be provided")

    runtime = movie.runtime or 0
    v.check(runtime > 0, "runtime", "must be a positive integer")
    v.check(runtime != 0, "runtime", "must be provided")

    genres = movie.genres or []
    v.check(len(genres) >= 1, "genres", "must contain at least 1 genre")
    v.check(len(genres) <= MAX_GENRES, "genres", "must not contain more than 5 genres")
    v.check(unique(genres), "genres", "must not contain duplicate values")
    v.check(movie.genres is not None, "genres", "must be provided")


class MovieService:
    """Validate input, then delegate to ``MovieRepository``."""

    def __init__(
        self,
        repository: MovieRepository,
        *,
        current_year: Callable[[], int] = _current_year,
    ) -> None:
        self._repository = repository
        self._current_year = current_year

    def _ensure_valid(self, movie: Movie) -> None:
        v = Validator()
        validate_movie(v, movie, current_year=self._current_year())
        if not v.valid():
            logger.info("movies.validation_failed", extra={"fields": sorted(v.errors)})
            raise ValidationAppError.from_fields(v.errors)

    async def create(
        self,
        *,
        title: str | None,
        year: int | None,
        runtime: int | None,
        genres: list[str] | None,
    ) -> Movie:
        movie = Movie(title=title, year=year, runtime=runtime, genres=genres)
        self._ensure_valid(movie)
        return await self._repository.insert(movie)

    async def get(self, movie_id: int) -> Movie:
        return await self._repository.get(movie_id)

    async def update(
        self,
        movie_id: int,
        changes: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> Movie:
        """Apply a partial update using optimistic locking.

        Args:
            movie_id: Movie to update.
            changes: Only the fields the client supplied; values may be empty.
            expected_version: Version the client last read, if it sent one.

        Raises:
            NotFoundAppError: No such movie.
            EditConflictAppError: ``expected_version`` is stale, or another
                writer updated the row between our read and write.
            ValidationAppError: The merged movie is invalid.
        """
        movie = await self._repository.get(movie_id)

        if expected_version is not None and expected_version != movie.version:
            logger.info(
                "movies.update.stale_version",
                extra={
                    "movie_id": movie_id,
                    "expected_version": expected_version,
                    "current_version": movie.version,
                },
            )
            raise edit_conflict(
                {
                    "movie_id": movie_id,
                    "expected_version": expected_version,
                    "current_version": movie.version,
                }
            )

        for name in UPDATABLE_FIELDS:
            if name in changes:
                setattr(movie, name, changes[name])

        self._ensure_valid(movie)
        return await self._repository.update(movie)

    async def delete(self, movie_id: int) -> None:
        await self._repository.delete(movie_id)

    async def list(
        self,
        *,
        title: str,
        genres: list[str],
        filters: Filters,
        validator: Validator | None = None,
    ) -> tuple[list[Movie], Metadata]:
        """Validate ``filters`` (adding to ``validator``'s errors) and list.

        ``validator`` lets the caller pass in problems found while reading the
        query string (e.g., a non-integer page) so they are reported together.
        """
        v = validator or Validator()
        validate_filters(v, filters)
        if not v.valid():
            raise ValidationAppError.from_fields(v.errors)

        cleaned_genres = [g.strip() for g in genres if g.strip()]
        return await self._repository.list(title.strip(), cleaned_genres, filters)
