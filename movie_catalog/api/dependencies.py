"""Request parsing helpers and FastAPI dependencies for the movie routes."""

from __future__ import annotations

import logging
import re
from typing import Annotated

from fastapi import Header, Request
from starlette.datastructures import QueryParams

from movie_catalog.adapters.db.movies_repository import MovieRepository
from movie_catalog.core.config import settings
from movie_catalog.core.errors import BadRequestAppError, InternalAppError, not_found
from movie_catalog.core.validator import Validator
from movie_catalog.services.movie_service import MovieService

logger = logging.getLogger(__name__)

# Optional sign and ASCII digits only (no "1_000", no non-ASCII digits).
_INTEGER = re.compile(r"[+-]?[0-9]+")


def parse_int(raw: str) -> int:
    """Parse a base-10 integer, raising ``ValueError`` for anything else."""

    if not _INTEGER.fullmatch(raw):
        raise ValueError(f"invalid integer: {raw!r}")
    return int(raw)


def read_id(raw: str) -> int:
    """Parse a path id; anything that is not a positive integer is a 404."""

    try:
        movie_id = parse_int(raw)
    except ValueError:
        raise not_found() from None
    if movie_id < 1:
        raise not_found()
    return movie_id


def read_string(query: QueryParams, key: str, default: str) -> str:
    value = query.get(key)
    return value if value else default


def read_csv(query: QueryParams, key: str, default: list[str]) -> list[str]:
    value = query.get(key)
    if not value:
        return list(default)
    return value.split(",")


def read_int(query: QueryParams, key: str, default: int, v: Validator) -> int:
    """Read an integer query value, recording a field error when it is not one."""

    value = query.get(key)
    if not value:
        return default
    try:
        return parse_int(value)
    except ValueError:
        v.add_error(key, "must be an integer")
        return default


def get_movie_repository(request: Request) -> MovieRepository:
    pool = getattr(request.app.state, "db_pool", None)
    if pool is None:
        raise InternalAppError(
            code="db_pool_missing",
            message="database pool is not initialized",
        )
    return MovieRepository(pool, timeout_seconds=settings.db.query_timeout_seconds)


def get_movie_service(request: Request) -> MovieService:
    return MovieService(get_movie_repository(request))


async def limit_body_size(request: Request) -> None:
    """Reject request bodies larger than ``APP_MAX_BODY_BYTES``.

    Counts the bytes actually received, so chunked uploads without a
    ``Content-Length`` header are capped too.
    """

    max_bytes = settings.app.max_body_bytes
    body_length = len(await request.body())
    if body_length > max_bytes:
        logger.warning(
            "request.body_too_large",
            extra={"body_bytes": body_length, "max_bytes": max_bytes},
        )
        raise BadRequestAppError(
            code="body_too_large",
            message=f"body must not be larger than {max_bytes} bytes",
        )


def read_expected_version(
    x_expected_version: Annotated[str | None, Header(alias="X-Expected-Version")] = None,
) -> int | None:
    """Version the client last read, from the optional ``X-Expected-Version`` header."""

    if x_expected_version is None or x_expected_version.strip() == "":
        return None
    try:
        return parse_int(x_expected_version.strip())
    except ValueError:
        raise BadRequestAppError(
            code="invalid_expected_version",
            message="X-Expected-Version header must be an integer",
        ) from None
