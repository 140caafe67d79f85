"""Listing filters: pagination, sort safelists and result metadata.

User-controlled sort tokens end up in an ORDER BY clause, which cannot be
parameterized. Tokens are therefore checked against a closed safelist and the
column identifier is looked up in a fixed table; nothing from the raw token is
ever formatted into SQL.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from movie_catalog.core.errors import InternalAppError
from movie_catalog.core.validator import Validator, permitted_value

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE = 10_000_000
MAX_PAGE_SIZE = 100

# Accepted (unprefixed) sort tokens -> SQL column identifiers.
MOVIE_SORT_COLUMNS: dict[str, str] = {
    "id": "id",
    "title": "title",
    "year": "year",
    "runtime": "runtime",
}

MOVIE_SORT_SAFELIST: tuple[str, ...] = tuple(MOVIE_SORT_COLUMNS) + tuple(
    f"-{token}" for token in MOVIE_SORT_COLUMNS
)


@dataclass(frozen=True)
class Filters:
    """Validated-on-demand listing parameters.

    Attributes:
        page: 1-based page number.
        page_size: Number of records per page.
        sort: Sort token, optionally prefixed with ``-`` for descending.
        sort_safelist: Tokens accepted for ``sort``.
        sort_columns: Closed lookup from unprefixed token to column name.
    """

    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE
    sort: str = "id"
    sort_safelist: tuple[str, ...] = MOVIE_SORT_SAFELIST
    sort_columns: dict[str, str] = field(
        default_factory=lambda: dict(MOVIE_SORT_COLUMNS),
        hash=False,
    )

    def sort_column(self) -> str:
        """Return the column identifier for the sort token.

        Raises:
            InternalAppError: If the token was never validated against the
                safelist. Reaching this is a logic defect in the caller.
        """

        if self.sort in self.sort_safelist:
            column = self.sort_columns.get(self.sort.lstrip("-"))
            if column is not None:
                return column

        raise InternalAppError(
            code="unsafe_sort_parameter",
            message="unsafe sort parameter",
            details={"context": {"sort": self.sort}},
        )

    def sort_direction(self) -> str:
        return "DESC" if self.sort.startswith("-") else "ASC"

    def limit(self) -> int:
        return self.page_size

    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def validate_filters(v: Validator, filters: Filters) -> None:
    """Run every pagination and sort check, recording failures on ``v``."""

    v.check(filters.page > 0, "page", "must be greater than zero")
    v.check(filters.page <= MAX_PAGE, "page", "must be a maximum of 10 million")
    v.check(filters.page_size > 0, "page_size", "must be greater than zero")
    v.check(filters.page_size <= MAX_PAGE_SIZE, "page_size", "must be a maximum of 100")

    v.check(permitted_value(filters.sort, *filters.sort_safelist), "sort", "invalid sort value")


@dataclass(frozen=True)
class Metadata:
    """Pagination metadata returned next to a page of results."""

    current_page: int = 0
    page_size: int = 0
    last_page: int = 0
    total_records: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "current_page": self.current_page,
            "page_size": self.page_size,
            "last_page": self.last_page,
            "total_records": self.total_records,
        }


def calculate_metadata(total_records: int, page: int, page_size: int) -> Metadata:
    if total_records == 0:
        return Metadata()

    return Metadata(
        current_page=page,
        page_size=page_size,
        last_page=math.ceil(total_records / page_size),
        total_records=total_records,
    )
