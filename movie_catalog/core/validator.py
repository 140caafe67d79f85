"""Field-keyed validation bookkeeping.

A ``Validator`` is a per-request accumulator: create a fresh one for each
request, run every check, then inspect ``valid()``. Checks never abort early,
so the caller always gets the full set of field messages in one response.
"""

from __future__ import annotations

from typing import Hashable, Iterable


class Validator:
    """Collect at most one human-readable message per field."""

    def __init__(self) -> None:
        self.errors: dict[str, str] = {}

    def valid(self) -> bool:
        return not self.errors

    def add_error(self, key: str, message: str) -> None:
        # Last failing check for a field wins.
        self.errors[key] = message

    def check(self, ok: bool, key: str, message: str) -> None:
        """Record ``message`` under ``key`` when ``ok`` is false."""

        if not ok:
            self.add_error(key, message)


def unique(values: Iterable[Hashable]) -> bool:
    """Return True if every element of ``values`` is distinct (case-sensitive)."""

    seen: set[Hashable] = set()
    for value in values:
        if value in seen:
            return False
        seen.add(value)
    return True


def permitted_value(value: str, *permitted: str) -> bool:
    return value in permitted
