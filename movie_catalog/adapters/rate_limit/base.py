"""Rate limiter interfaces.

The API depends on this abstraction (not the concrete implementation) so the
HTTP layer and the idle-state sweeper never reach into limiter internals.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of an admission decision.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Bucket capacity (burst) for the client.
        remaining: Whole tokens left after this decision.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for per-client rate limiters."""

    @abstractmethod
    def allow(self, key: str) -> RateLimitResult:
        """Decide whether one more request from ``key`` is admitted.

        Args:
            key: Client identity (e.g., remote IP address).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def sweep(self, idle_seconds: float) -> int:
        """Forget clients not seen for longer than ``idle_seconds``.

        Returns:
            Number of evicted client states.
        """
        raise NotImplementedError

    @abstractmethod
    def __len__(self) -> int:
        raise NotImplementedError
