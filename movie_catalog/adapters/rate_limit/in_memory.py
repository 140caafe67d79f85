"""In-memory token bucket rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: one lock guards the whole client registry. The lock is only
  held for in-memory bookkeeping, never across I/O or an ``await``.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from movie_catalog.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


@dataclass
class _ClientState:
    tokens: float
    updated_at: float
    last_seen: float


class InMemoryTokenBucketRateLimiter(AbstractRateLimiter):
    """Rate limiter keeping one token bucket per client identity.

    Each bucket starts full (``burst`` tokens) and refills continuously at
    ``rate`` tokens per second, never exceeding ``burst``. A request consumes
    one token; it is rejected when less than one token is available.
    """

    def __init__(
        self,
        *,
        rate: float,
        burst: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the limiter.

        Args:
            rate: Refill rate in tokens per second.
            burst: Bucket capacity.
            clock: Monotonic time source in seconds.

        Raises:
            ValueError: If rate or burst are invalid.
        """
        if rate <= 0:
            raise ValueError("rate must be > 0")
        if burst < 1:
            raise ValueError("burst must be >= 1")

        self._rate = rate
        self._burst = burst
        self._clock = clock
        self._lock = threading.Lock()
        self._clients: dict[str, _ClientState] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def _refill(self, state: _ClientState, now: float) -> None:
        elapsed = max(0.0, now - state.updated_at)
        state.tokens = min(float(self._burst), state.tokens + elapsed * self._rate)
        state.updated_at = now

    def _retry_after(self, tokens: float) -> int:
        return max(1, int(math.ceil((1.0 - tokens) / self._rate)))

    def allow(self, key: str) -> RateLimitResult:
        """Consume one token from ``key``'s bucket if one is available.

        Looking up or creating the state, refilling, consuming and stamping
        last-seen happen as one step under the registry lock, so two
        concurrent requests from the same client never see the same count.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        with self._lock:
            now = self._clock()
            state = self._clients.get(key)
            if state is None:
                state = _ClientState(tokens=float(self._burst), updated_at=now, last_seen=now)
                self._clients[key] = state
            else:
                self._refill(state, now)

            state.last_seen = now

            if state.tokens >= 1.0:
                state.tokens -= 1.0
                return RateLimitResult(
                    allowed=True,
                    limit=self._burst,
                    remaining=int(state.tokens),
                    retry_after_seconds=None,
                )

            return RateLimitResult(
                allowed=False,
                limit=self._burst,
                remaining=0,
                retry_after_seconds=self._retry_after(state.tokens),
            )

    def sweep(self, idle_seconds: float) -> int:
        with self._lock:
            now = self._clock()
            idle_keys = [
                key for key, state in self._clients.items() if now - state.last_seen > idle_seconds
            ]
            for key in idle_keys:
                del self._clients[key]
            return len(idle_keys)
