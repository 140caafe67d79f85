"""Background task evicting idle client state from a rate limiter.

Without eviction the registry grows with every distinct client address ever
seen. The sweeper wakes on a fixed interval and drops clients idle for longer
than the configured threshold. It only touches the limiter through
``AbstractRateLimiter.sweep``, which holds the registry lock for the duration
of the sweep itself, never for the sleep.
"""

from __future__ import annotations

import asyncio
import logging

from movie_catalog.adapters.rate_limit.base import AbstractRateLimiter

logger = logging.getLogger(__name__)


class IdleStateSweeper:
    """Periodic, cancellable idle-state cleanup for a rate limiter."""

    def __init__(
        self,
        limiter: AbstractRateLimiter,
        *,
        interval_seconds: float,
        idle_seconds: float,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        if idle_seconds <= 0:
            raise ValueError("idle_seconds must be > 0")

        self._limiter = limiter
        self._interval = interval_seconds
        self._idle = idle_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep_once(self) -> int:
        evicted = self._limiter.sweep(self._idle)
        if evicted:
            logger.info(
                "rate_limit.sweep",
                extra={
                    "evicted": evicted,
                    "tracked": len(self._limiter),
                    "idle_s": self._idle,
                },
            )
        return evicted

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.sweep_once()
            except Exception as exc:
                # Keep the loop alive; the next interval retries.
                logger.error(
                    "rate_limit.sweep_failed",
                    extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
                    exc_info=True,
                )

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop (idempotent)."""

        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="rate-limit-sweeper")
        logger.debug(
            "rate_limit.sweeper_started",
            extra={"interval_s": self._interval, "idle_s": self._idle},
        )

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""

        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("rate_limit.sweeper_stopped")
