"""Tests for the idle-state sweeper background task."""

import asyncio
import logging
from unittest.mock import Mock

import pytest

from movie_catalog.adapters.rate_limit.in_memory import InMemoryTokenBucketRateLimiter
from movie_catalog.adapters.rate_limit.sweeper import IdleStateSweeper


def _limiter(clock: Mock) -> InMemoryTokenBucketRateLimiter:
    return InMemoryTokenBucketRateLimiter(rate=2, burst=4, clock=clock)


def test_sweep_once_evicts_idle_clients() -> None:
    clock = Mock(return_value=0.0)
    limiter = _limiter(clock)
    limiter.allow("a")
    limiter.allow("b")

    sweeper = IdleStateSweeper(limiter, interval_seconds=60, idle_seconds=180)

    clock.return_value = 100.0
    assert sweeper.sweep_once() == 0

    clock.return_value = 181.0
    assert sweeper.sweep_once() == 2
    assert len(limiter) == 0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"interval_seconds": 0, "idle_seconds": 180},
        {"interval_seconds": 60, "idle_seconds": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        IdleStateSweeper(_limiter(Mock(return_value=0.0)), **kwargs)


@pytest.mark.asyncio
async def test_background_loop_sweeps_and_stops() -> None:
    clock = Mock(return_value=0.0)
    limiter = _limiter(clock)
    limiter.allow("a")
    clock.return_value = 1000.0

    sweeper = IdleStateSweeper(limiter, interval_seconds=0.01, idle_seconds=180)
    sweeper.start()
    assert sweeper.running is True

    for _ in range(100):
        if len(limiter) == 0:
            break
        await asyncio.sleep(0.01)
    assert len(limiter) == 0

    await sweeper.stop()
    assert sweeper.running is False


@pytest.mark.asyncio
async def test_start_is_idempotent_and_stop_without_start_is_noop() -> None:
    sweeper = IdleStateSweeper(_limiter(Mock(return_value=0.0)), interval_seconds=60, idle_seconds=180)

    await sweeper.stop()

    sweeper.start()
    first_task = sweeper._task
    sweeper.start()
    assert sweeper._task is first_task

    await sweeper.stop()
    assert sweeper.running is False


class _FlakyLimiter:
    """Limiter whose first sweep fails."""

    def __init__(self) -> None:
        self.sweeps = 0

    def sweep(self, idle_seconds: float) -> int:
        self.sweeps += 1
        if self.sweeps == 1:
            raise RuntimeError("registry unavailable")
        return 0

    def __len__(self) -> int:
        return 0


@pytest.mark.asyncio
async def test_failed_sweep_is_logged_and_loop_keeps_running(caplog: pytest.LogCaptureFixture) -> None:
    limiter = _FlakyLimiter()
    sweeper = IdleStateSweeper(limiter, interval_seconds=0.01, idle_seconds=180)

    with caplog.at_level(logging.ERROR, logger="movie_catalog.adapters.rate_limit.sweeper"):
        sweeper.start()
        for _ in range(100):
            if limiter.sweeps >= 3:
                break
            await asyncio.sleep(0.01)

        assert limiter.sweeps >= 3
        assert sweeper.running is True
        await sweeper.stop()

    assert any(r.getMessage() == "rate_limit.sweep_failed" for r in caplog.records)
