"""Unit tests for in-memory token bucket rate limiter adapter."""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier
from unittest.mock import Mock

import pytest

from movie_catalog.adapters.rate_limit.in_memory import InMemoryTokenBucketRateLimiter


def test_allows_full_burst_then_blocks() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryTokenBucketRateLimiter(rate=2, burst=4, clock=clock)

    results = [limiter.allow("k") for _ in range(4)]
    assert all(r.allowed for r in results)
    assert [r.remaining for r in results] == [3, 2, 1, 0]

    blocked = limiter.allow("k")
    assert blocked.allowed is False
    assert blocked.limit == 4
    assert blocked.remaining == 0
    assert blocked.retry_after_seconds == 1


def test_refills_at_rate() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryTokenBucketRateLimiter(rate=2, burst=4, clock=clock)

    for _ in range(4):
        assert limiter.allow("k").allowed is True
    assert limiter.allow("k").allowed is False

    # Half a second at 2 tokens/s buys exactly one request.
    clock.return_value = 1000.5
    assert limiter.allow("k").allowed is True
    assert limiter.allow("k").allowed is False


def test_refill_never_exceeds_burst() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryTokenBucketRateLimiter(rate=2, burst=4, clock=clock)

    assert limiter.allow("k").allowed is True

    clock.return_value = 2000.0
    allowed = 0
    while limiter.allow("k").allowed:
        allowed += 1
    assert allowed == 4


def test_retry_after_rounds_up_to_whole_seconds() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryTokenBucketRateLimiter(rate=0.25, burst=1, clock=clock)

    assert limiter.allow("k").allowed is True
    blocked = limiter.allow("k")
    assert blocked.allowed is False
    assert blocked.retry_after_seconds == 4


def test_isolated_by_key() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryTokenBucketRateLimiter(rate=1, burst=1, clock=clock)

    assert limiter.allow("10.0.0.1").allowed is True
    assert limiter.allow("10.0.0.1").allowed is False

    assert limiter.allow("10.0.0.2").allowed is True
    assert len(limiter) == 2


def test_sweep_evicts_only_idle_clients() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryTokenBucketRateLimiter(rate=2, burst=4, clock=clock)

    limiter.allow("old")
    clock.return_value = 1150.0
    limiter.allow("recent")

    clock.return_value = 1200.0
    assert limiter.sweep(180) == 1
    assert len(limiter) == 1

    # The evicted client starts again with a full bucket.
    assert limiter.allow("old").remaining == 3


def test_sweep_keeps_client_seen_exactly_at_threshold() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryTokenBucketRateLimiter(rate=2, burst=4, clock=clock)

    limiter.allow("k")
    clock.return_value = 1180.0
    assert limiter.sweep(180) == 0
    assert len(limiter) == 1


def test_rejected_request_still_counts_as_seen() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryTokenBucketRateLimiter(rate=0.001, burst=1, clock=clock)

    limiter.allow("k")
    clock.return_value = 1100.0
    assert limiter.allow("k").allowed is False

    clock.return_value = 1250.0
    assert limiter.sweep(180) == 0


def test_concurrent_callers_never_share_a_token() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryTokenBucketRateLimiter(rate=2, burst=4, clock=clock)
    callers = 50
    start = Barrier(callers)

    def call(_: int) -> bool:
        start.wait()
        return limiter.allow("k").allowed

    with ThreadPoolExecutor(max_workers=callers) as pool:
        results = list(pool.map(call, range(callers)))

    assert results.count(True) == 4
    assert len(limiter) == 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"rate": 0, "burst": 4},
        {"rate": -1, "burst": 4},
        {"rate": 2, "burst": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        InMemoryTokenBucketRateLimiter(**kwargs)


def test_invalid_allow_args() -> None:
    limiter = InMemoryTokenBucketRateLimiter(rate=2, burst=4)

    with pytest.raises(ValueError):
        limiter.allow("")
