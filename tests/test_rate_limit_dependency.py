"""Tests for per-client rate limit admission and its HTTP behavior."""

from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from movie_catalog.adapters.rate_limit.in_memory import InMemoryTokenBucketRateLimiter
from movie_catalog.core.app_factory import create_app
from movie_catalog.core.config import settings
from movie_catalog.core.errors import InternalAppError, RateLimitedAppError
from movie_catalog.core.rate_limit import client_identity, enforce_rate_limit
from tests.fakes import FakeMoviePool


def _request(host: str | None, limiter=None) -> SimpleNamespace:
    client = SimpleNamespace(host=host) if host is not None else None
    app = SimpleNamespace(state=SimpleNamespace(rate_limiter=limiter))
    return SimpleNamespace(client=client, app=app)


@pytest.fixture
def limiter_enabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.limiter, "enabled", True)


def test_client_identity_is_host_only() -> None:
    assert client_identity(_request("203.0.113.7")) == "203.0.113.7"


@pytest.mark.parametrize("host", [None, "", "   "])
def test_missing_client_address_is_internal_error(host: str | None) -> None:
    with pytest.raises(InternalAppError) as exc_info:
        client_identity(_request(host))

    assert exc_info.value.code == "client_address_unavailable"


@pytest.mark.asyncio
async def test_disabled_limiter_admits_everything(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.limiter, "enabled", False)

    # Not even the client address is read.
    await enforce_rate_limit(_request(None))


@pytest.mark.asyncio
async def test_enforce_raises_when_bucket_is_empty(limiter_enabled: None) -> None:
    limiter = InMemoryTokenBucketRateLimiter(rate=2, burst=2, clock=Mock(return_value=0.0))
    request = _request("198.51.100.1", limiter)

    await enforce_rate_limit(request)
    await enforce_rate_limit(request)

    with pytest.raises(RateLimitedAppError) as exc_info:
        await enforce_rate_limit(request)

    assert exc_info.value.code == "rate_limit_exceeded"
    assert exc_info.value.details == {"limit": 2, "remaining": 0, "retry_after": 1}


@pytest.mark.asyncio
async def test_enforce_without_limiter_on_app_is_internal_error(limiter_enabled: None) -> None:
    with pytest.raises(InternalAppError) as exc_info:
        await enforce_rate_limit(_request("198.51.100.1", None))

    assert exc_info.value.code == "rate_limiter_missing"


def test_429_after_burst_with_retry_after(limiter_enabled: None) -> None:
    app = create_app(db_pool=FakeMoviePool())
    app.state.rate_limiter = InMemoryTokenBucketRateLimiter(
        rate=2, burst=4, clock=Mock(return_value=0.0)
    )
    client = TestClient(app)

    statuses = [client.get("/v1/health").status_code for _ in range(4)]
    assert statuses == [200, 200, 200, 200]

    resp = client.get("/v1/movies")
    assert resp.status_code == 429
    assert resp.json()["error"]["code"] == "rate_limit_exceeded"
    assert resp.json()["error"]["message"] == "rate limit exceeded"
    assert resp.headers["Retry-After"] == "1"
    assert resp.headers["X-RateLimit-Limit"] == "4"
    assert resp.headers["X-RateLimit-Remaining"] == "0"
    assert resp.headers.get("X-Request-ID")


def test_429_without_headers_when_disabled(limiter_enabled: None, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.limiter, "include_headers", False)
    app = create_app(db_pool=FakeMoviePool())
    app.state.rate_limiter = InMemoryTokenBucketRateLimiter(
        rate=1, burst=1, clock=Mock(return_value=0.0)
    )
    client = TestClient(app)

    assert client.get("/v1/health").status_code == 200
    resp = client.get("/v1/health")

    assert resp.status_code == 429
    assert "Retry-After" not in resp.headers


def test_lifespan_starts_and_stops_sweeper(limiter_enabled: None) -> None:
    pool = FakeMoviePool()
    app = create_app(db_pool=pool)

    with TestClient(app) as client:
        assert client.get("/v1/health").status_code == 200
        assert app.state.sweeper is not None
        assert app.state.sweeper.running is True
        sweeper = app.state.sweeper

    assert sweeper.running is False
    assert pool.closed is True


def _over_budget_client() -> TestClient:
    app = create_app(db_pool=FakeMoviePool())
    app.state.rate_limiter = InMemoryTokenBucketRateLimiter(
        rate=1, burst=1, clock=Mock(return_value=0.0)
    )
    client = TestClient(app)
    assert client.get("/v1/health").status_code == 200
    return client


def test_over_budget_client_gets_429_before_body_is_parsed(limiter_enabled: None) -> None:
    client = _over_budget_client()

    statuses = [
        client.post(
            "/v1/movies",
            content=b"{bad",
            headers={"Content-Type": "application/json"},
        ).status_code
        for _ in range(5)
    ]

    assert statuses == [429] * 5


def test_over_budget_client_gets_429_on_unknown_v1_paths(limiter_enabled: None) -> None:
    client = _over_budget_client()

    assert client.get("/v1/nope").status_code == 429
    assert client.put("/v1/movies/1", json={}).status_code == 429


def test_paths_outside_v1_are_not_limited(limiter_enabled: None) -> None:
    client = _over_budget_client()

    assert client.get("/openapi.json").status_code == 200


def test_malformed_body_consumes_a_token(limiter_enabled: None) -> None:
    app = create_app(db_pool=FakeMoviePool())
    app.state.rate_limiter = InMemoryTokenBucketRateLimiter(
        rate=1, burst=2, clock=Mock(return_value=0.0)
    )
    client = TestClient(app)

    bad = client.post("/v1/movies", content=b"{bad", headers={"Content-Type": "application/json"})
    assert bad.status_code == 400

    assert client.get("/v1/health").status_code == 200
    assert client.get("/v1/health").status_code == 429
