"""Tests for pool lifecycle helpers and schema bootstrap."""

from contextlib import asynccontextmanager

import pytest

from movie_catalog.adapters.db import pool as pool_module
from movie_catalog.adapters.db.pool import close_pool, database_dsn, open_pool
from movie_catalog.adapters.db.schema import SCHEMA_STATEMENTS, apply_schema
from movie_catalog.core.config import DatabaseSettings
from tests.fakes import FakeMoviePool


class _RecordingConnection:
    def __init__(self) -> None:
        self.executed: list[str] = []
        self.in_transaction = False

    @asynccontextmanager
    async def transaction(self):
        self.in_transaction = True
        try:
            yield
        finally:
            self.in_transaction = False

    async def execute(self, statement: str) -> str:
        assert self.in_transaction
        self.executed.append(statement)
        return "OK"


class _AcquiringPool:
    def __init__(self) -> None:
        self.conn = _RecordingConnection()

    @asynccontextmanager
    async def acquire(self):
        yield self.conn


def test_database_dsn_requires_value() -> None:
    with pytest.raises(RuntimeError, match="DB_DSN"):
        database_dsn(DatabaseSettings(dsn="  "))

    assert database_dsn(DatabaseSettings(dsn="postgres://db/movies")) == "postgres://db/movies"


@pytest.mark.asyncio
async def test_open_pool_pings_database(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = FakeMoviePool()
    captured: dict = {}

    async def fake_create_pool(**kwargs):
        captured.update(kwargs)
        return fake

    monkeypatch.setattr(pool_module.asyncpg, "create_pool", fake_create_pool)

    cfg = DatabaseSettings(dsn="postgres://db/movies", max_pool_size=10)
    pool = await open_pool(cfg)

    assert pool is fake
    assert fake.queries == ["SELECT 1"]
    assert captured["dsn"] == "postgres://db/movies"
    assert captured["max_size"] == 10


@pytest.mark.asyncio
async def test_open_pool_closes_pool_when_ping_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    class _DeadPool(FakeMoviePool):
        async def fetchval(self, query, *args):
            raise ConnectionRefusedError("no database")

    dead = _DeadPool()

    async def fake_create_pool(**kwargs):
        return dead

    monkeypatch.setattr(pool_module.asyncpg, "create_pool", fake_create_pool)

    with pytest.raises(ConnectionRefusedError):
        await open_pool(DatabaseSettings(dsn="postgres://db/movies"))

    assert dead.closed is True


@pytest.mark.asyncio
async def test_close_pool_accepts_none() -> None:
    await close_pool(None)

    fake = FakeMoviePool()
    await close_pool(fake)
    assert fake.closed is True


@pytest.mark.asyncio
async def test_apply_schema_runs_every_statement_in_one_transaction() -> None:
    pool = _AcquiringPool()

    await apply_schema(pool)

    assert pool.conn.executed == list(SCHEMA_STATEMENTS)
    assert "CREATE TABLE IF NOT EXISTS movies" in pool.conn.executed[0]
