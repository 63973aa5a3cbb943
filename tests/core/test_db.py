"""Unit tests for Database env parsing, provisioning and SSL fallback."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from eventsync.db import Database, db_params_from_env, should_retry_with_ssl_disable

pytestmark = pytest.mark.unit


def _conn(exists: int | None) -> AsyncMock:
    conn = AsyncMock()
    conn.fetchval = AsyncMock(return_value=exists)
    conn.execute = AsyncMock()
    conn.close = AsyncMock()
    return conn


class TestFromEnv:
    def test_database_url(self, monkeypatch):
        monkeypatch.setenv(
            "DATABASE_URL", "postgres://u:p@db.internal:6543/postgres?sslmode=require"
        )

        db = Database.from_env("eventsync")

        assert (db.host, db.port, db.user, db.password) == ("db.internal", 6543, "u", "p")
        assert db.ssl == "require"
        assert db.url == "postgresql://u:p@db.internal:6543/eventsync"

    def test_postgres_vars_fallback(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.setenv("POSTGRES_HOST", "pg")
        monkeypatch.setenv("POSTGRES_PORT", "5433")
        monkeypatch.setenv("POSTGRES_SSLMODE", "bogus")

        params = db_params_from_env()

        assert params["host"] == "pg"
        assert params["port"] == 5433
        assert params["ssl"] is None


class TestSslFallback:
    def test_only_retries_when_unset(self):
        exc = ConnectionError("unexpected connection_lost() call")
        assert should_retry_with_ssl_disable(exc, None)
        assert not should_retry_with_ssl_disable(exc, "require")
        assert not should_retry_with_ssl_disable(ConnectionError("refused"), None)

    @patch("eventsync.db.asyncpg.create_pool", new_callable=AsyncMock)
    async def test_connect_retries_with_ssl_disable(self, mock_create_pool):
        pool = AsyncMock()
        mock_create_pool.side_effect = [ConnectionError("unexpected connection_lost() call"), pool]

        db = Database(db_name="eventsync")
        out = await db.connect()

        assert out is pool
        assert mock_create_pool.await_args_list[0].kwargs.get("ssl") is None
        assert mock_create_pool.await_args_list[1].kwargs["ssl"] == "disable"


class TestProvision:
    @patch("eventsync.db.asyncpg.connect", new_callable=AsyncMock)
    async def test_creates_missing_database(self, mock_connect):
        conn = _conn(None)
        mock_connect.return_value = conn

        await Database(db_name='odd"name').provision()

        (call,) = conn.execute.await_args_list
        assert call.args[0] == 'CREATE DATABASE "odd""name" TEMPLATE template0'
        conn.close.assert_awaited_once()

    @patch("eventsync.db.asyncpg.connect", new_callable=AsyncMock)
    async def test_existing_database_is_left_alone(self, mock_connect):
        conn = _conn(1)
        mock_connect.return_value = conn

        await Database(db_name="eventsync").provision()

        conn.execute.assert_not_awaited()
