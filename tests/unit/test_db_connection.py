"""Unit tests for database connection service."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from squad_integrity.config.credentials import CredentialsError, DatabaseCredentials
from squad_integrity.services.db.connection import DatabaseError, DatabaseService


def create_mock_pool() -> tuple[MagicMock, AsyncMock]:
    """Create a properly mocked asyncpg pool."""
    mock_conn = AsyncMock()
    mock_conn.execute = AsyncMock(return_value="DELETE 3")
    mock_conn.fetch = AsyncMock(return_value=[{"id": 1}, {"id": 2}])
    mock_conn.fetchrow = AsyncMock(return_value={"id": 1})
    mock_conn.fetchval = AsyncMock(return_value=42)

    @asynccontextmanager
    async def mock_acquire() -> AsyncIterator[Any]:
        yield mock_conn

    mock_pool = MagicMock()
    mock_pool.acquire = mock_acquire
    mock_pool.close = AsyncMock()

    return mock_pool, mock_conn


CREDS = DatabaseCredentials(
    host="localhost",
    port=5432,
    database="testdb",
    username="user",
    password="pass",
)


class TestDatabaseService:
    """Tests for DatabaseService class."""

    def test_init_defaults(self) -> None:
        """Test default initialization."""
        db = DatabaseService()
        assert db.min_connections == 2
        assert db.max_connections == 10
        assert db.secret_id is None
        assert not db.is_connected

    def test_pool_raises_when_not_connected(self) -> None:
        """Test that pool property raises when not connected."""
        db = DatabaseService()
        with pytest.raises(DatabaseError) as exc_info:
            _ = db.pool
        assert "not connected" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connect_creates_pool(self) -> None:
        """Test that connect creates a pool with the resolved credentials."""
        db = DatabaseService(min_connections=1, max_connections=4)
        mock_pool, _ = create_mock_pool()

        with (
            patch(
                "squad_integrity.services.db.connection.get_db_credentials",
                return_value=CREDS,
            ),
            patch(
                "squad_integrity.services.db.connection.asyncpg.create_pool",
                new=AsyncMock(return_value=mock_pool),
            ) as create_pool,
        ):
            await db.connect()

        assert db.is_connected
        kwargs = create_pool.await_args.kwargs
        assert kwargs["user"] == "user"
        assert kwargs["min_size"] == 1
        assert kwargs["max_size"] == 4

    @pytest.mark.asyncio
    async def test_connect_wraps_credential_errors(self) -> None:
        db = DatabaseService()

        with (
            patch(
                "squad_integrity.services.db.connection.get_db_credentials",
                side_effect=CredentialsError("no secret"),
            ),
            pytest.raises(DatabaseError, match="no secret"),
        ):
            await db.connect()

        assert not db.is_connected

    @pytest.mark.asyncio
    async def test_connect_wraps_network_errors(self) -> None:
        db = DatabaseService()

        with (
            patch(
                "squad_integrity.services.db.connection.get_db_credentials",
                return_value=CREDS,
            ),
            patch(
                "squad_integrity.services.db.connection.asyncpg.create_pool",
                new=AsyncMock(side_effect=OSError("connection refused")),
            ),
            pytest.raises(DatabaseError, match="connection refused"),
        ):
            await db.connect()

    @pytest.mark.asyncio
    async def test_context_manager(self) -> None:
        """Test async context manager."""
        mock_pool, _ = create_mock_pool()

        with (
            patch(
                "squad_integrity.services.db.connection.get_db_credentials",
                return_value=CREDS,
            ),
            patch(
                "squad_integrity.services.db.connection.asyncpg.create_pool",
                new=AsyncMock(return_value=mock_pool),
            ),
        ):
            async with DatabaseService() as db:
                assert db.is_connected

            mock_pool.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_disconnect_closes_pool(self) -> None:
        """Test that disconnect closes the pool."""
        db = DatabaseService()
        mock_pool, _ = create_mock_pool()
        db._pool = mock_pool

        await db.disconnect()

        mock_pool.close.assert_called_once()
        assert not db.is_connected


class TestQueryMethods:
    """Tests for the query wrappers."""

    @pytest.mark.asyncio
    async def test_execute_returns_status(self) -> None:
        db = DatabaseService()
        mock_pool, mock_conn = create_mock_pool()
        db._pool = mock_pool

        result = await db.execute("DELETE FROM event_player_stats")

        assert result == "DELETE 3"
        mock_conn.execute.assert_called_once()

    @pytest.mark.asyncio
    async def test_fetch_and_fetchval(self) -> None:
        db = DatabaseService()
        mock_pool, _ = create_mock_pool()
        db._pool = mock_pool

        assert len(await db.fetch("SELECT id FROM players")) == 2
        assert await db.fetchval("SELECT COUNT(*) FROM players") == 42
        assert await db.fetchrow("SELECT id FROM players LIMIT 1") == {"id": 1}

    @pytest.mark.asyncio
    async def test_driver_errors_become_database_errors(self) -> None:
        """Driver failures surface as DatabaseError so they can be retried."""
        db = DatabaseService()
        mock_pool, mock_conn = create_mock_pool()
        mock_conn.fetch.side_effect = ConnectionResetError("connection reset")
        db._pool = mock_pool

        with pytest.raises(DatabaseError, match="connection reset"):
            await db.fetch("SELECT * FROM missing")

    @pytest.mark.asyncio
    async def test_timeouts_become_database_errors(self) -> None:
        db = DatabaseService()
        mock_pool, mock_conn = create_mock_pool()
        mock_conn.fetchval.side_effect = TimeoutError()
        db._pool = mock_pool

        with pytest.raises(DatabaseError, match="TimeoutError"):
            await db.fetchval("SELECT pg_sleep(60)")

    @pytest.mark.asyncio
    async def test_query_without_pool(self) -> None:
        with pytest.raises(DatabaseError, match="not connected"):
            await DatabaseService().fetch("SELECT 1")
