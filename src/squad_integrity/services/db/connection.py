"""Async PostgreSQL access with connection pooling.

Usage:
    from squad_integrity.services.db import DatabaseService

    async with DatabaseService() as db:
        players = await db.fetchval("SELECT COUNT(*) FROM players")
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import asyncpg

from squad_integrity.config.credentials import CredentialsError, get_db_credentials

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

# Failures that surface to callers as DatabaseError
_STORE_FAILURES = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


class DatabaseError(Exception):
    """Raised when a store operation fails."""

    pass


class DatabaseService:
    """Async PostgreSQL database service backed by an asyncpg pool.

    Every query method converts driver and network failures into
    DatabaseError so callers can apply one retry policy to all of them.

    Attributes:
        min_connections: Minimum pool size.
        max_connections: Maximum pool size.
        secret_id: Secrets Manager id used when DB_* variables are unset.
    """

    def __init__(
        self,
        *,
        min_connections: int = 2,
        max_connections: int = 10,
        secret_id: str | None = None,
    ) -> None:
        self.min_connections = min_connections
        self.max_connections = max_connections
        self.secret_id = secret_id
        self._pool: asyncpg.Pool | None = None

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the connection pool, raising if not connected."""
        if self._pool is None:
            raise DatabaseError(
                "Database not connected. Call connect() first or use async context manager."
            )
        return self._pool

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """Create the connection pool.

        Raises:
            DatabaseError: If credentials cannot be resolved or the pool
                cannot be created.
        """
        if self._pool is not None:
            logger.warning("Database already connected")
            return

        try:
            creds = get_db_credentials(self.secret_id)
            self._pool = await asyncpg.create_pool(
                **creds.dsn,
                min_size=self.min_connections,
                max_size=self.max_connections,
            )
        except (CredentialsError, *_STORE_FAILURES) as e:
            raise DatabaseError(f"Failed to connect to database: {e}") from e

        logger.info(f"Connected to database: {creds.database}@{creds.host}")

    async def disconnect(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Database connection closed")

    async def __aenter__(self) -> DatabaseService:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.disconnect()

    async def _run(self, call: Callable[[asyncpg.Connection], Awaitable[Any]]) -> Any:
        try:
            async with self.pool.acquire() as conn:
                return await call(conn)
        except _STORE_FAILURES as e:
            raise DatabaseError(str(e) or type(e).__name__) from e

    # Query methods

    async def execute(self, query: str, *args: Any, timeout: float | None = None) -> str:
        """Execute a statement and return its status (e.g. "UPDATE 1")."""
        result: str = await self._run(
            lambda conn: conn.execute(query, *args, timeout=timeout)
        )
        return result

    async def fetch(
        self, query: str, *args: Any, timeout: float | None = None
    ) -> list[Any]:
        """Execute a query and return all rows."""
        rows: list[Any] = await self._run(
            lambda conn: conn.fetch(query, *args, timeout=timeout)
        )
        return rows

    async def fetchrow(
        self, query: str, *args: Any, timeout: float | None = None
    ) -> Any | None:
        """Execute a query and return the first row, or None."""
        return await self._run(lambda conn: conn.fetchrow(query, *args, timeout=timeout))

    async def fetchval(
        self,
        query: str,
        *args: Any,
        column: int = 0,
        timeout: float | None = None,
    ) -> Any:
        """Execute a query and return a single value."""
        return await self._run(
            lambda conn: conn.fetchval(query, *args, column=column, timeout=timeout)
        )
