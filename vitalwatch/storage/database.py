"""
PostgreSQL connection management.

Readings, alerts, and delivery attempts are stored as rows whose
flexible parts (reading values, metric snapshots, attempt details) live
in JSONB columns. A JSONB codec is installed on every pooled connection
so repositories read and write plain dicts.
"""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from types import TracebackType
from typing import Any

import asyncpg

from vitalwatch.config.settings import get_settings

logger = logging.getLogger(__name__)


async def _init_connection(conn: asyncpg.Connection) -> None:
    """Install JSON codecs so JSONB round-trips as Python objects."""
    for typename in ("json", "jsonb"):
        await conn.set_type_codec(
            typename,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


class Database:
    """
    Async PostgreSQL pool shared by every repository.

    Repositories issue single statements through ``execute``/``fetch*``;
    multi-statement updates (such as the gamification award) run inside
    ``transaction()`` so a partial write is never visible.

    Usage:
        db = Database()
        await db.connect()

        row = await db.fetchrow("SELECT * FROM alerts WHERE alert_id = $1", aid)

        async with db.transaction() as conn:
            await conn.execute("UPDATE user_stats SET ...")

        await db.close()
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
    ):
        """
        Args:
            database_url: PostgreSQL DSN (defaults to ``DATABASE_URL``)
            min_size: Minimum pool size (defaults to ``DB_POOL_MIN_SIZE``)
            max_size: Maximum pool size (defaults to ``DB_POOL_MAX_SIZE``)
        """
        settings = get_settings()

        self._database_url = database_url or str(settings.database_url)
        self._min_size = min_size or settings.db_pool_min_size
        self._max_size = max_size or settings.db_pool_max_size

        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        """
        Create the connection pool.

        Each new pooled connection gets the JSONB codec before it is
        handed out. Connection errors are logged and re-raised.
        """
        try:
            self._pool = await asyncpg.create_pool(
                self._database_url,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=30,
                init=_init_connection,
            )
            logger.info(
                "Database connected (pool: %d-%d)", self._min_size, self._max_size,
            )
        except Exception as e:
            logger.error("Failed to connect to database: %s", e)
            raise

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Database connection closed")

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def pool(self) -> asyncpg.Pool:
        """Get connection pool, raising if not connected."""
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Acquire a connection and run the block inside a transaction.

        The transaction commits when the block exits normally and rolls
        back if it raises.

        Usage:
            async with db.transaction() as conn:
                row = await conn.fetchrow("SELECT ... FOR UPDATE", user_id)
                await conn.execute("UPDATE user_stats SET ...")
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def execute(self, query: str, *args: Any) -> str:
        """
        Run a statement that returns no rows (DDL, DELETE without RETURNING).

        Returns:
            PostgreSQL status string, e.g. ``"DELETE 1"``
        """
        async with self.pool.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        """Run a query and return every row."""
        async with self.pool.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        """
        Run a query and return its first row.

        Returns:
            The row, or None when the query matched nothing
        """
        async with self.pool.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        """Run a query and return the first column of its first row."""
        async with self.pool.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def health_check(self) -> bool:
        """
        Check that the pool can serve a trivial query.

        Returns:
            True if ``SELECT 1`` succeeds, False on any error or when
            not connected
        """
        try:
            result = await self.fetchval("SELECT 1")
            return result == 1
        except Exception:
            return False


# Global database instance
_database: Database | None = None


async def get_database() -> Database:
    """
    Get the process-wide Database, connecting on first use.

    Returns:
        Connected Database instance
    """
    global _database

    if _database is None:
        _database = Database()
        await _database.connect()

    return _database


async def close_database() -> None:
    """Close the process-wide Database if it was opened."""
    global _database

    if _database is not None:
        await _database.close()
        _database = None
