"""Pooled PostgreSQL connections with explicit transaction control.

A domain action runs on one dedicated connection whose transaction is opened
by the dispatcher and closed (commit or rollback) by the ExecutorFuture.
asyncpg's ``async with conn.transaction()`` block does not fit that split, so
the transaction is driven manually through ``asyncpg.transaction.Transaction``.
"""

from typing import Optional

import asyncpg
import structlog

from ticketing.config import Settings
from ticketing.errors import DatabaseError, wrap_db_errors

logger = structlog.get_logger(__name__)


class Connection:
    """One pooled connection, owned by a single unit of work at a time."""

    def __init__(self, raw: asyncpg.Connection, pool: Optional[asyncpg.Pool] = None):
        self._raw = raw
        self._pool = pool
        self._transaction = None

    def get(self) -> asyncpg.Connection:
        """Raw asyncpg connection for repository calls."""
        return self._raw

    @property
    def in_transaction(self) -> bool:
        return self._transaction is not None

    async def begin_transaction(self) -> None:
        if self._transaction is not None:
            raise DatabaseError("Transaction already open on this connection")
        transaction = self._raw.transaction()
        async with wrap_db_errors("Could not begin transaction"):
            await transaction.start()
        self._transaction = transaction

    async def commit_transaction(self) -> None:
        if self._transaction is None:
            raise DatabaseError("No open transaction to commit")
        transaction, self._transaction = self._transaction, None
        async with wrap_db_errors("Could not commit transaction"):
            await transaction.commit()

    async def rollback_transaction(self) -> None:
        if self._transaction is None:
            raise DatabaseError("No open transaction to roll back")
        transaction, self._transaction = self._transaction, None
        async with wrap_db_errors("Could not roll back transaction"):
            await transaction.rollback()

    async def release(self) -> None:
        """Return the connection to its pool, discarding any open transaction."""
        if self._transaction is not None:
            logger.warning("connection_released_with_open_transaction")
            await self.rollback_transaction()
        if self._pool is not None:
            await self._pool.release(self._raw)
        else:
            await self._raw.close()


class Database:
    """asyncpg pool wrapper handing out Connection objects."""

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    @classmethod
    async def connect(cls, settings: Settings) -> "Database":
        """Create the pool from settings."""
        async with wrap_db_errors("Could not create connection pool"):
            pool = await asyncpg.create_pool(
                settings.database_url,
                min_size=settings.db_pool_min_size,
                max_size=settings.db_pool_max_size,
            )
        logger.info(
            "database_pool_created",
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
        )
        return cls(pool)

    @property
    def pool(self) -> asyncpg.Pool:
        return self._pool

    async def get_connection(self) -> Connection:
        async with wrap_db_errors("Could not acquire connection"):
            raw = await self._pool.acquire()
        return Connection(raw, self._pool)

    async def close(self) -> None:
        await self._pool.close()

