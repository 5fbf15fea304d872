"""Error taxonomy for the ticketing backend and its domain action engine.

- DomainActionError: configuration problems (duplicate or missing executor,
  invalid schedule). Fatal at startup.
- ApplicationError: business rules broken inside an executor's perform_job.
- DatabaseError: any driver failure, wrapped uniformly.
- TransportError: outbound HTTP/RPC failures.

Executors raise; ExecutorFuture converts any raised error into rollback and
retry bookkeeping, so callers never branch on the error kind.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import asyncpg


class DomainActionError(Exception):
    """Engine configuration error."""

    pass


class ApplicationError(Exception):
    """Business rule violated while performing an action."""

    pass


class DatabaseError(Exception):
    """Persistence failure, independent of the underlying driver."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message if cause is None else f"{message}: {cause}")
        self.cause = cause


class NotFoundError(DatabaseError):
    """A row the action depends on does not exist."""

    pass


class ConcurrencyError(DatabaseError):
    """Another process holds the row."""

    pass


class TransportError(Exception):
    """Outbound network call failed."""

    pass


@asynccontextmanager
async def wrap_db_errors(message: str) -> AsyncIterator[None]:
    """Re-raise asyncpg failures as DatabaseError with context."""
    try:
        yield
    except (
        asyncpg.exceptions.LockNotAvailableError,
        asyncpg.exceptions.SerializationError,
        asyncpg.exceptions.DeadlockDetectedError,
    ) as e:
        raise ConcurrencyError(message, e) from e
    except asyncpg.PostgresError as e:
        raise DatabaseError(message, e) from e
    except asyncpg.InterfaceError as e:
        raise DatabaseError(message, e) from e
