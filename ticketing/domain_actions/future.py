"""Bridge between an executor's work and the action's transaction.

The ExecutorFuture is handed a connection with an open transaction. Awaiting
it runs the executor's work, then either

- logs success, marks the action done and commits, or
- logs the failure, rolls back, records the failed attempt (outside the
  rolled-back transaction) and re-raises the original error.

Exactly one of commit/rollback happens per awaited future. Errors raised by
the bookkeeping calls themselves propagate unchanged.
"""

from datetime import datetime
from typing import Awaitable, Optional

import structlog

from ticketing.db.connection import Connection
from ticketing.domain_actions.models import DomainAction, utcnow
from ticketing.errors import DomainActionError

logger = structlog.get_logger(__name__)


def failure_reason(error: Optional[BaseException]) -> str:
    """Text stored in last_failure_reason for an error."""
    if error is None:
        return "unknown error"
    return str(error) or type(error).__name__


class ExecutorFuture:
    """Awaitable result of DomainActionExecutor.execute."""

    def __init__(
        self,
        action: DomainAction,
        conn: Connection,
        inner: Awaitable[None],
    ):
        self.action = action
        self.conn = conn
        self.started_at: datetime = utcnow()
        self._inner = inner
        self._awaited = False

    def __await__(self):
        return self._run().__await__()

    def _milliseconds_taken(self) -> int:
        return int((utcnow() - self.started_at).total_seconds() * 1000)

    async def _run(self) -> None:
        if self._awaited:
            raise DomainActionError(
                f"ExecutorFuture for action {self.action.id} was already awaited"
            )
        self._awaited = True

        log = logger.bind(
            domain_action_id=str(self.action.id),
            domain_action_type=self.action.domain_action_type.value,
            started_at=self.started_at.isoformat(),
        )

        try:
            await self._inner
        except Exception as e:
            reason = failure_reason(e)
            log.error(
                "domain_action_failed",
                milliseconds_taken=self._milliseconds_taken(),
                error=reason,
            )
            log.info("domain_action_rolling_back")
            await self.conn.rollback_transaction()
            await self.action.set_failed(reason, self.conn.get())
            raise

        log.info("domain_action_succeeded", milliseconds_taken=self._milliseconds_taken())
        await self.action.set_done(self.conn.get())
        await self.conn.commit_transaction()

