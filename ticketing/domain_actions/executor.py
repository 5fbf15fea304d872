"""Base class for domain action executors."""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Optional
from uuid import UUID

import structlog

from ticketing.db.connection import Connection
from ticketing.domain_actions.future import ExecutorFuture, failure_reason
from ticketing.domain_actions.models import DomainAction, utcnow
from ticketing.domain_actions.types import DomainActionType, Tables
from ticketing.errors import ApplicationError

logger = structlog.get_logger(__name__)


class DomainActionExecutor(ABC):
    """One executor per DomainActionType.

    Subclasses put all business logic in ``perform_job``, using the
    connection (and transaction) already opened for the action. Failure is
    signalled by raising; returning normally means success, including the
    deliberate no-op case. Executors never retry on their own.
    """

    failure_event = "domain_action_executor_failed"

    def execute(self, action: DomainAction, conn: Connection) -> ExecutorFuture:
        return ExecutorFuture(action, conn, self._perform(action, conn))

    async def _perform(self, action: DomainAction, conn: Connection) -> None:
        try:
            await self.perform_job(action, conn)
        except Exception as e:
            logger.error(
                self.failure_event,
                domain_action_id=str(action.id),
                main_table_id=str(action.main_table_id) if action.main_table_id else None,
                error=failure_reason(e),
            )
            raise

    @abstractmethod
    async def perform_job(self, action: DomainAction, conn: Connection) -> None:
        """Run the action's business logic. Raise to fail."""
        pass


def require_main_table(action: DomainAction) -> tuple[Tables, UUID]:
    """The action's subject pointer, or ApplicationError if incomplete."""
    if action.main_table_id is None:
        raise ApplicationError("No id supplied in the action")
    if action.main_table is None:
        raise ApplicationError("No table supplied in the action")
    return action.main_table, action.main_table_id


def require_main_table_id(action: DomainAction, what: str = "id") -> UUID:
    if action.main_table_id is None:
        raise ApplicationError(f"No {what} supplied in the action")
    return action.main_table_id


def require_payload_uuid(action: DomainAction, key: str) -> UUID:
    """Read a UUID field from the payload."""
    value = action.payload.get(key)
    if value is None:
        raise ApplicationError(f"Payload is missing {key}")
    try:
        return UUID(str(value))
    except ValueError as e:
        raise ApplicationError(f"Payload field {key} is not a valid id: {value}") from e


async def enqueue_next_run(
    conn,
    action_type: DomainActionType,
    delay: timedelta,
    main_table: Optional[Tables] = None,
    main_table_id: Optional[UUID] = None,
    payload: Optional[dict[str, Any]] = None,
) -> DomainAction:
    """Schedule the successor of a recurring action.

    Recurring actions have no outside scheduler: each run creates the next
    one, inside the same transaction as its own work.
    """
    next_action = await DomainAction.create(
        action_type,
        payload,
        main_table=main_table,
        main_table_id=main_table_id,
        scheduled_at=utcnow() + delay,
    ).commit(conn)
    logger.info(
        "domain_action_next_run_scheduled",
        domain_action_type=action_type.value,
        domain_action_id=str(next_action.id),
        scheduled_at=next_action.scheduled_at.isoformat(),
    )
    return next_action
