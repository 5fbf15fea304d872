"""Repository for domain action persistence."""

from typing import TYPE_CHECKING, Any, Optional
from uuid import UUID

import structlog

from ticketing.domain_actions.models import DomainAction, utcnow
from ticketing.domain_actions.types import (
    CommunicationChannelType,
    DomainActionStatus,
    DomainActionType,
    Tables,
)
from ticketing.errors import NotFoundError, wrap_db_errors
from ticketing.repositories.utils import ensure_json, to_jsonb

if TYPE_CHECKING:
    from ticketing.domain_actions.models import NewDomainAction

logger = structlog.get_logger(__name__)

# Rows the dispatcher may pick up right now.
DUE_CONDITION = """
    status IN ('pending', 'errored')
    AND attempt_count < max_attempt_count
    AND scheduled_at <= now()
    AND expires_at > now()
    AND blocked_until <= now()
"""


class DomainActionRepository:
    """Domain action queries on a single connection.

    Takes a connection rather than a pool: producers insert actions inside
    their own transaction, and the bookkeeping after execution must run on the
    connection that owns the action's transaction.
    """

    def __init__(self, conn):
        self._conn = conn

    async def insert(self, new_action: "NewDomainAction") -> DomainAction:
        """Insert a pending action."""
        query = """
            INSERT INTO domain_actions (
                domain_action_type, payload, domain_event_id,
                communication_channel_type, main_table, main_table_id,
                scheduled_at, expires_at, blocked_until,
                attempt_count, max_attempt_count, status
            )
            VALUES ($1, $2::jsonb, $3, $4, $5, $6, $7, $8, $7, 0, $9, 'pending')
            RETURNING *
        """
        async with wrap_db_errors("Could not insert domain action"):
            row = await self._conn.fetchrow(
                query,
                new_action.domain_action_type.value,
                to_jsonb(new_action.payload),
                new_action.domain_event_id,
                _value_or_none(new_action.communication_channel_type),
                _value_or_none(new_action.main_table),
                new_action.main_table_id,
                new_action.scheduled_at,
                new_action.expires_at,
                new_action.max_attempt_count,
            )
        action = self._row_to_action(row)
        logger.debug(
            "domain_action_created",
            domain_action_id=str(action.id),
            domain_action_type=action.domain_action_type.value,
            scheduled_at=action.scheduled_at.isoformat(),
        )
        return action

    async def find(self, action_id: UUID) -> DomainAction:
        """Get an action by ID, raising NotFoundError if missing."""
        query = "SELECT * FROM domain_actions WHERE id = $1"
        async with wrap_db_errors("Could not load domain action"):
            row = await self._conn.fetchrow(query, action_id)
        if not row:
            raise NotFoundError(f"Domain action {action_id} not found")
        return self._row_to_action(row)

    async def find_pending(
        self, action_type: Optional[DomainActionType] = None, limit: int = 50
    ) -> list[DomainAction]:
        """List due actions without claiming them."""
        type_filter = ""
        params: list[Any] = [limit]
        if action_type:
            type_filter = "AND domain_action_type = $2"
            params.append(action_type.value)

        query = f"""
            SELECT * FROM domain_actions
            WHERE {DUE_CONDITION}
            {type_filter}
            ORDER BY scheduled_at
            LIMIT $1
        """
        async with wrap_db_errors("Could not list pending domain actions"):
            rows = await self._conn.fetch(query, *params)
        return [self._row_to_action(row) for row in rows]

    async def claim_pending(
        self,
        busy_seconds: int,
        limit: int,
        action_types: Optional[list[DomainActionType]] = None,
    ) -> list[DomainAction]:
        """Claim due actions using FOR UPDATE SKIP LOCKED.

        Claiming pushes blocked_until forward by busy_seconds, so a second
        poller will not pick the same rows while they execute.
        """
        type_filter = ""
        params: list[Any] = [busy_seconds, limit]

        if action_types:
            type_filter = "AND domain_action_type = ANY($3)"
            params.append([t.value for t in action_types])

        query = f"""
            WITH cte AS (
                SELECT id FROM domain_actions
                WHERE {DUE_CONDITION}
                {type_filter}
                ORDER BY scheduled_at
                FOR UPDATE SKIP LOCKED
                LIMIT $2
            )
            UPDATE domain_actions d SET
                blocked_until = now() + make_interval(secs => $1),
                updated_at = now()
            FROM cte
            WHERE d.id = cte.id
            RETURNING d.*
        """
        async with wrap_db_errors("Could not claim domain actions"):
            rows = await self._conn.fetch(query, *params)

        actions = sorted(
            (self._row_to_action(row) for row in rows), key=lambda a: a.scheduled_at
        )
        if actions:
            logger.info("domain_actions_claimed", count=len(actions))
        return actions

    async def has_pending_action(
        self,
        action_type: DomainActionType,
        main_table: Tables,
        main_table_id: UUID,
    ) -> bool:
        """Whether a not-yet-finished action of this type targets the row."""
        query = """
            SELECT EXISTS (
                SELECT 1 FROM domain_actions
                WHERE domain_action_type = $1
                  AND main_table = $2
                  AND main_table_id = $3
                  AND status IN ('pending', 'errored')
                  AND attempt_count < max_attempt_count
                  AND expires_at > now()
            )
        """
        async with wrap_db_errors("Could not check pending domain actions"):
            return await self._conn.fetchval(
                query, action_type.value, main_table.value, main_table_id
            )

    async def upcoming_domain_action(
        self,
        action_type: DomainActionType,
        main_table: Optional[Tables] = None,
        main_table_id: Optional[UUID] = None,
    ) -> Optional[DomainAction]:
        """Next pending action of this type scheduled in the future."""
        query = """
            SELECT * FROM domain_actions
            WHERE domain_action_type = $1
              AND main_table IS NOT DISTINCT FROM $2
              AND main_table_id IS NOT DISTINCT FROM $3
              AND status = 'pending'
              AND scheduled_at > now()
            ORDER BY scheduled_at
            LIMIT 1
        """
        async with wrap_db_errors("Could not load upcoming domain action"):
            row = await self._conn.fetchrow(
                query, action_type.value, _value_or_none(main_table), main_table_id
            )
        return self._row_to_action(row) if row else None

    async def set_done(self, action: DomainAction) -> DomainAction:
        """Mark an action as succeeded."""
        query = """
            UPDATE domain_actions SET
                status = 'success',
                last_attempted_at = now(),
                updated_at = now()
            WHERE id = $1
            RETURNING *
        """
        async with wrap_db_errors("Could not mark domain action done"):
            row = await self._conn.fetchrow(query, action.id)
        if not row:
            raise NotFoundError(f"Domain action {action.id} not found")
        return self._row_to_action(row)

    async def set_failed(self, action: DomainAction, reason: str) -> DomainAction:
        """Record a failed attempt and gate the next one behind a backoff."""
        now = utcnow()
        outcome = action.failure_outcome(now)
        query = """
            UPDATE domain_actions SET
                status = $2,
                attempt_count = $3,
                blocked_until = $4,
                last_failure_reason = $5,
                last_attempted_at = $6,
                updated_at = now()
            WHERE id = $1
            RETURNING *
        """
        async with wrap_db_errors("Could not record domain action failure"):
            row = await self._conn.fetchrow(
                query,
                action.id,
                outcome.status.value,
                outcome.attempt_count,
                outcome.blocked_until,
                reason,
                now,
            )
        if not row:
            raise NotFoundError(f"Domain action {action.id} not found")

        if outcome.status == DomainActionStatus.RETRIES_EXCEEDED:
            logger.warning(
                "domain_action_retries_exceeded",
                domain_action_id=str(action.id),
                domain_action_type=action.domain_action_type.value,
                attempt_count=outcome.attempt_count,
                error=reason,
            )
        else:
            logger.info(
                "domain_action_retry_scheduled",
                domain_action_id=str(action.id),
                attempt_count=outcome.attempt_count,
                blocked_until=outcome.blocked_until.isoformat(),
            )
        return self._row_to_action(row)

    async def set_cancelled(self, action: DomainAction) -> DomainAction:
        """Cancel an action that has not reached a terminal status."""
        query = """
            UPDATE domain_actions SET
                status = 'cancelled',
                updated_at = now()
            WHERE id = $1
              AND status IN ('pending', 'errored')
            RETURNING *
        """
        async with wrap_db_errors("Could not cancel domain action"):
            row = await self._conn.fetchrow(query, action.id)
        if not row:
            # Already terminal (or missing); report the stored state.
            return await self.find(action.id)
        logger.info("domain_action_cancelled", domain_action_id=str(action.id))
        return self._row_to_action(row)

    async def find_stuck(self, threshold_minutes: int = 30) -> list[DomainAction]:
        """Pending or errored actions whose gate passed long ago."""
        query = """
            SELECT * FROM domain_actions
            WHERE status IN ('pending', 'errored')
              AND attempt_count < max_attempt_count
              AND expires_at > now()
              AND blocked_until < now() - make_interval(mins => $1)
            ORDER BY blocked_until
        """
        async with wrap_db_errors("Could not list stuck domain actions"):
            rows = await self._conn.fetch(query, threshold_minutes)
        return [self._row_to_action(row) for row in rows]

    def _row_to_action(self, row) -> DomainAction:
        """Convert a database row to a DomainAction model."""
        channel = row["communication_channel_type"]
        main_table = row["main_table"]
        return DomainAction(
            id=row["id"],
            domain_action_type=DomainActionType(row["domain_action_type"]),
            payload=ensure_json(row["payload"], default={}),
            scheduled_at=row["scheduled_at"],
            expires_at=row["expires_at"],
            blocked_until=row["blocked_until"],
            status=DomainActionStatus(row["status"]),
            domain_event_id=row["domain_event_id"],
            communication_channel_type=(
                CommunicationChannelType(channel) if channel else None
            ),
            main_table=Tables(main_table) if main_table else None,
            main_table_id=row["main_table_id"],
            attempt_count=row["attempt_count"],
            max_attempt_count=row["max_attempt_count"],
            last_attempted_at=row["last_attempted_at"],
            last_failure_reason=row["last_failure_reason"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


def _value_or_none(member) -> Optional[str]:
    return member.value if member is not None else None
