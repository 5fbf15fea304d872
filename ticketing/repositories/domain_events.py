"""Repository for domain event audit records."""

from typing import TYPE_CHECKING, Optional
from uuid import UUID

import structlog

from ticketing.domain_actions.models import DomainEvent
from ticketing.domain_actions.types import DomainEventType, Tables
from ticketing.errors import wrap_db_errors
from ticketing.repositories.utils import ensure_json, to_jsonb

if TYPE_CHECKING:
    from ticketing.domain_actions.models import NewDomainEvent

logger = structlog.get_logger(__name__)


class DomainEventRepository:
    """Append-only access to domain_events."""

    def __init__(self, conn):
        self._conn = conn

    async def insert(self, new_event: "NewDomainEvent") -> DomainEvent:
        query = """
            INSERT INTO domain_events (
                event_type, display_text, event_data, main_table, main_id, user_id
            )
            VALUES ($1, $2, $3::jsonb, $4, $5, $6)
            RETURNING *
        """
        async with wrap_db_errors("Could not insert domain event"):
            row = await self._conn.fetchrow(
                query,
                new_event.event_type.value,
                new_event.display_text,
                to_jsonb(new_event.event_data),
                new_event.main_table.value,
                new_event.main_id,
                new_event.user_id,
            )
        event = self._row_to_event(row)
        logger.info(
            "domain_event_created",
            domain_event_id=str(event.id),
            event_type=event.event_type.value,
            main_table=event.main_table.value,
            main_id=str(event.main_id) if event.main_id else None,
        )
        return event

    async def find(
        self,
        main_table: Tables,
        main_id: UUID,
        event_type: Optional[DomainEventType] = None,
    ) -> list[DomainEvent]:
        """Events for one subject row, oldest first."""
        params = [main_table.value, main_id]
        type_filter = ""
        if event_type:
            type_filter = "AND event_type = $3"
            params.append(event_type.value)

        query = f"""
            SELECT * FROM domain_events
            WHERE main_table = $1 AND main_id = $2
            {type_filter}
            ORDER BY created_at
        """
        async with wrap_db_errors("Could not load domain events"):
            rows = await self._conn.fetch(query, *params)
        return [self._row_to_event(row) for row in rows]

    def _row_to_event(self, row) -> DomainEvent:
        return DomainEvent(
            id=row["id"],
            event_type=DomainEventType(row["event_type"]),
            display_text=row["display_text"],
            main_table=Tables(row["main_table"]),
            main_id=row["main_id"],
            user_id=row["user_id"],
            event_data=ensure_json(row["event_data"]),
            created_at=row["created_at"],
        )
