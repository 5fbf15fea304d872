"""Repository for event broadcasts (push notifications to attendees)."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

import structlog

from ticketing.errors import NotFoundError, wrap_db_errors

logger = structlog.get_logger(__name__)


class BroadcastStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BroadcastType(str, Enum):
    CUSTOM = "custom"
    LAST_CALL = "last_call"


class BroadcastAudience(str, Enum):
    PEOPLE_AT_THE_EVENT = "people_at_the_event"
    TICKET_HOLDERS = "ticket_holders"


@dataclass
class Broadcast:
    id: UUID
    event_id: UUID
    notification_type: BroadcastType
    status: BroadcastStatus
    audience: BroadcastAudience = BroadcastAudience.PEOPLE_AT_THE_EVENT
    name: Optional[str] = None
    message: Optional[str] = None
    send_at: Optional[datetime] = None
    sent_quantity: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BroadcastRepository:
    def __init__(self, conn):
        self._conn = conn

    async def find(self, broadcast_id: UUID) -> Broadcast:
        query = "SELECT * FROM broadcasts WHERE id = $1"
        async with wrap_db_errors("Could not load broadcast"):
            row = await self._conn.fetchrow(query, broadcast_id)
        if not row:
            raise NotFoundError(f"Broadcast {broadcast_id} not found")
        return self._row_to_broadcast(row)

    async def set_in_progress(self, broadcast: Broadcast) -> Broadcast:
        query = """
            UPDATE broadcasts SET status = 'in_progress', updated_at = now()
            WHERE id = $1
            RETURNING *
        """
        async with wrap_db_errors("Could not update broadcast status"):
            row = await self._conn.fetchrow(query, broadcast.id)
        if not row:
            raise NotFoundError(f"Broadcast {broadcast.id} not found")
        logger.info("broadcast_in_progress", broadcast_id=str(broadcast.id))
        return self._row_to_broadcast(row)

    async def set_sent_count(self, broadcast_id: UUID, sent_quantity: int) -> None:
        query = """
            UPDATE broadcasts SET sent_quantity = $2, updated_at = now()
            WHERE id = $1
        """
        async with wrap_db_errors("Could not update broadcast sent count"):
            await self._conn.execute(query, broadcast_id, sent_quantity)

    def _row_to_broadcast(self, row) -> Broadcast:
        return Broadcast(
            id=row["id"],
            event_id=row["event_id"],
            notification_type=BroadcastType(row["notification_type"]),
            status=BroadcastStatus(row["status"]),
            audience=BroadcastAudience(row["audience"]),
            name=row["name"],
            message=row["message"],
            send_at=row["send_at"],
            sent_quantity=row["sent_quantity"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
