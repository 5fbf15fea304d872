"""Repository for ticket holds."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

import structlog

from ticketing.errors import ApplicationError, NotFoundError, wrap_db_errors

logger = structlog.get_logger(__name__)


@dataclass
class Hold:
    """Inventory set aside for a ticket type, released when it ends."""

    id: UUID
    name: str
    event_id: UUID
    ticket_type_id: UUID
    end_at: Optional[datetime] = None
    max_per_user: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "event_id": str(self.event_id),
            "ticket_type_id": str(self.ticket_type_id),
            "end_at": self.end_at.isoformat() if self.end_at else None,
            "max_per_user": self.max_per_user,
        }


class HoldRepository:
    """Holds and the ticket instances they reserve."""

    def __init__(self, conn):
        self._conn = conn

    async def find(self, hold_id: UUID) -> Hold:
        query = "SELECT * FROM holds WHERE id = $1"
        async with wrap_db_errors("Could not load hold"):
            row = await self._conn.fetchrow(query, hold_id)
        if not row:
            raise NotFoundError(f"Hold {hold_id} not found")
        return self._row_to_hold(row)

    async def quantity(self, hold: Hold) -> tuple[int, int]:
        """Return (total, remaining) ticket instances held.

        Remaining counts instances still available, i.e. not reserved or sold.
        """
        query = """
            SELECT
                COUNT(*) AS total,
                COUNT(*) FILTER (WHERE status = 'available') AS remaining
            FROM ticket_instances
            WHERE hold_id = $1
        """
        async with wrap_db_errors("Could not count held tickets"):
            row = await self._conn.fetchrow(query, hold.id)
        return row["total"], row["remaining"]

    async def set_quantity(self, hold: Hold, quantity: int) -> None:
        """Resize the hold, releasing or claiming available instances."""
        if quantity < 0:
            raise ApplicationError("Hold quantity cannot be negative")

        total, remaining = await self.quantity(hold)
        if quantity == total:
            return

        if quantity < total:
            to_release = total - quantity
            if to_release > remaining:
                raise ApplicationError(
                    f"Cannot release {to_release} tickets from hold {hold.id}: "
                    f"only {remaining} are unsold"
                )
            query = """
                UPDATE ticket_instances SET hold_id = NULL, updated_at = now()
                WHERE id IN (
                    SELECT id FROM ticket_instances
                    WHERE hold_id = $1 AND status = 'available'
                    ORDER BY id
                    LIMIT $2
                    FOR UPDATE
                )
            """
            async with wrap_db_errors("Could not release held tickets"):
                await self._conn.execute(query, hold.id, to_release)
            logger.info("hold_tickets_released", hold_id=str(hold.id), count=to_release)
            return

        to_claim = quantity - total
        query = """
            WITH claimed AS (
                UPDATE ticket_instances SET hold_id = $1, updated_at = now()
                WHERE id IN (
                    SELECT id FROM ticket_instances
                    WHERE ticket_type_id = $2 AND hold_id IS NULL AND status = 'available'
                    ORDER BY id
                    LIMIT $3
                    FOR UPDATE SKIP LOCKED
                )
                RETURNING id
            )
            SELECT COUNT(*) FROM claimed
        """
        async with wrap_db_errors("Could not add tickets to hold"):
            claimed = await self._conn.fetchval(
                query, hold.id, hold.ticket_type_id, to_claim
            )
        if claimed < to_claim:
            raise ApplicationError(
                f"Could not reserve {to_claim} tickets for hold {hold.id}: "
                f"only {claimed} available"
            )
        logger.info("hold_tickets_claimed", hold_id=str(hold.id), count=claimed)

    def _row_to_hold(self, row) -> Hold:
        return Hold(
            id=row["id"],
            name=row["name"],
            event_id=row["event_id"],
            ticket_type_id=row["ticket_type_id"],
            end_at=row["end_at"],
            max_per_user=row["max_per_user"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
