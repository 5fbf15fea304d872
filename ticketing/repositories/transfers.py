"""Repository for ticket transfers."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID

from ticketing.errors import NotFoundError, wrap_db_errors


class TransferMessageType(str, Enum):
    EMAIL = "email"
    PHONE = "phone"


class SourceOrDestination(str, Enum):
    SOURCE = "source"
    DESTINATION = "destination"


@dataclass
class Transfer:
    id: UUID
    source_user_id: UUID
    status: str
    transfer_key: UUID
    transfer_message_type: Optional[TransferMessageType] = None
    transfer_address: Optional[str] = None
    destination_user_id: Optional[UUID] = None


class TransferRepository:
    def __init__(self, conn):
        self._conn = conn

    async def find(self, transfer_id: UUID) -> Transfer:
        query = """
            SELECT id, source_user_id, status, transfer_key,
                   transfer_message_type, transfer_address, destination_user_id
            FROM transfers WHERE id = $1
        """
        async with wrap_db_errors("Could not load transfer"):
            row = await self._conn.fetchrow(query, transfer_id)
        if not row:
            raise NotFoundError(f"Transfer {transfer_id} not found")
        message_type = row["transfer_message_type"]
        return Transfer(
            id=row["id"],
            source_user_id=row["source_user_id"],
            status=row["status"],
            transfer_key=row["transfer_key"],
            transfer_message_type=(
                TransferMessageType(message_type) if message_type else None
            ),
            transfer_address=row["transfer_address"],
            destination_user_id=row["destination_user_id"],
        )

    async def can_process_drips(self, transfer: Transfer) -> bool:
        """Still pending, addressed, and at least one of its events not over."""
        if transfer.status != "pending" or transfer.transfer_address is None:
            return False
        query = """
            SELECT EXISTS (
                SELECT 1 FROM transfer_tickets tt2
                JOIN ticket_instances ti ON ti.id = tt2.ticket_instance_id
                JOIN ticket_types tt ON tt.id = ti.ticket_type_id
                JOIN events e ON e.id = tt.event_id
                WHERE tt2.transfer_id = $1
                  AND e.event_end > now()
            )
        """
        async with wrap_db_errors("Could not check transfer events"):
            return await self._conn.fetchval(query, transfer.id)
