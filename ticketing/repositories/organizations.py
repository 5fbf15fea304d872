"""Repository for organizations."""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from ticketing.errors import NotFoundError, wrap_db_errors


@dataclass
class Organization:
    id: UUID
    name: str
    settlement_type: str = "post_event"
    sendgrid_api_key: Optional[str] = None


class OrganizationRepository:
    def __init__(self, conn):
        self._conn = conn

    async def find(self, organization_id: UUID) -> Organization:
        query = """
            SELECT id, name, settlement_type, sendgrid_api_key
            FROM organizations WHERE id = $1
        """
        async with wrap_db_errors("Could not load organization"):
            row = await self._conn.fetchrow(query, organization_id)
        if not row:
            raise NotFoundError(f"Organization {organization_id} not found")
        return Organization(
            id=row["id"],
            name=row["name"],
            settlement_type=row["settlement_type"],
            sendgrid_api_key=row["sendgrid_api_key"],
        )

    async def can_process_settlements(self, organization: Organization) -> bool:
        """Rolling settlements only, and only with paid orders not yet settled."""
        if organization.settlement_type != "rolling":
            return False
        query = """
            SELECT EXISTS (
                SELECT 1 FROM orders o
                JOIN order_items oi ON oi.order_id = o.id
                JOIN events e ON e.id = oi.event_id
                WHERE e.organization_id = $1
                  AND o.status = 'paid'
                  AND o.settlement_id IS NULL
            )
        """
        async with wrap_db_errors("Could not check settlement eligibility"):
            return await self._conn.fetchval(query, organization.id)
