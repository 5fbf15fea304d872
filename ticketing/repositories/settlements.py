"""Repository for organization settlements."""

from typing import Optional
from uuid import UUID

import structlog

from ticketing.errors import wrap_db_errors

logger = structlog.get_logger(__name__)


class SettlementRepository:
    def __init__(self, conn):
        self._conn = conn

    async def finalize_due(self) -> int:
        """Finalize pending settlements whose period has closed. Returns count."""
        query = """
            UPDATE settlements SET status = 'finalized', updated_at = now()
            WHERE status = 'pending'
              AND end_time <= now()
            RETURNING id
        """
        async with wrap_db_errors("Could not finalize settlements"):
            rows = await self._conn.fetch(query)
        count = len(rows)
        if count:
            logger.info("settlements_finalized", count=count)
        return count

    async def process_for_organization(self, organization_id: UUID) -> Optional[UUID]:
        """Create a settlement covering the organization's unsettled paid orders.

        Returns the new settlement id, or None when nothing was unsettled.
        """
        create_query = """
            INSERT INTO settlements (organization_id, start_time, end_time, status)
            SELECT $1,
                   COALESCE(MIN(o.paid_at), now()),
                   now(),
                   'pending'
            FROM orders o
            JOIN order_items oi ON oi.order_id = o.id
            JOIN events e ON e.id = oi.event_id
            WHERE e.organization_id = $1
              AND o.status = 'paid'
              AND o.settlement_id IS NULL
            HAVING COUNT(o.id) > 0
            RETURNING id
        """
        link_query = """
            UPDATE orders o SET settlement_id = $2
            FROM order_items oi, events e
            WHERE oi.order_id = o.id
              AND e.id = oi.event_id
              AND e.organization_id = $1
              AND o.status = 'paid'
              AND o.settlement_id IS NULL
        """
        async with wrap_db_errors("Could not process settlement"):
            settlement_id = await self._conn.fetchval(create_query, organization_id)
            if settlement_id is None:
                return None
            await self._conn.execute(link_query, organization_id, settlement_id)
        logger.info(
            "settlement_processed",
            organization_id=str(organization_id),
            settlement_id=str(settlement_id),
        )
        return settlement_id
