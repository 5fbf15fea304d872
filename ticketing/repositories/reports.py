"""Queries behind the automatic report emails."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from ticketing.errors import wrap_db_errors
from ticketing.repositories.events import Event, row_to_event


class ReportType(str, Enum):
    TICKET_COUNTS = "ticket_counts"


@dataclass
class ReportSubscriber:
    id: UUID
    event_id: UUID
    email: str
    report_type: ReportType


@dataclass
class TicketCountRow:
    ticket_type_name: str
    sold: int
    available: int


class ReportRepository:
    def __init__(self, conn):
        self._conn = conn

    async def find_event_reports_for_processing(
        self, since: datetime
    ) -> dict[ReportType, list[Event]]:
        """Published, on-sale events that ended no earlier than ``since``."""
        query = """
            SELECT e.id, e.name, e.organization_id, e.status, e.publish_date,
                   e.event_start, e.event_end, e.sendgrid_list_id
            FROM events e
            JOIN (
                SELECT MIN(tp.start_date) AS on_sale, tt.event_id
                FROM ticket_types tt
                JOIN ticket_pricing tp ON tp.ticket_type_id = tt.id
                WHERE tt.deleted_at IS NULL
                  AND tp.status <> 'deleted'
                GROUP BY tt.event_id
            ) tt ON tt.event_id = e.id
            WHERE e.event_end >= $1
              AND e.status = 'published'
              AND e.publish_date <= now()
              AND tt.on_sale <= now()
            ORDER BY e.event_end
        """
        async with wrap_db_errors("Could not load events for reports"):
            rows = await self._conn.fetch(query, since)
        return {ReportType.TICKET_COUNTS: [row_to_event(row) for row in rows]}

    async def subscribers(
        self, event_id: UUID, report_type: ReportType
    ) -> list[ReportSubscriber]:
        query = """
            SELECT id, event_id, email, report_type
            FROM event_report_subscribers
            WHERE event_id = $1 AND report_type = $2
            ORDER BY email
        """
        async with wrap_db_errors("Could not load report subscribers"):
            rows = await self._conn.fetch(query, event_id, report_type.value)
        return [
            ReportSubscriber(
                id=row["id"],
                event_id=row["event_id"],
                email=row["email"],
                report_type=ReportType(row["report_type"]),
            )
            for row in rows
        ]

    async def ticket_counts(self, event_id: UUID) -> list[TicketCountRow]:
        query = """
            SELECT tt.name AS ticket_type_name,
                   COUNT(ti.id) FILTER (WHERE ti.status IN ('purchased', 'redeemed')) AS sold,
                   COUNT(ti.id) FILTER (WHERE ti.status = 'available') AS available
            FROM ticket_types tt
            LEFT JOIN ticket_instances ti ON ti.ticket_type_id = tt.id
            WHERE tt.event_id = $1 AND tt.deleted_at IS NULL
            GROUP BY tt.name
            ORDER BY tt.name
        """
        async with wrap_db_errors("Could not load ticket counts"):
            rows = await self._conn.fetch(query, event_id)
        return [
            TicketCountRow(
                ticket_type_name=row["ticket_type_name"],
                sold=row["sold"],
                available=row["available"],
            )
            for row in rows
        ]
