"""Daily ticket count report emails to event report subscribers."""

from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import structlog

from ticketing.db.connection import Connection
from ticketing.domain_actions.communication import (
    CommAddress,
    Communication,
    CommunicationType,
)
from ticketing.domain_actions.executor import DomainActionExecutor
from ticketing.domain_actions.models import DomainAction, utcnow
from ticketing.domain_actions.types import DomainActionType, Tables
from ticketing.repositories.domain_actions import DomainActionRepository
from ticketing.repositories.events import Event
from ticketing.repositories.reports import ReportRepository, ReportSubscriber, ReportType

logger = structlog.get_logger(__name__)


def next_automatic_report_date(
    timezone_name: str = "America/Los_Angeles",
    hour: int = 4,
    now: Optional[datetime] = None,
) -> datetime:
    """``hour`` o'clock tomorrow in the report timezone, as UTC."""
    tz = ZoneInfo(timezone_name)
    local_now = (now or utcnow()).astimezone(tz)
    tomorrow: date = (local_now + timedelta(days=1)).date()
    local_run = datetime(tomorrow.year, tomorrow.month, tomorrow.day, hour, tzinfo=tz)
    return local_run.astimezone(timezone.utc)


class SendAutomaticReportEmailsExecutor(DomainActionExecutor):
    failure_event = "send_automatic_report_emails_failed"

    def __init__(
        self,
        source_email: str,
        template_id: Optional[str] = None,
        timezone_name: str = "America/Los_Angeles",
        hour: int = 4,
    ):
        self.source_email = source_email
        self.template_id = template_id
        self.timezone_name = timezone_name
        self.hour = hour

    async def perform_job(self, action: DomainAction, conn: Connection) -> None:
        db = conn.get()
        reports = ReportRepository(db)
        next_run = next_automatic_report_date(self.timezone_name, self.hour)

        due = await reports.find_event_reports_for_processing(next_run - timedelta(days=2))
        for report_type, events in due.items():
            for event in events:
                subscribers = await reports.subscribers(event.id, report_type)
                if not subscribers:
                    continue
                counts = await reports.ticket_counts(event.id)
                template_data = {
                    "event_name": event.name,
                    "ticket_counts": [
                        {"ticket_type": c.ticket_type_name, "sold": c.sold, "available": c.available}
                        for c in counts
                    ],
                }
                for subscriber in subscribers:
                    await self._send_report(db, subscriber, event, report_type, template_data)

        await self._schedule_next_run(db, next_run)

    async def _send_report(
        self,
        db,
        subscriber: ReportSubscriber,
        event: Event,
        report_type: ReportType,
        template_data: dict,
    ) -> None:
        """Queue one report; a failure is logged and does not stop the others."""
        try:
            # Savepoint, so a failed insert does not abort the action's transaction
            async with db.transaction():
                await Communication(
                    comm_type=CommunicationType.EMAIL_TEMPLATE,
                    title=f"Ticket counts for {event.name}",
                    destinations=CommAddress.from_address(subscriber.email),
                    source=CommAddress.from_address(self.source_email),
                    template_id=self.template_id,
                    template_data=[template_data],
                    categories=["report", report_type.value],
                ).queue(db, Tables.EVENTS, event.id)
        except Exception as e:
            logger.error(
                "report_email_failed",
                report_type=report_type.value,
                email=subscriber.email,
                event_id=str(event.id),
                error=str(e),
            )

    async def _schedule_next_run(self, db, next_run: datetime) -> None:
        upcoming = await DomainActionRepository(db).upcoming_domain_action(
            DomainActionType.SEND_AUTOMATIC_REPORT_EMAILS
        )
        if upcoming is not None:
            logger.info(
                "automatic_report_already_scheduled",
                domain_action_id=str(upcoming.id),
                scheduled_at=upcoming.scheduled_at.isoformat(),
            )
            return
        await DomainAction.create(
            DomainActionType.SEND_AUTOMATIC_REPORT_EMAILS,
            scheduled_at=next_run,
        ).commit(db)
