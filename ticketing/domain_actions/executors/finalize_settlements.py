"""Finalize closed settlements, then schedule the next run."""

from datetime import timedelta

import structlog

from ticketing.db.connection import Connection
from ticketing.domain_actions.executor import DomainActionExecutor, enqueue_next_run
from ticketing.domain_actions.models import DomainAction, DomainEvent
from ticketing.domain_actions.types import DomainActionType, DomainEventType, Tables
from ticketing.repositories.settlements import SettlementRepository

logger = structlog.get_logger(__name__)


class FinalizeSettlementsExecutor(DomainActionExecutor):
    failure_event = "finalize_settlements_failed"

    def __init__(self, interval_hours: int = 24):
        self.interval = timedelta(hours=interval_hours)

    async def perform_job(self, action: DomainAction, conn: Connection) -> None:
        db = conn.get()
        finalized = await SettlementRepository(db).finalize_due()
        if finalized:
            await DomainEvent.create(
                DomainEventType.SETTLEMENTS_FINALIZED,
                f"{finalized} settlements finalized",
                Tables.SETTLEMENTS,
                event_data={"count": finalized},
            ).commit(db)

        await enqueue_next_run(db, DomainActionType.FINALIZE_SETTLEMENTS, self.interval)
