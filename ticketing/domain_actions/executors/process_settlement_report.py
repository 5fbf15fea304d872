"""Settle an organization's paid orders, then schedule the next run."""

from datetime import timedelta

import structlog

from ticketing.db.connection import Connection
from ticketing.domain_actions.executor import (
    DomainActionExecutor,
    enqueue_next_run,
    require_main_table,
)
from ticketing.domain_actions.models import DomainAction, DomainEvent
from ticketing.domain_actions.types import DomainActionType, DomainEventType, Tables
from ticketing.errors import ApplicationError
from ticketing.repositories.organizations import OrganizationRepository
from ticketing.repositories.settlements import SettlementRepository

logger = structlog.get_logger(__name__)


class ProcessSettlementReportExecutor(DomainActionExecutor):
    failure_event = "process_settlement_report_failed"

    def __init__(self, interval_days: int = 7):
        self.interval = timedelta(days=interval_days)

    async def perform_job(self, action: DomainAction, conn: Connection) -> None:
        db = conn.get()
        main_table, organization_id = require_main_table(action)
        if main_table != Tables.ORGANIZATIONS:
            raise ApplicationError("Table not supported")

        organizations = OrganizationRepository(db)
        organization = await organizations.find(organization_id)
        if await organizations.can_process_settlements(organization):
            settlement_id = await SettlementRepository(db).process_for_organization(
                organization.id
            )
            if settlement_id is not None:
                await DomainEvent.create(
                    DomainEventType.SETTLEMENT_REPORT_PROCESSED,
                    f"Settlement processed for {organization.name}",
                    Tables.ORGANIZATIONS,
                    main_id=organization.id,
                    event_data={"settlement_id": str(settlement_id)},
                ).commit(db)
        else:
            logger.debug(
                "settlement_processing_skipped", organization_id=str(organization.id)
            )

        await enqueue_next_run(
            db,
            DomainActionType.PROCESS_SETTLEMENT_REPORT,
            self.interval,
            main_table=Tables.ORGANIZATIONS,
            main_table_id=organization.id,
        )
