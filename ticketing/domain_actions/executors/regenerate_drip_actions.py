"""Make sure every upcoming published event has a transfer drip check queued."""

import structlog

from ticketing.db.connection import Connection
from ticketing.domain_actions.executor import DomainActionExecutor
from ticketing.domain_actions.models import DomainAction
from ticketing.domain_actions.types import DomainActionType, Tables
from ticketing.repositories.domain_actions import DomainActionRepository
from ticketing.repositories.events import EventRepository

logger = structlog.get_logger(__name__)


class RegenerateDripActionsExecutor(DomainActionExecutor):
    failure_event = "regenerate_drip_actions_failed"

    async def perform_job(self, action: DomainAction, conn: Connection) -> None:
        db = conn.get()
        actions = DomainActionRepository(db)
        created = 0
        for event in await EventRepository(db).find_upcoming_published():
            if await actions.has_pending_action(
                DomainActionType.PROCESS_TRANSFER_DRIP, Tables.EVENTS, event.id
            ):
                continue
            await DomainAction.create(
                DomainActionType.PROCESS_TRANSFER_DRIP,
                {"event_id": str(event.id)},
                main_table=Tables.EVENTS,
                main_table_id=event.id,
            ).commit(db)
            created += 1
        logger.info("transfer_drip_actions_regenerated", created=created)
