"""Release unsold held inventory once a hold has ended."""

import structlog

from ticketing.db.connection import Connection
from ticketing.domain_actions.executor import DomainActionExecutor, require_main_table
from ticketing.domain_actions.models import DomainAction, DomainEvent, utcnow
from ticketing.domain_actions.types import DomainEventType, Tables
from ticketing.errors import ApplicationError
from ticketing.repositories.holds import HoldRepository

logger = structlog.get_logger(__name__)


class ReleaseHoldInventoryExecutor(DomainActionExecutor):
    failure_event = "release_hold_inventory_failed"

    async def perform_job(self, action: DomainAction, conn: Connection) -> None:
        db = conn.get()
        main_table, hold_id = require_main_table(action)
        if main_table != Tables.HOLDS:
            raise ApplicationError("Table not supported")

        holds = HoldRepository(db)
        hold = await holds.find(hold_id)
        if hold.end_at is None:
            return
        if hold.end_at > utcnow():
            raise ApplicationError("Hold must have ended to release inventory")

        total, remaining = await holds.quantity(hold)
        if remaining <= 0:
            return

        sold_quantity = total - remaining
        await holds.set_quantity(hold, sold_quantity)
        await DomainEvent.create(
            DomainEventType.HOLD_AUTOMATICALLY_RELEASED,
            f"Hold {hold.name} released",
            Tables.HOLDS,
            main_id=hold.id,
            event_data=hold.to_dict(),
        ).commit(db)
        logger.info(
            "hold_inventory_released",
            hold_id=str(hold.id),
            released=remaining,
            quantity=sold_quantity,
        )
