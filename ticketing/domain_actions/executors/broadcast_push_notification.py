"""Fan a broadcast out into one push communication per reachable user."""

from typing import Optional

import structlog

from ticketing.db.connection import Connection
from ticketing.domain_actions.communication import (
    CommAddress,
    Communication,
    CommunicationType,
)
from ticketing.domain_actions.executor import (
    DomainActionExecutor,
    require_main_table_id,
)
from ticketing.domain_actions.models import DomainAction
from ticketing.domain_actions.types import Tables
from ticketing.repositories.broadcasts import (
    BroadcastAudience,
    BroadcastRepository,
    BroadcastStatus,
    BroadcastType,
)
from ticketing.repositories.events import EventRepository
from ticketing.repositories.users import UserRepository

logger = structlog.get_logger(__name__)

LAST_CALL_MESSAGE = (
    "🗣LAST CALL! 🍻The bar is closing soon, grab something now before it's too late!"
)


class BroadcastPushNotificationExecutor(DomainActionExecutor):
    failure_event = "broadcast_push_notification_failed"

    def __init__(self, template_id: Optional[str] = None):
        self.template_id = template_id

    async def perform_job(self, action: DomainAction, conn: Connection) -> None:
        db = conn.get()
        broadcast_id = require_main_table_id(action, "broadcast id")

        broadcasts = BroadcastRepository(db)
        broadcast = await broadcasts.find(broadcast_id)
        if broadcast.status == BroadcastStatus.CANCELLED:
            logger.info("broadcast_cancelled_skipped", broadcast_id=str(broadcast_id))
            return

        broadcast = await broadcasts.set_in_progress(broadcast)
        if broadcast.notification_type == BroadcastType.LAST_CALL:
            audience_type = BroadcastAudience.PEOPLE_AT_THE_EVENT
            message = LAST_CALL_MESSAGE
        else:
            audience_type = broadcast.audience
            message = broadcast.message or ""

        events = EventRepository(db)
        if audience_type == BroadcastAudience.TICKET_HOLDERS:
            audience = await events.ticket_holders(broadcast.event_id)
        else:
            audience = await events.checked_in_users(broadcast.event_id)

        await broadcasts.set_sent_count(broadcast.id, len(audience))

        event_id = action.payload.get("event_id") or str(broadcast.event_id)
        users = UserRepository(db)
        queued = 0
        for user in audience:
            tokens = await users.push_notification_tokens(user.id)
            if not tokens:
                continue
            await Communication(
                comm_type=CommunicationType.PUSH,
                title=message,
                destinations=CommAddress.from_list(tokens),
                template_id=self.template_id,
                categories=["broadcast"],
                extra_data={
                    "broadcast_id": str(broadcast.id),
                    "event_id": str(broadcast.event_id),
                },
            ).queue(db, Tables.EVENTS, broadcast.event_id)
            queued += 1

        logger.info(
            "broadcast_push_notifications_queued",
            broadcast_id=str(broadcast.id),
            event_id=event_id,
            audience=len(audience),
            queued=queued,
        )
