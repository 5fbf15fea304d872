"""Ensure an event has a marketing contact list, then queue the fan import."""

from typing import Optional

import structlog

from ticketing.db.connection import Connection
from ticketing.domain_actions.collaborators import MarketingContactsClient
from ticketing.domain_actions.executor import DomainActionExecutor, require_payload_uuid
from ticketing.domain_actions.models import DomainAction
from ticketing.domain_actions.types import DomainActionType, Tables
from ticketing.errors import ApplicationError
from ticketing.repositories.domain_actions import DomainActionRepository
from ticketing.repositories.events import Event, EventRepository
from ticketing.repositories.organizations import OrganizationRepository

logger = structlog.get_logger(__name__)


def event_list_name(event: Event) -> str:
    if event.event_start is None:
        raise ApplicationError(f"Event {event.id} has no start date")
    start = event.event_start
    return f"{event.name} ({start:%b} {start.day}, {start.year})"


class CreateEventListExecutor(DomainActionExecutor):
    failure_event = "create_event_list_failed"

    def __init__(self, contacts_client: Optional[MarketingContactsClient] = None):
        self._contacts = contacts_client

    async def perform_job(self, action: DomainAction, conn: Connection) -> None:
        db = conn.get()
        event_id = require_payload_uuid(action, "event_id")
        log = logger.bind(domain_action_id=str(action.id), event_id=str(event_id))
        log.info("create_event_list_started")

        events = EventRepository(db)
        event = await events.find(event_id)
        organization = await OrganizationRepository(db).find(event.organization_id)
        if not organization.sendgrid_api_key:
            log.info("no_sendgrid_api_key", organization_id=str(organization.id))
            return
        if self._contacts is None:
            raise ApplicationError("No marketing contacts client configured")

        sg_list = await self._contacts.create_or_return_list(
            organization.sendgrid_api_key, event_list_name(event)
        )
        list_id = int(sg_list["id"])
        if event.sendgrid_list_id != list_id:
            await events.set_sendgrid_list_id(event.id, list_id)
        log.info("event_list_ensured", sendgrid_list_id=list_id)

        if await DomainActionRepository(db).has_pending_action(
            DomainActionType.MARKETING_CONTACTS_BULK_EVENT_FAN_LIST_IMPORT,
            Tables.EVENTS,
            event.id,
        ):
            return
        await DomainAction.create(
            DomainActionType.MARKETING_CONTACTS_BULK_EVENT_FAN_LIST_IMPORT,
            {"event_id": str(event.id), "execution_count": 0},
            main_table=Tables.EVENTS,
            main_table_id=event.id,
        ).commit(db)
