"""Push an event's fans into its marketing contact list.

Repeats every few hours for as long as the event stays on sale.
"""

from datetime import timedelta
from typing import Optional

import structlog

from ticketing.db.connection import Connection
from ticketing.domain_actions.collaborators import MarketingContactsClient
from ticketing.domain_actions.executor import (
    DomainActionExecutor,
    enqueue_next_run,
    require_payload_uuid,
)
from ticketing.domain_actions.models import DomainAction
from ticketing.domain_actions.types import DomainActionType, Tables
from ticketing.errors import ApplicationError
from ticketing.repositories.events import EventRepository, Fan
from ticketing.repositories.organizations import OrganizationRepository

logger = structlog.get_logger(__name__)


def fan_contact(fan: Fan) -> dict[str, str]:
    contact = {"email": fan.email}
    if fan.first_name:
        contact["first_name"] = fan.first_name
    if fan.last_name:
        contact["last_name"] = fan.last_name
    return contact


class BulkEventFanListImportExecutor(DomainActionExecutor):
    failure_event = "bulk_event_fan_list_import_failed"

    def __init__(
        self,
        contacts_client: Optional[MarketingContactsClient] = None,
        delay_hours: int = 12,
    ):
        self._contacts = contacts_client
        self.delay = timedelta(hours=delay_hours)

    async def perform_job(self, action: DomainAction, conn: Connection) -> None:
        db = conn.get()
        event_id = require_payload_uuid(action, "event_id")
        execution_count = int(action.payload.get("execution_count") or 0)
        log = logger.bind(
            domain_action_id=str(action.id),
            event_id=str(event_id),
            execution_count=execution_count,
        )
        log.info("bulk_fan_list_import_started")

        events = EventRepository(db)
        event = await events.find(event_id)
        organization = await OrganizationRepository(db).find(event.organization_id)
        api_key = organization.sendgrid_api_key
        if not api_key:
            log.info("no_sendgrid_api_key", organization_id=str(organization.id))
            return
        if self._contacts is None:
            raise ApplicationError("No marketing contacts client configured")

        fans = await events.search_fans(event.id)
        contacts = [fan_contact(fan) for fan in fans if fan.email]
        if contacts:
            if event.sendgrid_list_id is None:
                raise ApplicationError(
                    "Event has no sendgrid list id. Cannot add recipients to list"
                )
            result = await self._contacts.create_contacts(api_key, contacts)
            sg_list = await self._contacts.get_list(api_key, event.sendgrid_list_id)
            recipients = result.get("persisted_recipients") or []
            if recipients:
                await self._contacts.add_recipients(api_key, int(sg_list["id"]), recipients)
                log.info(
                    "fan_list_recipients_added",
                    sendgrid_list_id=sg_list["id"],
                    new_count=result.get("new_count"),
                    error_count=result.get("error_count"),
                )

        if not event.is_on_sale:
            log.info("event_no_longer_on_sale")
            return
        await enqueue_next_run(
            db,
            DomainActionType.MARKETING_CONTACTS_BULK_EVENT_FAN_LIST_IMPORT,
            self.delay,
            main_table=Tables.EVENTS,
            main_table_id=event.id,
            payload={"event_id": str(event.id), "execution_count": execution_count + 1},
        )
