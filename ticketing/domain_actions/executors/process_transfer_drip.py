"""Reminders for ticket transfers nobody has claimed yet.

An Events action checks the event's pending transfers and creates two drip
actions per transfer (one for each side), then schedules the next check.
A Transfers action sends one reminder to the sender or the recipient.
"""

from datetime import timedelta
from typing import Optional
from uuid import UUID

import structlog

from ticketing.db.connection import Connection
from ticketing.domain_actions.communication import (
    CommAddress,
    Communication,
    CommunicationType,
)
from ticketing.domain_actions.executor import (
    DomainActionExecutor,
    enqueue_next_run,
    require_main_table,
    require_payload_uuid,
)
from ticketing.domain_actions.models import DomainAction, DomainEvent
from ticketing.domain_actions.types import DomainActionType, DomainEventType, Tables
from ticketing.errors import ApplicationError
from ticketing.repositories.events import Event, EventRepository
from ticketing.repositories.transfers import (
    SourceOrDestination,
    Transfer,
    TransferMessageType,
    TransferRepository,
)
from ticketing.repositories.users import User, UserRepository

logger = structlog.get_logger(__name__)


async def create_drip_actions(conn, transfer_id: UUID, event_id: UUID) -> None:
    """One drip action per side of the transfer."""
    for side in (SourceOrDestination.DESTINATION, SourceOrDestination.SOURCE):
        await DomainAction.create(
            DomainActionType.PROCESS_TRANSFER_DRIP,
            {"event_id": str(event_id), "source_or_destination": side.value},
            main_table=Tables.TRANSFERS,
            main_table_id=transfer_id,
        ).commit(conn)


def drip_header(
    transfer: Transfer,
    event: Event,
    side: SourceOrDestination,
    source_user: User,
) -> str:
    days = event.days_until_event()
    if days is None:
        return ""

    if side == SourceOrDestination.SOURCE:
        destination = transfer.transfer_address
        if days == 0:
            return (
                f"Time to take action! The show is today and those tickets you sent "
                f"to {destination} still haven't been claimed. Give them a nudge!"
            )
        if days == 1:
            return (
                f"Uh oh! The show is tomorrow and those tickets you sent to "
                f"{destination} still haven't been claimed. Give them a nudge!"
            )
        return (
            f"Those tickets you sent to {destination} still haven't been claimed. "
            f"Give them a nudge!"
        )

    if source_user.first_name and source_user.last_name:
        name = f"{source_user.first_name} {source_user.last_name[0]}."
    else:
        name = "another user"
    if days == 0:
        return (
            f"Time to take action! The event is today and the tickets {name} "
            f"sent you are still waiting!"
        )
    if days == 1:
        return (
            f"Get your tickets! The event is TOMORROW and you still need to get "
            f"the tickets that {name} sent you!"
        )
    if days == 7:
        return (
            f"The event is only one week away and you still need to get the "
            f"tickets that {name} sent you!"
        )
    return f"You still need to get the tickets that {name} sent you!"


class ProcessTransferDripEventExecutor(DomainActionExecutor):
    failure_event = "process_transfer_drip_failed"

    def __init__(
        self,
        front_end_url: str,
        source_email: str,
        template_id: Optional[str] = None,
        interval_hours: int = 24,
    ):
        self.front_end_url = front_end_url.rstrip("/")
        self.source_email = source_email
        self.template_id = template_id
        self.interval = timedelta(hours=interval_hours)

    async def perform_job(self, action: DomainAction, conn: Connection) -> None:
        main_table, main_id = require_main_table(action)
        if main_table == Tables.EVENTS:
            await self._process_event(conn.get(), main_id)
        elif main_table == Tables.TRANSFERS:
            await self._process_transfer(conn.get(), action, main_id)
        else:
            raise ApplicationError("Table not supported")

    async def _process_event(self, db, event_id: UUID) -> None:
        events = EventRepository(db)
        event = await events.find(event_id)
        if event.is_published:
            transfer_ids = await events.pending_transfers(event.id)
            for transfer_id in transfer_ids:
                await create_drip_actions(db, transfer_id, event.id)
            logger.info(
                "transfer_drips_created", event_id=str(event.id), transfers=len(transfer_ids)
            )

        if event.is_on_sale:
            await enqueue_next_run(
                db,
                DomainActionType.PROCESS_TRANSFER_DRIP,
                self.interval,
                main_table=Tables.EVENTS,
                main_table_id=event.id,
                payload={"event_id": str(event.id)},
            )

    async def _process_transfer(self, db, action: DomainAction, transfer_id: UUID) -> None:
        event_id = require_payload_uuid(action, "event_id")
        try:
            side = SourceOrDestination(action.payload.get("source_or_destination"))
        except ValueError as e:
            raise ApplicationError("Payload is missing source_or_destination") from e

        event = await EventRepository(db).find(event_id)
        transfers = TransferRepository(db)
        transfer = await transfers.find(transfer_id)
        source_user = await UserRepository(db).find(transfer.source_user_id)

        if not await transfers.can_process_drips(transfer):
            logger.debug("transfer_drip_skipped", transfer_id=str(transfer.id))
            return

        header = drip_header(transfer, event, side, source_user)
        if side == SourceOrDestination.SOURCE:
            if source_user.email:
                await self._email(db, source_user.email, header, transfer, event)
            await self._log_drip(db, transfer, DomainEventType.TRANSFER_TICKET_DRIP_SOURCE_SENT)
            return

        if transfer.transfer_message_type is None or not transfer.transfer_address:
            return
        if transfer.transfer_message_type == TransferMessageType.PHONE:
            await Communication(
                comm_type=CommunicationType.SMS,
                title=f"{header} {self._receive_url(transfer)}",
                destinations=CommAddress.from_address(transfer.transfer_address),
                categories=["transfer_drip"],
            ).queue(db, Tables.TRANSFERS, transfer.id)
        else:
            await self._email(db, transfer.transfer_address, header, transfer, event)
        await self._log_drip(
            db, transfer, DomainEventType.TRANSFER_TICKET_DRIP_DESTINATION_SENT
        )

    def _receive_url(self, transfer: Transfer) -> str:
        return f"{self.front_end_url}/tickets/transfers/{transfer.transfer_key}/receive"

    async def _email(
        self, db, address: str, header: str, transfer: Transfer, event: Event
    ) -> None:
        await Communication(
            comm_type=CommunicationType.EMAIL_TEMPLATE,
            title=f"Reminder: tickets for {event.name}",
            destinations=CommAddress.from_address(address),
            source=CommAddress.from_address(self.source_email),
            template_id=self.template_id,
            template_data=[
                {
                    "header": header,
                    "event_name": event.name,
                    "receive_tickets_url": self._receive_url(transfer),
                }
            ],
            categories=["transfer_drip"],
        ).queue(db, Tables.TRANSFERS, transfer.id)

    async def _log_drip(self, db, transfer: Transfer, event_type: DomainEventType) -> None:
        await DomainEvent.create(
            event_type,
            "Transfer drip sent",
            Tables.TRANSFERS,
            main_id=transfer.id,
        ).commit(db)
