"""Hand a queued communication to the transport for its channel."""

import structlog

from ticketing.db.connection import Connection
from ticketing.domain_actions.collaborators import CommunicationSender
from ticketing.domain_actions.communication import Communication
from ticketing.domain_actions.executor import DomainActionExecutor
from ticketing.domain_actions.models import DomainAction
from ticketing.domain_actions.types import CommunicationChannelType
from ticketing.errors import ApplicationError

logger = structlog.get_logger(__name__)


class SendCommunicationExecutor(DomainActionExecutor):
    failure_event = "send_communication_failed"

    def __init__(
        self,
        senders: dict[CommunicationChannelType, CommunicationSender],
        block_external_comms: bool = False,
    ):
        self._senders = senders
        self.block_external_comms = block_external_comms

    async def perform_job(self, action: DomainAction, conn: Connection) -> None:
        communication = Communication.from_payload(action.payload)
        channel = communication.channel_type

        if self.block_external_comms:
            logger.info(
                "communication_suppressed",
                domain_action_id=str(action.id),
                channel=channel.value,
            )
            return

        sender = self._senders.get(channel)
        if sender is None:
            raise ApplicationError(f"No sender configured for {channel.value} communications")

        await sender.send(communication)
        logger.info(
            "communication_sent",
            domain_action_id=str(action.id),
            channel=channel.value,
            destinations=len(communication.destinations),
        )
