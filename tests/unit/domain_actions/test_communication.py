"""Tests for the communication envelope and the send executor."""

from dataclasses import asdict
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from ticketing.domain_actions.communication import (
    CommAddress,
    Communication,
    CommunicationType,
)
from ticketing.domain_actions.executors import SendCommunicationExecutor
from ticketing.domain_actions.models import DomainAction
from ticketing.domain_actions.types import (
    CommunicationChannelType,
    DomainActionType,
    Tables,
)
from ticketing.errors import ApplicationError

INSERT = "ticketing.repositories.domain_actions.DomainActionRepository.insert"


def stored(new_action):
    """What the repository returns once a NewDomainAction is inserted."""
    return DomainAction(id=uuid4(), blocked_until=new_action.scheduled_at, **asdict(new_action))


def capture_inserts():
    return AsyncMock(side_effect=stored)


def email(**overrides):
    fields = {
        "comm_type": CommunicationType.EMAIL_TEMPLATE,
        "title": "Your tickets",
        "destinations": CommAddress.from_address("fan@example.com"),
        "source": CommAddress.from_address("noreply@example.com"),
        "template_id": "d-123",
        "template_data": [{"name": "Sam"}],
        "categories": ["purchase"],
    }
    fields.update(overrides)
    return Communication(**fields)


class TestCommunicationType:
    @pytest.mark.parametrize(
        "comm_type,channel",
        [
            (CommunicationType.EMAIL, CommunicationChannelType.EMAIL),
            (CommunicationType.EMAIL_TEMPLATE, CommunicationChannelType.EMAIL),
            (CommunicationType.SMS, CommunicationChannelType.SMS),
            (CommunicationType.PUSH, CommunicationChannelType.PUSH),
            (CommunicationType.WEBHOOK, CommunicationChannelType.WEBHOOK),
        ],
    )
    def test_channel_mapping(self, comm_type, channel):
        assert comm_type.channel_type == channel


class TestCommunicationPayload:
    def test_payload_restores_communication(self):
        original = email()
        assert Communication.from_payload(original.to_payload()) == original

    def test_missing_destinations_rejected(self):
        payload = email().to_payload()
        del payload["destinations"]
        with pytest.raises(ApplicationError):
            Communication.from_payload(payload)

    def test_unknown_type_rejected(self):
        payload = email().to_payload()
        payload["comm_type"] = "carrier_pigeon"
        with pytest.raises(ApplicationError):
            Communication.from_payload(payload)


class TestQueue:
    @pytest.mark.asyncio
    async def test_queue_creates_communication_action(self):
        order_id = uuid4()
        with patch(INSERT, new=capture_inserts()):
            queued = await email().queue(object(), Tables.ORDERS, order_id)

        assert queued.domain_action_type == DomainActionType.COMMUNICATION
        assert queued.communication_channel_type == CommunicationChannelType.EMAIL
        assert queued.main_table == Tables.ORDERS
        assert queued.main_table_id == order_id
        assert queued.payload["destinations"] == ["fan@example.com"]

    @pytest.mark.asyncio
    async def test_queue_without_destinations_fails(self):
        with patch(INSERT, new=AsyncMock()) as insert:
            with pytest.raises(ApplicationError):
                await email(destinations=CommAddress()).queue(object())
        insert.assert_not_called()


class TestSendCommunicationExecutor:
    @pytest.mark.asyncio
    async def test_sends_on_matching_channel(self, mock_conn, action_factory):
        sender = AsyncMock()
        executor = SendCommunicationExecutor({CommunicationChannelType.EMAIL: sender})
        action = action_factory(DomainActionType.COMMUNICATION, payload=email().to_payload())

        await executor.perform_job(action, mock_conn)

        sender.send.assert_awaited_once_with(email())

    @pytest.mark.asyncio
    async def test_blocked_comms_send_nothing(self, mock_conn, action_factory):
        sender = AsyncMock()
        executor = SendCommunicationExecutor(
            {CommunicationChannelType.EMAIL: sender}, block_external_comms=True
        )
        action = action_factory(DomainActionType.COMMUNICATION, payload=email().to_payload())

        await executor.perform_job(action, mock_conn)

        sender.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_unconfigured_channel_fails(self, mock_conn, action_factory):
        executor = SendCommunicationExecutor({})
        payload = email(comm_type=CommunicationType.SMS).to_payload()
        action = action_factory(DomainActionType.COMMUNICATION, payload=payload)

        with pytest.raises(ApplicationError):
            await executor.perform_job(action, mock_conn)
