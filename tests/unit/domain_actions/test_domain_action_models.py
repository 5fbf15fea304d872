"""Tests for domain action models and types."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from ticketing.domain_actions.models import (
    DEFAULT_EXPIRY,
    DEFAULT_MAX_ATTEMPTS,
    DomainAction,
    calculate_backoff,
    utcnow,
)
from ticketing.domain_actions.types import (
    CommunicationChannelType,
    DomainActionStatus,
    DomainActionType,
    Tables,
)
from ticketing.errors import DomainActionError


class TestDomainActionStatus:
    def test_terminal_statuses(self):
        assert DomainActionStatus.SUCCESS.is_terminal
        assert DomainActionStatus.RETRIES_EXCEEDED.is_terminal
        assert DomainActionStatus.CANCELLED.is_terminal

    def test_retryable_statuses_not_terminal(self):
        assert not DomainActionStatus.PENDING.is_terminal
        assert not DomainActionStatus.ERRORED.is_terminal

    def test_action_type_values_are_snake_case(self):
        for action_type in DomainActionType:
            assert action_type.value == action_type.name.lower()


class TestCalculateBackoff:
    def test_first_retry(self):
        # 2^1 * 5 = 10, jitter up to 5
        assert 10 <= calculate_backoff(1) <= 15

    def test_second_retry(self):
        assert 20 <= calculate_backoff(2) <= 30

    def test_capped(self):
        assert 300 <= calculate_backoff(10) <= 310


class TestCreate:
    def test_defaults(self):
        before = utcnow()
        new_action = DomainAction.create(DomainActionType.FINALIZE_SETTLEMENTS)

        assert new_action.payload == {}
        assert new_action.max_attempt_count == DEFAULT_MAX_ATTEMPTS
        assert new_action.scheduled_at >= before
        assert new_action.expires_at == new_action.scheduled_at + DEFAULT_EXPIRY
        assert new_action.main_table is None

    def test_carries_pointer_and_channel(self):
        hold_id = uuid4()
        new_action = DomainAction.create(
            DomainActionType.COMMUNICATION,
            {"title": "hi"},
            communication_channel_type=CommunicationChannelType.EMAIL,
            main_table=Tables.HOLDS,
            main_table_id=hold_id,
        )
        assert new_action.main_table == Tables.HOLDS
        assert new_action.main_table_id == hold_id
        assert new_action.communication_channel_type == CommunicationChannelType.EMAIL

    def test_scheduled_after_expiry_rejected(self):
        now = utcnow()
        with pytest.raises(DomainActionError):
            DomainAction.create(
                DomainActionType.UPDATE_GENRES,
                scheduled_at=now + timedelta(days=2),
                expires_at=now + timedelta(days=1),
            )

    def test_zero_attempts_rejected(self):
        with pytest.raises(DomainActionError):
            DomainAction.create(DomainActionType.UPDATE_GENRES, max_attempt_count=0)

    def test_schedule_at_keeps_lifetime(self):
        new_action = DomainAction.create(DomainActionType.UPDATE_GENRES)
        later = new_action.expires_at + timedelta(days=3)

        new_action.schedule_at(later)

        assert new_action.scheduled_at == later
        assert new_action.expires_at == later + DEFAULT_EXPIRY

    @pytest.mark.asyncio
    async def test_commit_inserts_on_given_connection(self):
        conn = object()
        new_action = DomainAction.create(DomainActionType.UPDATE_GENRES)

        with patch(
            "ticketing.repositories.domain_actions.DomainActionRepository.insert",
            new=AsyncMock(return_value="inserted"),
        ) as insert:
            result = await new_action.commit(conn)

        assert result == "inserted"
        insert.assert_awaited_once_with(new_action)


class TestFailureOutcome:
    def test_first_failure_is_errored_with_backoff(self, action_factory):
        action = action_factory(attempt_count=0, max_attempt_count=3)
        now = utcnow()

        outcome = action.failure_outcome(now)

        assert outcome.status == DomainActionStatus.ERRORED
        assert outcome.attempt_count == 1
        assert now + timedelta(seconds=10) <= outcome.blocked_until
        assert outcome.blocked_until <= now + timedelta(seconds=15)

    def test_last_attempt_exceeds_retries(self, action_factory):
        action = action_factory(attempt_count=2, max_attempt_count=3)

        outcome = action.failure_outcome()

        assert outcome.status == DomainActionStatus.RETRIES_EXCEEDED
        assert outcome.attempt_count == 3

    def test_single_attempt_action(self, action_factory):
        action = action_factory(max_attempt_count=1)
        assert action.failure_outcome().status == DomainActionStatus.RETRIES_EXCEEDED
