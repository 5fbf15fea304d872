"""Tests for domain action and domain event repositories."""

from datetime import timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import asyncpg
import pytest

from ticketing.domain_actions.models import DomainAction, DomainEvent, utcnow
from ticketing.domain_actions.types import (
    DomainActionStatus,
    DomainActionType,
    DomainEventType,
    Tables,
)
from ticketing.errors import ConcurrencyError, DatabaseError, NotFoundError
from ticketing.repositories.domain_actions import DomainActionRepository
from ticketing.repositories.domain_events import DomainEventRepository


class TestInsert:
    @pytest.mark.asyncio
    async def test_insert_serializes_payload(self, action_factory, row_factory):
        hold_id = uuid4()
        new_action = DomainAction.create(
            DomainActionType.RELEASE_HOLD_INVENTORY,
            {"reason": "hold ended"},
            main_table=Tables.HOLDS,
            main_table_id=hold_id,
        )
        stored = action_factory(
            DomainActionType.RELEASE_HOLD_INVENTORY,
            payload={"reason": "hold ended"},
            main_table=Tables.HOLDS,
            main_table_id=hold_id,
        )
        conn = AsyncMock()
        conn.fetchrow = AsyncMock(
            return_value=row_factory(stored, payload='{"reason": "hold ended"}')
        )

        action = await DomainActionRepository(conn).insert(new_action)

        args = conn.fetchrow.await_args.args
        assert "INSERT INTO domain_actions" in args[0]
        assert args[1] == "release_hold_inventory"
        assert args[2] == '{"reason": "hold ended"}'
        assert args[5] == "holds"
        assert args[6] == hold_id
        assert action.payload == {"reason": "hold ended"}
        assert action.main_table == Tables.HOLDS

    @pytest.mark.asyncio
    async def test_driver_error_wrapped(self):
        conn = AsyncMock()
        conn.fetchrow = AsyncMock(side_effect=asyncpg.PostgresError("connection reset"))

        with pytest.raises(DatabaseError):
            await DomainActionRepository(conn).insert(
                DomainAction.create(DomainActionType.UPDATE_GENRES)
            )


class TestFind:
    @pytest.mark.asyncio
    async def test_missing_action_raises(self):
        conn = AsyncMock()
        conn.fetchrow = AsyncMock(return_value=None)

        with pytest.raises(NotFoundError):
            await DomainActionRepository(conn).find(uuid4())

    @pytest.mark.asyncio
    async def test_row_converted(self, action_factory, row_factory):
        stored = action_factory(
            DomainActionType.COMMUNICATION, status=DomainActionStatus.ERRORED, attempt_count=1
        )
        conn = AsyncMock()
        conn.fetchrow = AsyncMock(return_value=row_factory(stored))

        action = await DomainActionRepository(conn).find(stored.id)

        assert action == stored


class TestClaimPending:
    @pytest.mark.asyncio
    async def test_claim_skips_locked_rows(self):
        conn = AsyncMock()
        conn.fetch = AsyncMock(return_value=[])

        result = await DomainActionRepository(conn).claim_pending(busy_seconds=60, limit=5)

        assert result == []
        query, *params = conn.fetch.await_args.args
        assert "FOR UPDATE SKIP LOCKED" in query
        assert "blocked_until <= now()" in query
        assert params == [60, 5]

    @pytest.mark.asyncio
    async def test_claim_only_due_rows(self):
        conn = AsyncMock()
        conn.fetch = AsyncMock(return_value=[])

        await DomainActionRepository(conn).claim_pending(busy_seconds=60, limit=5)

        query = conn.fetch.await_args.args[0]
        assert "status IN ('pending', 'errored')" in query
        assert "attempt_count < max_attempt_count" in query
        assert "scheduled_at <= now()" in query
        assert "expires_at > now()" in query

    @pytest.mark.asyncio
    async def test_claim_filters_types(self):
        conn = AsyncMock()
        conn.fetch = AsyncMock(return_value=[])

        await DomainActionRepository(conn).claim_pending(
            busy_seconds=60,
            limit=5,
            action_types=[DomainActionType.COMMUNICATION, DomainActionType.UPDATE_GENRES],
        )

        query, *params = conn.fetch.await_args.args
        assert "domain_action_type = ANY($3)" in query
        assert params[2] == ["communication", "update_genres"]

    @pytest.mark.asyncio
    async def test_claimed_actions_ordered_by_schedule(self, action_factory, row_factory):
        now = utcnow()
        later = action_factory(scheduled_at=now - timedelta(minutes=1))
        earlier = action_factory(scheduled_at=now - timedelta(minutes=10))
        conn = AsyncMock()
        conn.fetch = AsyncMock(return_value=[row_factory(later), row_factory(earlier)])

        claimed = await DomainActionRepository(conn).claim_pending(busy_seconds=60, limit=5)

        assert [a.id for a in claimed] == [earlier.id, later.id]


class TestSetFailed:
    @pytest.mark.asyncio
    async def test_first_failure_marks_errored(self, action_factory, row_factory):
        action = action_factory(attempt_count=0, max_attempt_count=3)
        conn = AsyncMock()
        conn.fetchrow = AsyncMock(
            return_value=row_factory(action, status="errored", attempt_count=1)
        )

        updated = await DomainActionRepository(conn).set_failed(action, "boom")

        _, action_id, status, attempt_count, blocked_until, reason, attempted_at = (
            conn.fetchrow.await_args.args
        )
        assert action_id == action.id
        assert status == "errored"
        assert attempt_count == 1
        assert blocked_until > attempted_at
        assert reason == "boom"
        assert updated.status == DomainActionStatus.ERRORED

    @pytest.mark.asyncio
    async def test_last_failure_marks_retries_exceeded(self, action_factory, row_factory):
        action = action_factory(attempt_count=2, max_attempt_count=3)
        conn = AsyncMock()
        conn.fetchrow = AsyncMock(
            return_value=row_factory(action, status="retries_exceeded", attempt_count=3)
        )

        await DomainActionRepository(conn).set_failed(action, "boom")

        args = conn.fetchrow.await_args.args
        assert args[2] == "retries_exceeded"
        assert args[3] == 3

    @pytest.mark.asyncio
    async def test_missing_row_raises(self, action_factory):
        conn = AsyncMock()
        conn.fetchrow = AsyncMock(return_value=None)

        with pytest.raises(NotFoundError):
            await DomainActionRepository(conn).set_failed(action_factory(), "boom")


class TestSetCancelled:
    @pytest.mark.asyncio
    async def test_terminal_action_left_unchanged(self, action_factory, row_factory):
        done = action_factory(status=DomainActionStatus.SUCCESS)
        conn = AsyncMock()
        conn.fetchrow = AsyncMock(side_effect=[None, row_factory(done)])

        result = await DomainActionRepository(conn).set_cancelled(done)

        assert result.status == DomainActionStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_pending_action_cancelled(self, action_factory, row_factory):
        pending = action_factory()
        conn = AsyncMock()
        conn.fetchrow = AsyncMock(return_value=row_factory(pending, status="cancelled"))

        result = await DomainActionRepository(conn).set_cancelled(pending)

        assert result.status == DomainActionStatus.CANCELLED
        assert "status IN ('pending', 'errored')" in conn.fetchrow.await_args.args[0]


class TestLookups:
    @pytest.mark.asyncio
    async def test_has_pending_action(self):
        conn = AsyncMock()
        conn.fetchval = AsyncMock(return_value=True)
        event_id = uuid4()

        assert await DomainActionRepository(conn).has_pending_action(
            DomainActionType.PROCESS_TRANSFER_DRIP, Tables.EVENTS, event_id
        )
        assert conn.fetchval.await_args.args[1:] == (
            "process_transfer_drip",
            "events",
            event_id,
        )

    @pytest.mark.asyncio
    async def test_upcoming_without_subject(self):
        conn = AsyncMock()
        conn.fetchrow = AsyncMock(return_value=None)

        result = await DomainActionRepository(conn).upcoming_domain_action(
            DomainActionType.SEND_AUTOMATIC_REPORT_EMAILS
        )

        assert result is None
        assert conn.fetchrow.await_args.args[1:] == (
            "send_automatic_report_emails",
            None,
            None,
        )

    @pytest.mark.asyncio
    async def test_find_stuck_passes_threshold(self):
        conn = AsyncMock()
        conn.fetch = AsyncMock(return_value=[])

        await DomainActionRepository(conn).find_stuck(45)

        assert conn.fetch.await_args.args[1] == 45


class TestDomainEventRepository:
    @pytest.mark.asyncio
    async def test_insert(self):
        hold_id = uuid4()
        conn = AsyncMock()
        conn.fetchrow = AsyncMock(
            return_value={
                "id": uuid4(),
                "event_type": "hold_automatically_released",
                "display_text": "Hold released",
                "event_data": '{"name": "Sponsor seats"}',
                "main_table": "holds",
                "main_id": hold_id,
                "user_id": None,
                "created_at": utcnow(),
            }
        )

        event = await DomainEventRepository(conn).insert(
            DomainEvent.create(
                DomainEventType.HOLD_AUTOMATICALLY_RELEASED,
                "Hold released",
                Tables.HOLDS,
                main_id=hold_id,
                event_data={"name": "Sponsor seats"},
            )
        )

        assert event.event_type == DomainEventType.HOLD_AUTOMATICALLY_RELEASED
        assert event.event_data == {"name": "Sponsor seats"}
        assert conn.fetchrow.await_args.args[3] == '{"name": "Sponsor seats"}'


class TestWrapDbErrors:
    @pytest.mark.asyncio
    async def test_lock_failure_is_concurrency_error(self, action_factory):
        conn = AsyncMock()
        conn.fetchrow = AsyncMock(
            side_effect=asyncpg.exceptions.LockNotAvailableError("row is locked")
        )

        with pytest.raises(ConcurrencyError):
            await DomainActionRepository(conn).set_done(action_factory())
