"""Domain action data models."""

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Optional
from uuid import UUID

from ticketing.domain_actions.types import (
    CommunicationChannelType,
    DomainActionStatus,
    DomainActionType,
    DomainEventType,
    Tables,
)
from ticketing.errors import DomainActionError

if TYPE_CHECKING:
    import asyncpg

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_EXPIRY = timedelta(days=7)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def calculate_backoff(attempt: int) -> int:
    """Retry backoff in seconds: min(300, 2^attempt * 5) + jitter."""
    base = min(300, (2**attempt) * 5)
    jitter = random.randint(0, min(10, base // 2))
    return base + jitter


@dataclass
class FailureOutcome:
    """Column values written by set_failed."""

    status: DomainActionStatus
    attempt_count: int
    blocked_until: datetime


@dataclass
class DomainAction:
    """A persisted unit of deferred work."""

    id: UUID
    domain_action_type: DomainActionType
    payload: dict[str, Any]
    scheduled_at: datetime
    expires_at: datetime
    blocked_until: datetime
    status: DomainActionStatus = DomainActionStatus.PENDING

    domain_event_id: Optional[UUID] = None
    communication_channel_type: Optional[CommunicationChannelType] = None
    main_table: Optional[Tables] = None
    main_table_id: Optional[UUID] = None

    # Retry handling
    attempt_count: int = 0
    max_attempt_count: int = DEFAULT_MAX_ATTEMPTS
    last_attempted_at: Optional[datetime] = None
    last_failure_reason: Optional[str] = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @staticmethod
    def create(
        domain_action_type: DomainActionType,
        payload: Optional[dict[str, Any]] = None,
        *,
        domain_event_id: Optional[UUID] = None,
        communication_channel_type: Optional[CommunicationChannelType] = None,
        main_table: Optional[Tables] = None,
        main_table_id: Optional[UUID] = None,
        scheduled_at: Optional[datetime] = None,
        expires_at: Optional[datetime] = None,
        max_attempt_count: int = DEFAULT_MAX_ATTEMPTS,
    ) -> "NewDomainAction":
        """Build an unsaved action. Call ``commit(conn)`` to insert it."""
        scheduled_at = scheduled_at or utcnow()
        new_action = NewDomainAction(
            domain_action_type=domain_action_type,
            payload=payload if payload is not None else {},
            domain_event_id=domain_event_id,
            communication_channel_type=communication_channel_type,
            main_table=main_table,
            main_table_id=main_table_id,
            scheduled_at=scheduled_at,
            expires_at=expires_at or scheduled_at + DEFAULT_EXPIRY,
            max_attempt_count=max_attempt_count,
        )
        new_action.validate()
        return new_action

    def failure_outcome(self, now: Optional[datetime] = None) -> FailureOutcome:
        """Next status, attempt count and backoff gate after one failed attempt."""
        now = now or utcnow()
        attempt_count = self.attempt_count + 1
        if attempt_count >= self.max_attempt_count:
            return FailureOutcome(
                status=DomainActionStatus.RETRIES_EXCEEDED,
                attempt_count=attempt_count,
                blocked_until=now,
            )
        return FailureOutcome(
            status=DomainActionStatus.ERRORED,
            attempt_count=attempt_count,
            blocked_until=now + timedelta(seconds=calculate_backoff(attempt_count)),
        )

    async def set_done(self, conn: "asyncpg.Connection") -> "DomainAction":
        """Persist Success."""
        from ticketing.repositories.domain_actions import DomainActionRepository

        return await DomainActionRepository(conn).set_done(self)

    async def set_failed(self, reason: str, conn: "asyncpg.Connection") -> "DomainAction":
        """Record a failed attempt; see failure_outcome for the transition."""
        from ticketing.repositories.domain_actions import DomainActionRepository

        return await DomainActionRepository(conn).set_failed(self, reason)

    async def set_cancelled(self, conn: "asyncpg.Connection") -> "DomainAction":
        """Cancel out of band (operator or business action)."""
        from ticketing.repositories.domain_actions import DomainActionRepository

        return await DomainActionRepository(conn).set_cancelled(self)


@dataclass
class NewDomainAction:
    """An action not yet inserted. Insert it on the producer's connection."""

    domain_action_type: DomainActionType
    payload: dict[str, Any]
    scheduled_at: datetime
    expires_at: datetime
    max_attempt_count: int = DEFAULT_MAX_ATTEMPTS
    domain_event_id: Optional[UUID] = None
    communication_channel_type: Optional[CommunicationChannelType] = None
    main_table: Optional[Tables] = None
    main_table_id: Optional[UUID] = None

    def validate(self) -> None:
        if self.scheduled_at > self.expires_at:
            raise DomainActionError(
                f"Action {self.domain_action_type.value} scheduled after it expires"
            )
        if self.max_attempt_count < 1:
            raise DomainActionError("max_attempt_count must be at least 1")

    def schedule_at(self, when: datetime) -> "NewDomainAction":
        """Move the earliest execution time, keeping the same lifetime."""
        lifetime = self.expires_at - self.scheduled_at
        self.scheduled_at = when
        if self.expires_at < when:
            self.expires_at = when + lifetime
        return self

    async def commit(self, conn: "asyncpg.Connection") -> DomainAction:
        """Insert on the given connection (inside the caller's transaction)."""
        from ticketing.repositories.domain_actions import DomainActionRepository

        self.validate()
        return await DomainActionRepository(conn).insert(self)


@dataclass
class DomainEvent:
    """Audit record of something that already happened."""

    id: UUID
    event_type: DomainEventType
    display_text: str
    main_table: Tables
    main_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    event_data: Optional[dict[str, Any]] = None
    created_at: datetime = field(default_factory=utcnow)

    @staticmethod
    def create(
        event_type: DomainEventType,
        display_text: str,
        main_table: Tables,
        main_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
        event_data: Optional[dict[str, Any]] = None,
    ) -> "NewDomainEvent":
        return NewDomainEvent(
            event_type=event_type,
            display_text=display_text,
            main_table=main_table,
            main_id=main_id,
            user_id=user_id,
            event_data=event_data,
        )


@dataclass
class NewDomainEvent:
    event_type: DomainEventType
    display_text: str
    main_table: Tables
    main_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    event_data: Optional[dict[str, Any]] = None

    async def commit(self, conn: "asyncpg.Connection") -> DomainEvent:
        from ticketing.repositories.domain_events import DomainEventRepository

        return await DomainEventRepository(conn).insert(self)
