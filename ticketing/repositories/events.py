"""Repository for events and their audiences."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID

import structlog

from ticketing.errors import NotFoundError, wrap_db_errors
from ticketing.repositories.users import User

logger = structlog.get_logger(__name__)


class EventStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CLOSED = "closed"
    OFFLINE = "offline"
    DELETED = "deleted"


@dataclass
class Event:
    id: UUID
    name: str
    organization_id: UUID
    status: EventStatus
    publish_date: Optional[datetime] = None
    event_start: Optional[datetime] = None
    event_end: Optional[datetime] = None
    sendgrid_list_id: Optional[int] = None

    @property
    def is_published(self) -> bool:
        """Published and past its publish date."""
        return (
            self.status == EventStatus.PUBLISHED
            and self.publish_date is not None
            and self.publish_date <= datetime.now(timezone.utc)
        )

    @property
    def is_on_sale(self) -> bool:
        now = datetime.now(timezone.utc)
        return self.status == EventStatus.PUBLISHED and (
            self.event_end is None or self.event_end > now
        )

    def days_until_event(self) -> Optional[int]:
        if self.event_start is None:
            return None
        return (self.event_start - datetime.now(timezone.utc)).days


@dataclass
class Fan:
    user_id: UUID
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


_EVENT_COLUMNS = """
    id, name, organization_id, status, publish_date,
    event_start, event_end, sendgrid_list_id
"""


class EventRepository:
    def __init__(self, conn):
        self._conn = conn

    async def find(self, event_id: UUID) -> Event:
        query = f"SELECT {_EVENT_COLUMNS} FROM events WHERE id = $1"
        async with wrap_db_errors("Could not load event"):
            row = await self._conn.fetchrow(query, event_id)
        if not row:
            raise NotFoundError(f"Event {event_id} not found")
        return self._row_to_event(row)

    async def find_upcoming_published(self) -> list[Event]:
        """Published events that have not ended yet."""
        query = f"""
            SELECT {_EVENT_COLUMNS} FROM events
            WHERE status = 'published'
              AND deleted_at IS NULL
              AND (event_end IS NULL OR event_end > now())
            ORDER BY event_start
        """
        async with wrap_db_errors("Could not list upcoming events"):
            rows = await self._conn.fetch(query)
        return [self._row_to_event(row) for row in rows]

    async def checked_in_users(self, event_id: UUID) -> list[User]:
        """Users holding a redeemed ticket for the event."""
        query = """
            SELECT DISTINCT u.id, u.first_name, u.last_name, u.email, u.phone
            FROM users u
            JOIN wallets w ON w.user_id = u.id
            JOIN ticket_instances ti ON ti.wallet_id = w.id
            JOIN ticket_types tt ON tt.id = ti.ticket_type_id
            WHERE tt.event_id = $1
              AND ti.status = 'redeemed'
        """
        async with wrap_db_errors("Could not load checked in users"):
            rows = await self._conn.fetch(query, event_id)
        return [_row_to_user(row) for row in rows]

    async def ticket_holders(self, event_id: UUID) -> list[User]:
        """Users holding a purchased or redeemed ticket for the event."""
        query = """
            SELECT DISTINCT u.id, u.first_name, u.last_name, u.email, u.phone
            FROM users u
            JOIN wallets w ON w.user_id = u.id
            JOIN ticket_instances ti ON ti.wallet_id = w.id
            JOIN ticket_types tt ON tt.id = ti.ticket_type_id
            WHERE tt.event_id = $1
              AND ti.status IN ('purchased', 'redeemed')
        """
        async with wrap_db_errors("Could not load ticket holders"):
            rows = await self._conn.fetch(query, event_id)
        return [_row_to_user(row) for row in rows]

    async def update_genres(self, event_id: UUID) -> list[str]:
        """Recompute an event's genres from its artists. Returns genre names."""
        delete_query = "DELETE FROM event_genres WHERE event_id = $1"
        insert_query = """
            INSERT INTO event_genres (event_id, genre_id)
            SELECT DISTINCT ea.event_id, ag.genre_id
            FROM event_artists ea
            JOIN artist_genres ag ON ag.artist_id = ea.artist_id
            WHERE ea.event_id = $1
        """
        names_query = """
            SELECT g.name FROM event_genres eg
            JOIN genres g ON g.id = eg.genre_id
            WHERE eg.event_id = $1
            ORDER BY g.name
        """
        async with wrap_db_errors("Could not update event genres"):
            await self._conn.execute(delete_query, event_id)
            await self._conn.execute(insert_query, event_id)
            rows = await self._conn.fetch(names_query, event_id)
        genres = [row["name"] for row in rows]
        logger.debug("event_genres_updated", event_id=str(event_id), genres=genres)
        return genres

    async def pending_transfers(self, event_id: UUID) -> list[UUID]:
        """IDs of pending transfers that include tickets for the event."""
        query = """
            SELECT DISTINCT t.id
            FROM transfers t
            JOIN transfer_tickets tt2 ON tt2.transfer_id = t.id
            JOIN ticket_instances ti ON ti.id = tt2.ticket_instance_id
            JOIN ticket_types tt ON tt.id = ti.ticket_type_id
            WHERE tt.event_id = $1
              AND t.status = 'pending'
        """
        async with wrap_db_errors("Could not load pending transfers"):
            rows = await self._conn.fetch(query, event_id)
        return [row["id"] for row in rows]

    async def set_sendgrid_list_id(self, event_id: UUID, list_id: int) -> None:
        query = """
            UPDATE events SET sendgrid_list_id = $2, updated_at = now()
            WHERE id = $1
        """
        async with wrap_db_errors("Could not store sendgrid list id"):
            await self._conn.execute(query, event_id, list_id)

    async def search_fans(self, event_id: UUID) -> list[Fan]:
        """Everyone who bought tickets for the event."""
        query = """
            SELECT DISTINCT u.id AS user_id, u.email, u.first_name, u.last_name
            FROM orders o
            JOIN order_items oi ON oi.order_id = o.id
            JOIN users u ON u.id = COALESCE(o.on_behalf_of_user_id, o.user_id)
            WHERE oi.event_id = $1
              AND o.status = 'paid'
        """
        async with wrap_db_errors("Could not search event fans"):
            rows = await self._conn.fetch(query, event_id)
        return [
            Fan(
                user_id=row["user_id"],
                email=row["email"],
                first_name=row["first_name"],
                last_name=row["last_name"],
            )
            for row in rows
        ]

    def _row_to_event(self, row) -> Event:
        return row_to_event(row)


def row_to_event(row) -> Event:
    return Event(
        id=row["id"],
        name=row["name"],
        organization_id=row["organization_id"],
        status=EventStatus(row["status"]),
        publish_date=row["publish_date"],
        event_start=row["event_start"],
        event_end=row["event_end"],
        sendgrid_list_id=row["sendgrid_list_id"],
    )


def _row_to_user(row) -> User:
    return User(
        id=row["id"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        email=row["email"],
        phone=row["phone"],
    )
