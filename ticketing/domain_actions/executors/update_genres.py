"""Recompute derived genres for artists' events, events or users."""

from typing import Optional
from uuid import UUID

import structlog

from ticketing.db.connection import Connection
from ticketing.domain_actions.executor import DomainActionExecutor, require_main_table
from ticketing.domain_actions.models import DomainAction, DomainEvent
from ticketing.domain_actions.types import DomainEventType, Tables
from ticketing.errors import ApplicationError
from ticketing.repositories.artists import ArtistRepository
from ticketing.repositories.events import EventRepository
from ticketing.repositories.users import UserRepository

logger = structlog.get_logger(__name__)


class UpdateGenresExecutor(DomainActionExecutor):
    failure_event = "update_genres_failed"

    async def perform_job(self, action: DomainAction, conn: Connection) -> None:
        db = conn.get()
        main_table, main_id = require_main_table(action)
        user_id = _optional_uuid(action.payload.get("user_id"))

        if main_table == Tables.ARTISTS:
            artist = await ArtistRepository(db).find(main_id)
            for event_id in await ArtistRepository(db).events(artist.id):
                await self._update_event(db, event_id, user_id)
        elif main_table == Tables.EVENTS:
            event = await EventRepository(db).find(main_id)
            await self._update_event(db, event.id, user_id)
        elif main_table == Tables.USERS:
            user = await UserRepository(db).find(main_id)
            await UserRepository(db).update_genre_info(user.id)
        else:
            raise ApplicationError("Table not supported")

    async def _update_event(self, db, event_id: UUID, user_id: Optional[UUID]) -> None:
        genres = await EventRepository(db).update_genres(event_id)
        await DomainEvent.create(
            DomainEventType.GENRES_UPDATED,
            "Genres updated",
            Tables.EVENTS,
            main_id=event_id,
            user_id=user_id,
            event_data={"genres": genres},
        ).commit(db)


def _optional_uuid(value) -> Optional[UUID]:
    if value is None:
        return None
    try:
        return UUID(str(value))
    except ValueError as e:
        raise ApplicationError(f"Payload field user_id is not a valid id: {value}") from e
