"""Repository for artists."""

from dataclasses import dataclass
from uuid import UUID

from ticketing.errors import NotFoundError, wrap_db_errors


@dataclass
class Artist:
    id: UUID
    name: str


class ArtistRepository:
    def __init__(self, conn):
        self._conn = conn

    async def find(self, artist_id: UUID) -> Artist:
        query = "SELECT id, name FROM artists WHERE id = $1"
        async with wrap_db_errors("Could not load artist"):
            row = await self._conn.fetchrow(query, artist_id)
        if not row:
            raise NotFoundError(f"Artist {artist_id} not found")
        return Artist(id=row["id"], name=row["name"])

    async def events(self, artist_id: UUID) -> list[UUID]:
        """IDs of the events the artist plays."""
        query = """
            SELECT DISTINCT event_id FROM event_artists
            WHERE artist_id = $1
        """
        async with wrap_db_errors("Could not load artist events"):
            rows = await self._conn.fetch(query, artist_id)
        return [row["event_id"] for row in rows]
