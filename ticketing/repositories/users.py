"""Repository for users and their push tokens."""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

import structlog

from ticketing.errors import NotFoundError, wrap_db_errors

logger = structlog.get_logger(__name__)


@dataclass
class User:
    id: UUID
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class UserRepository:
    def __init__(self, conn):
        self._conn = conn

    async def find(self, user_id: UUID) -> User:
        query = "SELECT id, first_name, last_name, email, phone FROM users WHERE id = $1"
        async with wrap_db_errors("Could not load user"):
            row = await self._conn.fetchrow(query, user_id)
        if not row:
            raise NotFoundError(f"User {user_id} not found")
        return self._row_to_user(row)

    async def push_notification_tokens(self, user_id: UUID) -> list[str]:
        query = """
            SELECT token FROM push_notification_tokens
            WHERE user_id = $1
            ORDER BY created_at
        """
        async with wrap_db_errors("Could not load push notification tokens"):
            rows = await self._conn.fetch(query, user_id)
        return [row["token"] for row in rows]

    async def update_genre_info(self, user_id: UUID) -> None:
        """Recompute a user's genres from the events they hold tickets for."""
        delete_query = "DELETE FROM user_genres WHERE user_id = $1"
        insert_query = """
            INSERT INTO user_genres (user_id, genre_id)
            SELECT DISTINCT $1::uuid, eg.genre_id
            FROM ticket_instances ti
            JOIN wallets w ON w.id = ti.wallet_id
            JOIN ticket_types tt ON tt.id = ti.ticket_type_id
            JOIN event_genres eg ON eg.event_id = tt.event_id
            WHERE w.user_id = $1
        """
        async with wrap_db_errors("Could not update user genres"):
            await self._conn.execute(delete_query, user_id)
            await self._conn.execute(insert_query, user_id)
        logger.debug("user_genres_updated", user_id=str(user_id))

    def _row_to_user(self, row) -> User:
        return User(
            id=row["id"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            email=row["email"],
            phone=row["phone"],
        )
