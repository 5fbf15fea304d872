"""Repository for orders and abandoned carts."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

import structlog

from ticketing.errors import NotFoundError, wrap_db_errors

logger = structlog.get_logger(__name__)


@dataclass
class Order:
    id: UUID
    user_id: UUID
    status: str
    order_number: Optional[str] = None
    on_behalf_of_user_id: Optional[UUID] = None
    total_in_cents: int = 0
    retargeted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def recipient_user_id(self) -> UUID:
        """The user tickets are for: the on-behalf-of user if set."""
        return self.on_behalf_of_user_id or self.user_id


_ORDER_COLUMNS = """
    id, user_id, status, order_number, on_behalf_of_user_id,
    total_in_cents, retargeted_at, updated_at
"""


class OrderRepository:
    def __init__(self, conn):
        self._conn = conn

    async def find(self, order_id: UUID) -> Order:
        query = f"SELECT {_ORDER_COLUMNS} FROM orders WHERE id = $1"
        async with wrap_db_errors("Could not load order"):
            row = await self._conn.fetchrow(query, order_id)
        if not row:
            raise NotFoundError(f"Order {order_id} not found")
        return self._row_to_order(row)

    async def find_abandoned_carts(
        self, min_age_hours: int, max_age_hours: int
    ) -> list[Order]:
        """Draft orders with items, idle inside the window, never retargeted."""
        query = f"""
            SELECT {_ORDER_COLUMNS} FROM orders o
            WHERE o.status = 'draft'
              AND o.retargeted_at IS NULL
              AND o.updated_at <= now() - make_interval(hours => $1)
              AND o.updated_at > now() - make_interval(hours => $2)
              AND EXISTS (SELECT 1 FROM order_items oi WHERE oi.order_id = o.id)
            ORDER BY o.updated_at
            FOR UPDATE SKIP LOCKED
        """
        async with wrap_db_errors("Could not load abandoned carts"):
            rows = await self._conn.fetch(query, min_age_hours, max_age_hours)
        return [self._row_to_order(row) for row in rows]

    async def mark_retargeted(self, order_id: UUID) -> None:
        query = "UPDATE orders SET retargeted_at = now() WHERE id = $1"
        async with wrap_db_errors("Could not mark order retargeted"):
            await self._conn.execute(query, order_id)

    def _row_to_order(self, row) -> Order:
        return Order(
            id=row["id"],
            user_id=row["user_id"],
            status=row["status"],
            order_number=row["order_number"],
            on_behalf_of_user_id=row["on_behalf_of_user_id"],
            total_in_cents=row["total_in_cents"],
            retargeted_at=row["retargeted_at"],
            updated_at=row["updated_at"],
        )
