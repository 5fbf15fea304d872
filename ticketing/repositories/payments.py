"""Repository for provider payments and their notifications."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional
from uuid import UUID

import structlog

from ticketing.errors import NotFoundError, wrap_db_errors
from ticketing.repositories.utils import to_jsonb

logger = structlog.get_logger(__name__)


class PaymentStatus(str, Enum):
    DRAFT = "draft"
    UNPAID = "unpaid"
    PENDING_CONFIRMATION = "pending_confirmation"
    COMPLETED = "completed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


@dataclass
class Payment:
    id: UUID
    order_id: UUID
    status: PaymentStatus
    provider: str
    external_reference: Optional[str] = None
    amount: int = 0


class PaymentRepository:
    def __init__(self, conn):
        self._conn = conn

    async def find_by_order(
        self, order_id: UUID, external_reference: str
    ) -> Optional[Payment]:
        query = """
            SELECT * FROM payments
            WHERE order_id = $1 AND external_reference = $2
        """
        async with wrap_db_errors("Could not load payment"):
            row = await self._conn.fetchrow(query, order_id, external_reference)
        return self._row_to_payment(row) if row else None

    async def create_provider_payment(
        self,
        order_id: UUID,
        external_reference: str,
        provider: str,
        amount: int,
        status: PaymentStatus,
        raw_data: dict[str, Any],
    ) -> Payment:
        query = """
            INSERT INTO payments (
                order_id, external_reference, provider, payment_method,
                amount, status, raw_data
            )
            VALUES ($1, $2, $3, 'provider', $4, $5, $6::jsonb)
            RETURNING *
        """
        async with wrap_db_errors("Could not create provider payment"):
            row = await self._conn.fetchrow(
                query,
                order_id,
                external_reference,
                provider,
                amount,
                status.value,
                to_jsonb(raw_data),
            )
        payment = self._row_to_payment(row)
        logger.info(
            "provider_payment_created",
            payment_id=str(payment.id),
            order_id=str(order_id),
            status=status.value,
        )
        return payment

    async def mark_complete(
        self, payment: Payment, amount: int, raw_data: dict[str, Any]
    ) -> Payment:
        """Record the received amount and complete the payment and its order."""
        payment_query = """
            UPDATE payments SET
                status = 'completed', amount = $2, raw_data = $3::jsonb,
                updated_at = now()
            WHERE id = $1
            RETURNING *
        """
        order_query = """
            UPDATE orders SET status = 'paid', paid_at = now(), updated_at = now()
            WHERE id = $1 AND status <> 'paid'
        """
        async with wrap_db_errors("Could not complete payment"):
            row = await self._conn.fetchrow(
                payment_query, payment.id, amount, to_jsonb(raw_data)
            )
            if not row:
                raise NotFoundError(f"Payment {payment.id} not found")
            await self._conn.execute(order_query, payment.order_id)
        await self.record_ipn(payment, PaymentStatus.COMPLETED, raw_data)
        return self._row_to_payment(row)

    async def record_ipn(
        self, payment: Payment, status: PaymentStatus, raw_data: dict[str, Any]
    ) -> None:
        query = """
            INSERT INTO payment_notifications (payment_id, status, raw_data)
            VALUES ($1, $2, $3::jsonb)
        """
        async with wrap_db_errors("Could not record payment notification"):
            await self._conn.execute(query, payment.id, status.value, to_jsonb(raw_data))

    def _row_to_payment(self, row) -> Payment:
        return Payment(
            id=row["id"],
            order_id=row["order_id"],
            status=PaymentStatus(row["status"]),
            provider=row["provider"],
            external_reference=row["external_reference"],
            amount=row["amount"],
        )
