"""Apply a payment provider IPN (instant payment notification) to its order."""

from typing import Any, Optional
from uuid import UUID

import structlog

from ticketing.db.connection import Connection
from ticketing.domain_actions.collaborators import PaymentProviderClient
from ticketing.domain_actions.executor import DomainActionExecutor
from ticketing.domain_actions.models import DomainAction
from ticketing.errors import ApplicationError
from ticketing.repositories.orders import OrderRepository
from ticketing.repositories.payments import PaymentRepository, PaymentStatus

logger = structlog.get_logger(__name__)

PROVIDER = "globee"

IPN_STATUSES = {
    "unpaid": PaymentStatus.UNPAID,
    "paid": PaymentStatus.PENDING_CONFIRMATION,
    "overpaid": PaymentStatus.PENDING_CONFIRMATION,
    "underpaid": PaymentStatus.PENDING_CONFIRMATION,
    "paid_late": PaymentStatus.PENDING_CONFIRMATION,
    "confirmed": PaymentStatus.COMPLETED,
    "completed": PaymentStatus.COMPLETED,
    "refunded": PaymentStatus.REFUNDED,
    "cancelled": PaymentStatus.CANCELLED,
    "draft": PaymentStatus.DRAFT,
}


def payment_status_for(ipn_status: Optional[str]) -> PaymentStatus:
    return IPN_STATUSES.get((ipn_status or "none").lower(), PaymentStatus.UNKNOWN)


def received_amount_cents(ipn: dict[str, Any]) -> int:
    details = ipn.get("payment_details") or {}
    return int(round(float(details.get("received_amount") or 0) * 100))


class ProcessPaymentIPNExecutor(DomainActionExecutor):
    failure_event = "payment_ipn_processing_failed"

    def __init__(
        self,
        payment_provider: Optional[PaymentProviderClient] = None,
        verify_ipn: bool = True,
    ):
        self._provider = payment_provider
        self.verify_ipn = verify_ipn

    async def perform_job(self, action: DomainAction, conn: Connection) -> None:
        ipn = dict(action.payload)
        if not ipn.get("custom_payment_id"):
            logger.info("ipn_without_custom_payment_id", ipn_id=ipn.get("id"))
            return

        if self.verify_ipn:
            if self._provider is None:
                raise ApplicationError("No payment provider configured to verify IPN")
            ipn = await self._provider.get_payment_request(ipn["id"])

        custom_payment_id = ipn.get("custom_payment_id")
        if not custom_payment_id:
            raise ApplicationError("Globee response did not include a custom_payment_id")
        try:
            order_id = UUID(str(custom_payment_id))
        except ValueError as e:
            raise ApplicationError(f"Invalid custom_payment_id {custom_payment_id}") from e

        db = conn.get()
        order = await OrderRepository(db).find(order_id)
        external_reference = f"{PROVIDER}-{ipn['id']}"
        status = payment_status_for(ipn.get("status"))
        amount = received_amount_cents(ipn)
        log = logger.bind(ipn_id=ipn["id"], order_id=str(order.id), status=status.value)

        payments = PaymentRepository(db)
        payment = await payments.find_by_order(order.id, external_reference)
        if payment is None:
            log.debug("ipn_payment_created")
            payment = await payments.create_provider_payment(
                order.id, external_reference, PROVIDER, amount, status, action.payload
            )

        if status == PaymentStatus.COMPLETED:
            log.info("ipn_payment_completed", amount=amount)
            await payments.mark_complete(payment, amount, ipn)
        else:
            log.debug("ipn_recorded")
            await payments.record_ipn(payment, status, ipn)
