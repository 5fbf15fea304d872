"""Purchase confirmation email for a completed order."""

from typing import Optional

import structlog

from ticketing.db.connection import Connection
from ticketing.domain_actions.communication import (
    CommAddress,
    Communication,
    CommunicationType,
)
from ticketing.domain_actions.executor import DomainActionExecutor, require_main_table_id
from ticketing.domain_actions.models import DomainAction
from ticketing.domain_actions.types import Tables
from ticketing.repositories.orders import OrderRepository
from ticketing.repositories.users import UserRepository

logger = structlog.get_logger(__name__)


class SendOrderCompleteExecutor(DomainActionExecutor):
    failure_event = "send_order_complete_failed"

    def __init__(
        self, front_end_url: str, source_email: str, template_id: Optional[str] = None
    ):
        self.front_end_url = front_end_url.rstrip("/")
        self.source_email = source_email
        self.template_id = template_id

    async def perform_job(self, action: DomainAction, conn: Connection) -> None:
        db = conn.get()
        order_id = require_main_table_id(action, "order id")
        order = await OrderRepository(db).find(order_id)
        user = await UserRepository(db).find(order.recipient_user_id)

        if not (user.first_name and user.email):
            logger.info("purchase_completed_email_skipped", order_id=str(order.id))
            return

        await Communication(
            comm_type=CommunicationType.EMAIL_TEMPLATE,
            title="Your purchase is complete",
            destinations=CommAddress.from_address(user.email),
            source=CommAddress.from_address(self.source_email),
            template_id=self.template_id,
            template_data=[
                {
                    "name": user.first_name,
                    "order_number": order.order_number,
                    "total_in_cents": order.total_in_cents,
                    "order_url": f"{self.front_end_url}/orders/{order.id}",
                }
            ],
            categories=["purchase_completed"],
        ).queue(db, Tables.ORDERS, order.id)
