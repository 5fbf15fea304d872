"""Email users who left items in their cart, then schedule the next run."""

from datetime import timedelta
from typing import Optional

import structlog

from ticketing.db.connection import Connection
from ticketing.domain_actions.communication import (
    CommAddress,
    Communication,
    CommunicationType,
)
from ticketing.domain_actions.executor import DomainActionExecutor, enqueue_next_run
from ticketing.domain_actions.models import DomainAction, DomainEvent
from ticketing.domain_actions.types import DomainActionType, DomainEventType, Tables
from ticketing.repositories.orders import OrderRepository
from ticketing.repositories.users import UserRepository

logger = structlog.get_logger(__name__)


class RetargetAbandonedOrdersExecutor(DomainActionExecutor):
    failure_event = "retarget_abandoned_orders_failed"

    def __init__(
        self,
        front_end_url: str,
        source_email: str,
        template_id: Optional[str] = None,
        interval_hours: int = 1,
        min_age_hours: int = 2,
        max_age_hours: int = 48,
    ):
        self.front_end_url = front_end_url.rstrip("/")
        self.source_email = source_email
        self.template_id = template_id
        self.interval = timedelta(hours=interval_hours)
        self.min_age_hours = min_age_hours
        self.max_age_hours = max_age_hours

    async def perform_job(self, action: DomainAction, conn: Connection) -> None:
        db = conn.get()
        orders = OrderRepository(db)
        users = UserRepository(db)

        carts = await orders.find_abandoned_carts(self.min_age_hours, self.max_age_hours)
        emailed = 0
        for order in carts:
            user = await users.find(order.user_id)
            if user.email:
                await Communication(
                    comm_type=CommunicationType.EMAIL_TEMPLATE,
                    title="You left something in your cart",
                    destinations=CommAddress.from_address(user.email),
                    source=CommAddress.from_address(self.source_email),
                    template_id=self.template_id,
                    template_data=[
                        {
                            "name": user.first_name or "",
                            "cart_url": f"{self.front_end_url}/cart",
                            "order_id": str(order.id),
                        }
                    ],
                    categories=["abandoned_cart"],
                ).queue(db, Tables.ORDERS, order.id)
                await DomainEvent.create(
                    DomainEventType.ORDER_RETARGETING_EMAIL_TRIGGERED,
                    "Abandoned cart retargeting email triggered",
                    Tables.ORDERS,
                    main_id=order.id,
                    user_id=user.id,
                ).commit(db)
                emailed += 1
            await orders.mark_retargeted(order.id)

        logger.info("abandoned_orders_retargeted", carts=len(carts), emailed=emailed)
        await enqueue_next_run(db, DomainActionType.RETARGET_ABANDONED_ORDERS, self.interval)
