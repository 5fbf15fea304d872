"""Action type to executor table."""

from typing import Callable, Optional

import structlog

from ticketing.config import Settings
from ticketing.domain_actions.collaborators import Collaborators
from ticketing.domain_actions.executor import DomainActionExecutor
from ticketing.domain_actions.executors import (
    BroadcastPushNotificationExecutor,
    BulkEventFanListImportExecutor,
    CreateEventListExecutor,
    FinalizeSettlementsExecutor,
    ProcessPaymentIPNExecutor,
    ProcessSettlementReportExecutor,
    ProcessTransferDripEventExecutor,
    RegenerateDripActionsExecutor,
    ReleaseHoldInventoryExecutor,
    RetargetAbandonedOrdersExecutor,
    SendAutomaticReportEmailsExecutor,
    SendCommunicationExecutor,
    SendOrderCompleteExecutor,
    SubmitSitemapToSearchEnginesExecutor,
    UpdateGenresExecutor,
)
from ticketing.domain_actions.types import DomainActionType
from ticketing.errors import DomainActionError

logger = structlog.get_logger(__name__)

ExecutorFactory = Callable[[Settings, Collaborators], DomainActionExecutor]


# Every DomainActionType needs an entry; set_up_executors refuses to start
# otherwise.
EXECUTOR_FACTORIES: dict[DomainActionType, ExecutorFactory] = {
    DomainActionType.BROADCAST_PUSH_NOTIFICATION: lambda s, c: BroadcastPushNotificationExecutor(
        template_id=s.custom_broadcast_template_id
    ),
    DomainActionType.COMMUNICATION: lambda s, c: SendCommunicationExecutor(
        c.senders, block_external_comms=s.block_external_comms
    ),
    DomainActionType.FINALIZE_SETTLEMENTS: lambda s, c: FinalizeSettlementsExecutor(
        interval_hours=s.finalize_settlements_interval_hours
    ),
    DomainActionType.MARKETING_CONTACTS_BULK_EVENT_FAN_LIST_IMPORT: lambda s, c: BulkEventFanListImportExecutor(
        c.marketing_contacts, delay_hours=s.fan_list_import_delay_hours
    ),
    DomainActionType.MARKETING_CONTACTS_CREATE_EVENT_LIST: lambda s, c: CreateEventListExecutor(
        c.marketing_contacts
    ),
    DomainActionType.PAYMENT_PROVIDER_IPN: lambda s, c: ProcessPaymentIPNExecutor(
        c.payment_provider, verify_ipn=s.ipn_base_url.lower() != "test"
    ),
    DomainActionType.PROCESS_SETTLEMENT_REPORT: lambda s, c: ProcessSettlementReportExecutor(
        interval_days=s.settlement_report_interval_days
    ),
    DomainActionType.PROCESS_TRANSFER_DRIP: lambda s, c: ProcessTransferDripEventExecutor(
        front_end_url=s.front_end_url,
        source_email=s.communication_default_source_email,
        template_id=s.transfer_drip_template_id,
        interval_hours=s.transfer_drip_interval_hours,
    ),
    DomainActionType.REGENERATE_DRIP_ACTIONS: lambda s, c: RegenerateDripActionsExecutor(),
    DomainActionType.RELEASE_HOLD_INVENTORY: lambda s, c: ReleaseHoldInventoryExecutor(),
    DomainActionType.RETARGET_ABANDONED_ORDERS: lambda s, c: RetargetAbandonedOrdersExecutor(
        front_end_url=s.front_end_url,
        source_email=s.communication_default_source_email,
        template_id=s.abandoned_cart_template_id,
        interval_hours=s.retarget_abandoned_orders_interval_hours,
        min_age_hours=s.abandoned_cart_min_age_hours,
        max_age_hours=s.abandoned_cart_max_age_hours,
    ),
    DomainActionType.SEND_AUTOMATIC_REPORT_EMAILS: lambda s, c: SendAutomaticReportEmailsExecutor(
        source_email=s.communication_default_source_email,
        template_id=s.ticket_count_report_template_id,
        timezone_name=s.automatic_report_timezone,
        hour=s.automatic_report_hour,
    ),
    DomainActionType.SEND_PURCHASE_COMPLETED_COMMUNICATION: lambda s, c: SendOrderCompleteExecutor(
        front_end_url=s.front_end_url,
        source_email=s.communication_default_source_email,
        template_id=s.purchase_completed_template_id,
    ),
    DomainActionType.SUBMIT_SITEMAP_TO_SEARCH_ENGINES: lambda s, c: SubmitSitemapToSearchEnginesExecutor(
        s.api_base_url,
        block_external_comms=s.block_external_comms,
        http_client=c.http_client,
    ),
    DomainActionType.UPDATE_GENRES: lambda s, c: UpdateGenresExecutor(),
}


class DomainActionRouter:
    """Maps each DomainActionType to exactly one executor.

    Built once at startup and handed to the monitor; immutable afterwards
    by convention.
    """

    def __init__(self):
        self._routes: dict[DomainActionType, DomainActionExecutor] = {}

    def add_executor(
        self, action_type: DomainActionType, executor: DomainActionExecutor
    ) -> None:
        """Register an executor. A second registration for a type is an error."""
        if action_type in self._routes:
            raise DomainActionError(
                f"Action type {action_type.value} already has an executor"
            )
        self._routes[action_type] = executor

    def get_executor_for(
        self, action_type: DomainActionType
    ) -> Optional[DomainActionExecutor]:
        return self._routes.get(action_type)

    def missing_action_types(self) -> list[DomainActionType]:
        return [t for t in DomainActionType if t not in self._routes]

    def check_complete(self) -> None:
        """Fail fast if any action type has no executor."""
        missing = self.missing_action_types()
        if missing:
            raise DomainActionError(
                "No executor registered for action types: "
                + ", ".join(t.value for t in missing)
            )

    def set_up_executors(
        self,
        settings: Settings,
        collaborators: Optional[Collaborators] = None,
        factories: Optional[dict[DomainActionType, ExecutorFactory]] = None,
    ) -> None:
        collaborators = collaborators or Collaborators()
        factories = EXECUTOR_FACTORIES if factories is None else factories
        for action_type in DomainActionType:
            factory = factories.get(action_type)
            if factory is None:
                continue
            self.add_executor(action_type, factory(settings, collaborators))
        self.check_complete()
        logger.info("domain_action_router_built", executors=len(self._routes))

    @classmethod
    def build(
        cls,
        settings: Settings,
        collaborators: Optional[Collaborators] = None,
        factories: Optional[dict[DomainActionType, ExecutorFactory]] = None,
    ) -> "DomainActionRouter":
        router = cls()
        router.set_up_executors(settings, collaborators, factories)
        return router
