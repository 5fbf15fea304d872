"""Concrete domain action executors, one per DomainActionType."""

from ticketing.domain_actions.executors.broadcast_push_notification import (
    BroadcastPushNotificationExecutor,
)
from ticketing.domain_actions.executors.finalize_settlements import (
    FinalizeSettlementsExecutor,
)
from ticketing.domain_actions.executors.marketing_contacts.bulk_event_fan_list_import import (
    BulkEventFanListImportExecutor,
)
from ticketing.domain_actions.executors.marketing_contacts.create_event_list import (
    CreateEventListExecutor,
)
from ticketing.domain_actions.executors.process_payment_ipn import (
    ProcessPaymentIPNExecutor,
)
from ticketing.domain_actions.executors.process_settlement_report import (
    ProcessSettlementReportExecutor,
)
from ticketing.domain_actions.executors.process_transfer_drip import (
    ProcessTransferDripEventExecutor,
)
from ticketing.domain_actions.executors.regenerate_drip_actions import (
    RegenerateDripActionsExecutor,
)
from ticketing.domain_actions.executors.release_hold_inventory import (
    ReleaseHoldInventoryExecutor,
)
from ticketing.domain_actions.executors.retarget_abandoned_orders import (
    RetargetAbandonedOrdersExecutor,
)
from ticketing.domain_actions.executors.send_automatic_report_emails import (
    SendAutomaticReportEmailsExecutor,
)
from ticketing.domain_actions.executors.send_communication import (
    SendCommunicationExecutor,
)
from ticketing.domain_actions.executors.send_order_complete import (
    SendOrderCompleteExecutor,
)
from ticketing.domain_actions.executors.submit_sitemap_to_search_engines import (
    SubmitSitemapToSearchEnginesExecutor,
)
from ticketing.domain_actions.executors.update_genres import UpdateGenresExecutor

__all__ = [
    "BroadcastPushNotificationExecutor",
    "BulkEventFanListImportExecutor",
    "CreateEventListExecutor",
    "FinalizeSettlementsExecutor",
    "ProcessPaymentIPNExecutor",
    "ProcessSettlementReportExecutor",
    "ProcessTransferDripEventExecutor",
    "RegenerateDripActionsExecutor",
    "ReleaseHoldInventoryExecutor",
    "RetargetAbandonedOrdersExecutor",
    "SendAutomaticReportEmailsExecutor",
    "SendCommunicationExecutor",
    "SendOrderCompleteExecutor",
    "SubmitSitemapToSearchEnginesExecutor",
    "UpdateGenresExecutor",
]
