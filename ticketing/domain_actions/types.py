"""Domain action type definitions."""

from enum import Enum


class DomainActionType(str, Enum):
    """Kinds of deferred work. Every member must have exactly one executor."""

    BROADCAST_PUSH_NOTIFICATION = "broadcast_push_notification"
    # Email/SMS/Push/Webhook communication
    COMMUNICATION = "communication"
    FINALIZE_SETTLEMENTS = "finalize_settlements"
    MARKETING_CONTACTS_BULK_EVENT_FAN_LIST_IMPORT = (
        "marketing_contacts_bulk_event_fan_list_import"
    )
    MARKETING_CONTACTS_CREATE_EVENT_LIST = "marketing_contacts_create_event_list"
    PAYMENT_PROVIDER_IPN = "payment_provider_ipn"
    PROCESS_SETTLEMENT_REPORT = "process_settlement_report"
    PROCESS_TRANSFER_DRIP = "process_transfer_drip"
    REGENERATE_DRIP_ACTIONS = "regenerate_drip_actions"
    RELEASE_HOLD_INVENTORY = "release_hold_inventory"
    RETARGET_ABANDONED_ORDERS = "retarget_abandoned_orders"
    SEND_AUTOMATIC_REPORT_EMAILS = "send_automatic_report_emails"
    SEND_PURCHASE_COMPLETED_COMMUNICATION = "send_purchase_completed_communication"
    SUBMIT_SITEMAP_TO_SEARCH_ENGINES = "submit_sitemap_to_search_engines"
    UPDATE_GENRES = "update_genres"


class DomainActionStatus(str, Enum):
    """Domain action lifecycle statuses."""

    PENDING = "pending"
    ERRORED = "errored"
    RETRIES_EXCEEDED = "retries_exceeded"
    SUCCESS = "success"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Check if this status is terminal (no further attempts)."""
        return self in (
            DomainActionStatus.SUCCESS,
            DomainActionStatus.RETRIES_EXCEEDED,
            DomainActionStatus.CANCELLED,
        )


class CommunicationChannelType(str, Enum):
    """Sub-classification used by communication-shaped actions."""

    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    WEBHOOK = "webhook"


class Tables(str, Enum):
    """Tables a domain action or event can point at via main_table."""

    ARTISTS = "artists"
    BROADCASTS = "broadcasts"
    EVENTS = "events"
    HOLDS = "holds"
    ORDERS = "orders"
    ORGANIZATIONS = "organizations"
    PAYMENTS = "payments"
    SETTLEMENTS = "settlements"
    TRANSFERS = "transfers"
    USERS = "users"


class DomainEventType(str, Enum):
    """Audit event kinds emitted by executors."""

    BROADCAST_SENT = "broadcast_sent"
    GENRES_UPDATED = "genres_updated"
    HOLD_AUTOMATICALLY_RELEASED = "hold_automatically_released"
    ORDER_RETARGETING_EMAIL_TRIGGERED = "order_retargeting_email_triggered"
    PAYMENT_PROVIDER_IPN = "payment_provider_ipn"
    SETTLEMENT_REPORT_PROCESSED = "settlement_report_processed"
    SETTLEMENTS_FINALIZED = "settlements_finalized"
    TRANSFER_TICKET_DRIP_DESTINATION_SENT = "transfer_ticket_drip_destination_sent"
    TRANSFER_TICKET_DRIP_SOURCE_SENT = "transfer_ticket_drip_source_sent"
