"""Outside services the executors hand work to.

Transports (mail, SMS, push), the payment provider and the marketing
contacts service are supplied by the process that builds the router. Only
the shape of each is defined here.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional, Protocol

import httpx

from ticketing.domain_actions.types import CommunicationChannelType

if TYPE_CHECKING:
    from ticketing.domain_actions.communication import Communication


class CommunicationSender(Protocol):
    """Delivers one queued communication on a single channel."""

    async def send(self, communication: "Communication") -> None:
        ...


class PaymentProviderClient(Protocol):
    """Fetches the authoritative state of a provider payment request."""

    async def get_payment_request(self, payment_request_id: str) -> dict[str, Any]:
        ...


class MarketingContactsClient(Protocol):
    """Contact lists at the marketing email provider."""

    async def create_or_return_list(self, api_key: str, name: str) -> dict[str, Any]:
        ...

    async def get_list(self, api_key: str, list_id: int) -> dict[str, Any]:
        ...

    async def create_contacts(
        self, api_key: str, contacts: list[dict[str, Any]]
    ) -> dict[str, Any]:
        ...

    async def add_recipients(
        self, api_key: str, list_id: int, recipient_ids: list[str]
    ) -> None:
        ...


@dataclass
class Collaborators:
    """Everything the executors need besides settings and a connection."""

    http_client: Optional[httpx.AsyncClient] = None
    senders: dict[CommunicationChannelType, CommunicationSender] = field(
        default_factory=dict
    )
    payment_provider: Optional[PaymentProviderClient] = None
    marketing_contacts: Optional[MarketingContactsClient] = None
