"""Communication envelope queued as a ``communication`` domain action."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from ticketing.domain_actions.models import DomainAction
from ticketing.domain_actions.types import (
    CommunicationChannelType,
    DomainActionType,
    Tables,
)
from ticketing.errors import ApplicationError


class CommunicationType(str, Enum):
    EMAIL = "email"
    EMAIL_TEMPLATE = "email_template"
    SMS = "sms"
    PUSH = "push"
    WEBHOOK = "webhook"

    @property
    def channel_type(self) -> CommunicationChannelType:
        if self in (CommunicationType.EMAIL, CommunicationType.EMAIL_TEMPLATE):
            return CommunicationChannelType.EMAIL
        return CommunicationChannelType(self.value)


@dataclass
class CommAddress:
    """One or more destination (or source) addresses."""

    addresses: list[str] = field(default_factory=list)

    @classmethod
    def from_address(cls, address: str) -> "CommAddress":
        return cls([address])

    @classmethod
    def from_list(cls, addresses: list[str]) -> "CommAddress":
        return cls(list(addresses))

    def __len__(self) -> int:
        return len(self.addresses)


@dataclass
class Communication:
    comm_type: CommunicationType
    title: str
    destinations: CommAddress
    body: Optional[str] = None
    source: Optional[CommAddress] = None
    template_id: Optional[str] = None
    template_data: Optional[list[dict[str, Any]]] = None
    categories: Optional[list[str]] = None
    extra_data: Optional[dict[str, str]] = None

    @property
    def channel_type(self) -> CommunicationChannelType:
        return self.comm_type.channel_type

    def to_payload(self) -> dict[str, Any]:
        return {
            "comm_type": self.comm_type.value,
            "title": self.title,
            "body": self.body,
            "source": self.source.addresses if self.source else None,
            "destinations": self.destinations.addresses,
            "template_id": self.template_id,
            "template_data": self.template_data,
            "categories": self.categories,
            "extra_data": self.extra_data,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Communication":
        try:
            comm_type = CommunicationType(payload["comm_type"])
            title = payload["title"]
            destinations = payload["destinations"]
        except (KeyError, ValueError) as e:
            raise ApplicationError(f"Invalid communication payload: {e}") from e

        source = payload.get("source")
        return cls(
            comm_type=comm_type,
            title=title,
            destinations=CommAddress.from_list(destinations),
            body=payload.get("body"),
            source=CommAddress.from_list(source) if source else None,
            template_id=payload.get("template_id"),
            template_data=payload.get("template_data"),
            categories=payload.get("categories"),
            extra_data=payload.get("extra_data"),
        )

    async def queue(
        self,
        conn,
        main_table: Optional[Tables] = None,
        main_table_id: Optional[UUID] = None,
    ) -> DomainAction:
        """Insert a communication action on the caller's connection."""
        if not self.destinations:
            raise ApplicationError("Communication has no destinations")
        return await DomainAction.create(
            DomainActionType.COMMUNICATION,
            self.to_payload(),
            communication_channel_type=self.channel_type,
            main_table=main_table,
            main_table_id=main_table_id,
        ).commit(conn)
