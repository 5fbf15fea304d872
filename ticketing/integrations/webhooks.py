"""Webhook delivery for communication actions."""

from typing import TYPE_CHECKING

import httpx
import structlog

from ticketing.errors import TransportError

if TYPE_CHECKING:
    from ticketing.domain_actions.communication import Communication

logger = structlog.get_logger(__name__)


class WebhookSender:
    """POSTs a communication as JSON to each destination URL."""

    def __init__(self, client: httpx.AsyncClient, timeout: float = 10.0):
        self._client = client
        self.timeout = timeout

    def _format_body(self, communication: "Communication") -> dict:
        body = dict(communication.extra_data or {})
        body.setdefault("title", communication.title)
        if communication.body is not None:
            body.setdefault("body", communication.body)
        return body

    async def send(self, communication: "Communication") -> None:
        body = self._format_body(communication)
        for url in communication.destinations.addresses:
            try:
                response = await self._client.post(url, json=body, timeout=self.timeout)
                response.raise_for_status()
            except httpx.HTTPError as e:
                logger.warning("webhook_delivery_failed", url=url, error=str(e))
                raise TransportError(f"Webhook delivery to {url} failed: {e}") from e
            logger.debug("webhook_delivered", url=url, status_code=response.status_code)
