"""Globee payment provider client."""

from typing import Any

import httpx
import structlog

from ticketing.errors import ApplicationError, TransportError

logger = structlog.get_logger(__name__)


class GlobeeClient:
    """Looks up payment requests to verify incoming IPNs."""

    def __init__(self, client: httpx.AsyncClient, api_key: str, base_url: str):
        self._client = client
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    async def get_payment_request(self, payment_request_id: str) -> dict[str, Any]:
        url = f"{self._base_url}/payment-request/{payment_request_id}"
        try:
            response = await self._client.get(
                url,
                headers={"X-AUTH-KEY": self._api_key, "Accept": "application/json"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f"Globee payment request lookup failed: {e}") from e

        data = response.json()
        if not data.get("success", True) or "data" not in data:
            raise ApplicationError(
                f"Unexpected Globee response for payment request {payment_request_id}"
            )
        logger.debug("globee_payment_request_fetched", payment_request_id=payment_request_id)
        return data["data"]
