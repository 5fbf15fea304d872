"""SendGrid marketing contacts client (contact database API)."""

from typing import Any, Optional

import httpx
import structlog

from ticketing.errors import ApplicationError, TransportError

logger = structlog.get_logger(__name__)


class SendGridContactsClient:
    """Contact lists and recipients for an organization's SendGrid account.

    Each call takes the organization's API key; one client serves all
    organizations.
    """

    def __init__(
        self, client: httpx.AsyncClient, base_url: str = "https://api.sendgrid.com/v3"
    ):
        self._client = client
        self._base_url = base_url.rstrip("/")

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        api_key: str,
        json: Optional[Any] = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method,
                f"{self._base_url}{path}",
                headers=self._headers(api_key),
                json=json,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError:
            raise
        except httpx.HTTPError as e:
            raise TransportError(f"SendGrid request {method} {path} failed: {e}") from e
        return response

    async def _request_json(
        self, method: str, path: str, api_key: str, json: Optional[Any] = None
    ) -> Any:
        try:
            response = await self._request(method, path, api_key, json=json)
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"SendGrid request {method} {path} returned {e.response.status_code}"
            ) from e
        logger.debug("sendgrid_response", method=method, path=path)
        return response.json()

    async def fetch_all_lists(self, api_key: str) -> list[dict[str, Any]]:
        data = await self._request_json("GET", "/contactdb/lists", api_key)
        if "lists" not in data:
            raise ApplicationError("Unexpected sendgrid result: no lists key in result")
        return data["lists"]

    async def create_or_return_list(self, api_key: str, name: str) -> dict[str, Any]:
        """Create a list, or return the existing list of the same name."""
        try:
            response = await self._request(
                "POST", "/contactdb/lists", api_key, json={"name": name}
            )
            return response.json()
        except httpx.HTTPStatusError as e:
            if not e.response.is_client_error:
                raise TransportError(
                    f"SendGrid list creation returned {e.response.status_code}"
                ) from e
            # Most likely a duplicate name
            for sg_list in await self.fetch_all_lists(api_key):
                if sg_list.get("name") == name:
                    return sg_list
            raise TransportError(
                f"SendGrid list creation returned {e.response.status_code}"
            ) from e

    async def get_list(self, api_key: str, list_id: int) -> dict[str, Any]:
        return await self._request_json("GET", f"/contactdb/lists/{list_id}", api_key)

    async def create_contacts(
        self, api_key: str, contacts: list[dict[str, Any]]
    ) -> dict[str, Any]:
        """Upsert recipients. The response lists persisted_recipients ids."""
        return await self._request_json(
            "POST", "/contactdb/recipients", api_key, json=contacts
        )

    async def add_recipients(
        self, api_key: str, list_id: int, recipient_ids: list[str]
    ) -> None:
        try:
            await self._request(
                "POST",
                f"/contactdb/lists/{list_id}/recipients",
                api_key,
                json=recipient_ids,
            )
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Adding recipients to SendGrid list {list_id} returned "
                f"{e.response.status_code}"
            ) from e
