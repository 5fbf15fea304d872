"""Ping search engines to re-read the sitemap."""

from typing import Optional

import httpx
import structlog

from ticketing.db.connection import Connection
from ticketing.domain_actions.executor import DomainActionExecutor
from ticketing.domain_actions.models import DomainAction
from ticketing.errors import ApplicationError, TransportError

logger = structlog.get_logger(__name__)

GOOGLE_PING_URL = "http://www.google.com/webmasters/sitemaps/ping?sitemap={}/sitemap.xml"
BING_PING_URL = "http://www.bing.com/ping?sitemap={}/sitemap.xml"


def search_engine_urls(api_url: str) -> list[str]:
    return [GOOGLE_PING_URL.format(api_url), BING_PING_URL.format(api_url)]


class SubmitSitemapToSearchEnginesExecutor(DomainActionExecutor):
    failure_event = "submit_sitemap_to_search_engines_failed"

    def __init__(
        self,
        api_url: str,
        block_external_comms: bool = False,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_url = api_url
        self.block_external_comms = block_external_comms
        self._client = http_client

    async def perform_job(self, action: DomainAction, conn: Connection) -> None:
        if self.block_external_comms:
            logger.info("sitemap_submission_blocked", domain_action_id=str(action.id))
            return
        if self._client is None:
            raise ApplicationError("No HTTP client configured for sitemap submission")

        for url in search_engine_urls(self.api_url):
            try:
                response = await self._client.get(url)
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise TransportError(f"Sitemap ping {url} failed: {e}") from e
            logger.info("sitemap_submitted", url=url, status_code=response.status_code)
