"""HTTP client for live CSV sources."""

from __future__ import annotations

import httpx

from membersync.core.config import settings
from membersync.core.logging import get_logger
from membersync.pipeline.errors import InfrastructureError

logger = get_logger(__name__)


class SourceFetcher:
    """Downloads the current contents of a `csv_url` data source."""

    def __init__(self, timeout: float | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.timeout = timeout or settings.SOURCE_FETCH_TIMEOUT_SECONDS
        self.transport = transport

    async def fetch_csv(self, url: str) -> str:
        """GET `url` and return the body as text.  Raises InfrastructureError on failure."""
        if not url:
            raise InfrastructureError("Data source has no URL configured")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Source fetch failed", url=url, error=str(exc))
            raise InfrastructureError(f"Failed to fetch source: {exc}", details={"url": url}) from exc

        logger.info("Source fetched", url=url, bytes=len(response.content))
        return response.text
