"""Static page fetching for price revalidation.

Only the raw response body is returned. No scripts are executed.
"""

from typing import Optional
from urllib.parse import urlparse

import httpx
import structlog

from krolist.config import settings
from krolist.scrapers.utils.retry import page_fetch_retry
from krolist.scrapers.utils.user_agents import browser_headers

logger = structlog.get_logger(__name__)


class PageFetchError(Exception):
    """Raised when a listing page cannot be fetched."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"Failed to fetch {url}: {message}")


class PageFetcher:
    """Fetches raw HTML/JSON for listing URLs with httpx."""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize the fetcher.

        Args:
            http_client: Optional shared AsyncClient; one is created per call otherwise
            timeout: Request timeout in seconds
        """
        self.http_client = http_client
        self._timeout = timeout if timeout is not None else settings.PAGE_FETCH_TIMEOUT_SECONDS
        self.logger = logger.bind(service="page_fetcher")

    @page_fetch_retry
    async def fetch(self, url: str) -> str:
        """Fetch a page body.

        Args:
            url: Absolute http(s) URL

        Returns:
            Response body as text

        Raises:
            PageFetchError: On non-2xx status or invalid URL
            httpx.TransportError: On network failures that outlast the retry
        """
        scheme = urlparse(url).scheme
        if scheme not in ("http", "https"):
            raise PageFetchError(url, f"unsupported scheme '{scheme}'")

        self.logger.info("fetching_page", url=url)

        if self.http_client is not None:
            response = await self.http_client.get(url, headers=browser_headers(), follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
                response = await client.get(url, headers=browser_headers())

        if not response.is_success:
            self.logger.warning("page_fetch_http_error", url=url, status_code=response.status_code)
            raise PageFetchError(url, f"HTTP {response.status_code}", status_code=response.status_code)

        return response.text
