"""
Remote text fetcher.

Performs cache-busted HTTP GETs of asset text from the remote root. A unique
query parameter is appended to every request so no intermediate HTTP cache
can answer it. Failures are raised as NetworkError or HTTPStatusError; retry
policy belongs to the caller.
"""

from __future__ import annotations

import itertools
import time
from urllib.parse import urlsplit, urlunsplit

import httpx

from blockassets.exceptions import HTTPStatusError, NetworkError
from blockassets.logging import get_logger

logger = get_logger(__name__)

# User agent for asset requests
USER_AGENT = "blockassets/1.0"

# Request timeout
REQUEST_TIMEOUT = 30.0

# Query parameter used to bypass HTTP caches
CACHE_BUST_PARAM = "ublock"

_bust_counter = itertools.count()


def cache_busted(url: str) -> str:
    """Append a unique cache-busting query parameter to a URL."""
    token = f"{int(time.time() * 1000)}-{next(_bust_counter)}"
    scheme, netloc, path, query, fragment = urlsplit(url)
    param = f"{CACHE_BUST_PARAM}={token}"
    query = f"{query}&{param}" if query else param
    return urlunsplit((scheme, netloc, path, query, fragment))


class RemoteFetcher:
    """Fetches asset text from a remote root over HTTP."""

    def __init__(
        self,
        remote_root: str,
        timeout: float = REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            remote_root: Base URL asset paths are appended to.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (e.g. httpx.MockTransport).
        """
        self.remote_root = remote_root
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={
                    "User-Agent": USER_AGENT,
                    "Cache-Control": "no-cache",
                    "Pragma": "no-cache",
                },
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def url_for(self, path: str) -> str:
        """Remote URL of an asset path."""
        return self.remote_root + path

    async def fetch(self, url: str) -> str:
        """GET a URL with cache busting and return the response text.

        Args:
            url: URL to fetch.

        Returns:
            Response body as text.

        Raises:
            HTTPStatusError: On a non-2xx response.
            NetworkError: On transport failure or timeout.
        """
        client = await self._get_client()
        request_url = cache_busted(url)
        try:
            response = await client.get(request_url)
        except httpx.TimeoutException as e:
            raise NetworkError("Request timed out", context={"url": url}) from e
        except httpx.HTTPError as e:
            raise NetworkError("Request failed", context={"url": url, "error": str(e)}) from e

        if not response.is_success:
            raise HTTPStatusError(
                "Unexpected HTTP status",
                status=response.status_code,
                reason=response.reason_phrase,
                context={"url": url, "status_code": response.status_code},
            )

        logger.debug("Fetched remote text", url=url, size=len(response.text))
        return response.text
