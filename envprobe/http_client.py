"""URL-fetch capability used by the static strategy and the backend API stage."""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Dict

import httpx

from .exceptions import NetworkError

logger = logging.getLogger(__name__)


DEFAULT_HEADERS = {
    "User-Agent": "envprobe/0.1 (+environment health check)",
    "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8",
}


@dataclass
class FetchResult:
    status_code: int
    text: str
    elapsed_ms: float
    url: str
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class HttpFetcher:
    """
    Thin async wrapper around httpx with per-request timeouts.

    Usage:
        async with HttpFetcher() as fetcher:
            result = await fetcher.fetch("https://example.com", timeout=5.0)
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        headers: Optional[Dict[str, str]] = None,
        verify: bool = True,
    ):
        self.transport = transport
        self.headers = {**DEFAULT_HEADERS, **(headers or {})}
        self.verify = verify
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            transport=self.transport,
            headers=self.headers,
            follow_redirects=True,
            verify=self.verify,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self._client:
            await self._client.aclose()
        self._client = None

    async def fetch(self, url: str, timeout: float) -> FetchResult:
        """
        GET a URL.

        Args:
            url: Absolute URL to fetch
            timeout: Hard timeout for the whole request in seconds

        Returns:
            FetchResult for any HTTP response, including non-2xx

        Raises:
            NetworkError: Unreachable host, invalid URL or timeout
        """
        if not self._client:
            raise NetworkError("HTTP client not initialized", url=url)

        logger.debug(f"GET {url} (timeout={timeout}s)")
        start = time.perf_counter()
        try:
            response = await self._client.get(url, timeout=timeout)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Timeout after {timeout:g}s", url=url, original_error=e) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise NetworkError(f"Request failed: {e}", url=url, original_error=e) from e

        elapsed = (time.perf_counter() - start) * 1000.0
        logger.debug(f"{response.status_code} {url} ({elapsed:.0f}ms)")

        return FetchResult(
            status_code=response.status_code,
            text=response.text,
            elapsed_ms=elapsed,
            url=str(response.url),
            headers=dict(response.headers),
        )
