"""Document-only strategy: fetch the page over HTTP and parse it without running scripts."""

import logging
from typing import Optional

import httpx

from .resolvers import LocatorResolver, StaticDocumentResolver
from .strategy import ProbeStrategy, NavigationResult

logger = logging.getLogger(__name__)


class StaticStrategy(ProbeStrategy):
    """Fallback used when no interactive browser is available."""

    name = "static"
    interactive = False
    navigation_timeout = 10.0

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(transport=transport)
        self._resolver = StaticDocumentResolver("")

    async def navigate(self, url: str) -> NavigationResult:
        result = await self.fetch(url, timeout=self.navigation_timeout)
        self._resolver = StaticDocumentResolver(result.text)
        logger.info(f"Fetched {url}: HTTP {result.status_code} ({len(result.text)} bytes)")
        return NavigationResult(
            status_code=result.status_code,
            elapsed_ms=result.elapsed_ms,
            url=result.url,
        )

    @property
    def resolver(self) -> LocatorResolver:
        return self._resolver
