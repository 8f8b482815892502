"""
Execution strategies.

A strategy bundles the capabilities stages are allowed to use during one run:
navigating to the target, resolving locators against the current document,
fetching other URLs, and (for interactive strategies) driving a login form and
observing console errors. The orchestrator picks one strategy per run and
holds it for every stage.
"""

import importlib.util
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, List, Any

import httpx

from .exceptions import OperationalError
from .http_client import HttpFetcher, FetchResult
from .models import Locator
from .resolvers import LocatorResolver

logger = logging.getLogger(__name__)


class StrategyPreference(str, Enum):
    AUTO = "auto"
    BROWSER = "browser"
    STATIC = "static"


@dataclass
class NavigationResult:
    """Outcome of loading the target page."""
    status_code: Optional[int]
    elapsed_ms: float
    url: str

    @property
    def loaded(self) -> bool:
        return self.status_code == 200


class ConsoleErrorCollector:
    """Accumulates console error messages emitted by a page during one run."""

    def __init__(self):
        self.errors: List[str] = []

    def handle(self, message: Any):
        """Console event handler. Non-error messages are ignored."""
        if getattr(message, "type", None) == "error":
            text = getattr(message, "text", "")
            self.errors.append(text)
            logger.debug(f"Console error captured: {text[:200]}")

    @property
    def count(self) -> int:
        return len(self.errors)


class ProbeStrategy(ABC):
    """Capability interface shared by the browser and static strategies.

    Strategies are async context managers: resources are acquired on entry and
    released on every exit path.
    """

    name: str = ""
    interactive: bool = False
    navigation_timeout: float = 30.0

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.fetcher = HttpFetcher(transport=transport)

    async def __aenter__(self):
        await self.fetcher.__aenter__()
        try:
            await self.start()
        except BaseException:
            await self.fetcher.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        try:
            await self.close()
        finally:
            await self.fetcher.close()

    async def start(self):
        """Acquire strategy resources. Raises OperationalError on failure."""

    async def close(self):
        """Release strategy resources."""

    @abstractmethod
    async def navigate(self, url: str) -> NavigationResult:
        """Load the target URL. Raises NetworkError when it cannot be loaded."""

    @property
    @abstractmethod
    def resolver(self) -> LocatorResolver:
        """Resolver bound to the current document."""

    @property
    def console_errors(self) -> Optional[List[str]]:
        """Collected console errors, or None when they cannot be observed."""
        return None

    async def fetch(self, url: str, timeout: float) -> FetchResult:
        return await self.fetcher.fetch(url, timeout=timeout)

    async def submit_login(
        self,
        user: Locator,
        password: Locator,
        submit: Locator,
        username: str,
        password_value: str,
    ):
        raise NotImplementedError(f"{self.name} strategy cannot submit forms")

    async def wait_for_text(self, text: str, timeout_ms: float) -> bool:
        raise NotImplementedError(f"{self.name} strategy cannot wait for rendered text")

    async def wait_for_url(self, url: str, timeout_ms: float) -> bool:
        raise NotImplementedError(f"{self.name} strategy cannot observe navigation")


def browser_available() -> bool:
    """True when the Playwright driver package is importable."""
    return importlib.util.find_spec("playwright") is not None


def select_strategy(
    preference: StrategyPreference = StrategyPreference.AUTO,
    headless: bool = True,
    browser_name: str = "chromium",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProbeStrategy:
    """
    Choose the execution strategy for a run.

    Args:
        preference: auto picks the browser when Playwright is installed
        headless: Launch the browser without a window
        browser_name: chromium, firefox or webkit
        transport: Optional httpx transport for direct fetches

    Returns:
        An unopened ProbeStrategy

    Raises:
        OperationalError: The browser strategy was requested but is unavailable
    """
    preference = StrategyPreference(preference)

    if preference == StrategyPreference.STATIC:
        use_browser = False
    elif preference == StrategyPreference.BROWSER:
        if not browser_available():
            raise OperationalError(
                "Browser strategy requested but playwright is not installed. "
                "Run: pip install playwright && playwright install chromium"
            )
        use_browser = True
    else:
        use_browser = browser_available()

    if use_browser:
        from .browser import BrowserStrategy

        logger.info(f"Selected browser strategy ({browser_name}, headless={headless})")
        return BrowserStrategy(headless=headless, browser_name=browser_name, transport=transport)

    from .static import StaticStrategy

    logger.info("Selected static document strategy")
    return StaticStrategy(transport=transport)
