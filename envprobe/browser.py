"""Interactive strategy backed by a Playwright browser session."""

import logging
import time
from typing import Optional, List

import httpx
from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
)

from .exceptions import (
    NetworkError,
    OperationalError,
    ProbeAssertionError,
    ResolutionError,
    ResolutionErrorKind,
)
from .models import Locator, LocatorKind
from .resolvers import LocatorResolver
from .strategy import ProbeStrategy, NavigationResult, ConsoleErrorCollector

logger = logging.getLogger(__name__)


ACTION_TIMEOUT_MS = 5000

SELECTOR_SYNTAX_MARKERS = (
    "while parsing",
    "not a valid selector",
    "unexpected token",
    "syntaxerror",
)


def engine_selector(locator: Locator) -> str:
    """Prefix the locator with Playwright's selector engine name."""
    engine = "xpath" if locator.kind == LocatorKind.XPATH else "css"
    return f"{engine}={locator.expression}"


def _is_selector_syntax_error(error: Exception) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in SELECTOR_SYNTAX_MARKERS)


class LivePageResolver(LocatorResolver):
    """Resolves locators against the page's live DOM."""

    def __init__(self, page: Page):
        self.page = page

    async def _query_css(self, selector: str) -> bool:
        try:
            return await self.page.query_selector(f"css={selector}") is not None
        except PlaywrightError as e:
            if _is_selector_syntax_error(e):
                raise ResolutionError(
                    ResolutionErrorKind.INVALID_SYNTAX,
                    selector,
                    f"Invalid CSS selector {selector!r}",
                ) from e
            raise

    async def _query_xpath(self, expression: str) -> bool:
        try:
            return await self.page.query_selector(f"xpath={expression}") is not None
        except PlaywrightError as e:
            logger.debug(f"XPath evaluation failed for {expression!r}: {e}")
            return False

    async def wait_for(self, locator: Locator, timeout_ms: float) -> bool:
        if locator.kind == LocatorKind.INVALID:
            raise ResolutionError(ResolutionErrorKind.EMPTY_OR_INVALID_SELECTOR, locator.raw)

        try:
            await self.page.wait_for_selector(
                engine_selector(locator), state="attached", timeout=timeout_ms
            )
            return True
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError as e:
            if locator.kind == LocatorKind.XPATH:
                logger.debug(f"XPath wait failed for {locator.raw!r}: {e}")
                return False
            if _is_selector_syntax_error(e):
                raise ResolutionError(
                    ResolutionErrorKind.INVALID_SYNTAX,
                    locator.raw,
                    f"Invalid CSS selector {locator.raw!r}",
                ) from e
            raise


class BrowserStrategy(ProbeStrategy):
    """
    Drives a headless browser: navigation, form interaction and console capture.

    The browser, context and page are acquired once when the strategy is
    entered and closed when it exits.
    """

    name = "browser"
    interactive = True
    navigation_timeout = 30.0

    def __init__(
        self,
        headless: bool = True,
        browser_name: str = "chromium",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(transport=transport)
        self.headless = headless
        self.browser_name = browser_name
        self.collector = ConsoleErrorCollector()

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._resolver: Optional[LivePageResolver] = None

    async def start(self):
        logger.info(f"Launching {self.browser_name} (headless={self.headless})")
        try:
            self._playwright = await async_playwright().start()
            launcher = getattr(self._playwright, self.browser_name)
            self._browser = await launcher.launch(headless=self.headless)
            self._context = await self._browser.new_context()
            self._page = await self._context.new_page()
        except Exception as e:
            logger.error(f"Failed to launch browser: {e}")
            await self.close()
            raise OperationalError(f"Could not launch {self.browser_name}: {e}", e) from e

        # Registered before the first navigation so load-time errors are captured.
        self._page.on("console", self.collector.handle)
        self._resolver = LivePageResolver(self._page)

    async def close(self):
        if self._context:
            try:
                await self._context.close()
            except PlaywrightError as e:
                logger.warning(f"Error closing browser context: {e}")
        if self._browser:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                logger.warning(f"Error closing browser: {e}")
        if self._playwright:
            await self._playwright.stop()

        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None

    @property
    def page(self) -> Page:
        if not self._page:
            raise OperationalError("Browser session not started")
        return self._page

    async def navigate(self, url: str) -> NavigationResult:
        start = time.perf_counter()
        try:
            response = await self.page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.navigation_timeout * 1000,
            )
        except PlaywrightTimeoutError as e:
            raise NetworkError(f"Timeout after {self.navigation_timeout:g}s", url=url, original_error=e) from e
        except PlaywrightError as e:
            first_line = str(e).splitlines()[0] if str(e) else "Navigation failed"
            raise NetworkError(first_line, url=url, original_error=e) from e

        elapsed = (time.perf_counter() - start) * 1000.0
        return NavigationResult(
            status_code=response.status if response else None,
            elapsed_ms=elapsed,
            url=self.page.url,
        )

    @property
    def resolver(self) -> LocatorResolver:
        if not self._resolver:
            raise OperationalError("Browser session not started")
        return self._resolver

    @property
    def console_errors(self) -> Optional[List[str]]:
        return list(self.collector.errors)

    async def submit_login(
        self,
        user: Locator,
        password: Locator,
        submit: Locator,
        username: str,
        password_value: str,
    ):
        try:
            await self.page.fill(engine_selector(user), username, timeout=ACTION_TIMEOUT_MS)
            await self.page.fill(engine_selector(password), password_value, timeout=ACTION_TIMEOUT_MS)
            await self.page.click(engine_selector(submit), timeout=ACTION_TIMEOUT_MS)
        except PlaywrightError as e:
            first_line = str(e).splitlines()[0] if str(e) else "interaction failed"
            raise ProbeAssertionError(f"Login form interaction failed: {first_line}") from e

    async def wait_for_text(self, text: str, timeout_ms: float) -> bool:
        cleaned = text.replace('"', "")
        try:
            await self.page.wait_for_selector(f"text={cleaned}", timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False

    async def wait_for_url(self, url: str, timeout_ms: float) -> bool:
        try:
            await self.page.wait_for_url(url, timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False
