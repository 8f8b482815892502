"""
Locator resolution against a document.

A resolver answers one question: does the document currently contain an
element matching this locator? Two implementations share the contract:
StaticDocumentResolver (parsed HTML snapshot, defined here) and
LivePageResolver (interactive browser page, in ``envprobe.browser``).
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from bs4 import BeautifulSoup
from lxml import etree, html as lxml_html
from soupsieve import SelectorSyntaxError

from .exceptions import ResolutionError, ResolutionErrorKind
from .models import Locator, LocatorKind

logger = logging.getLogger(__name__)


class LocatorResolver(ABC):
    """Capability interface for locator presence checks."""

    async def resolve(self, locator: Locator) -> bool:
        """
        Determine whether the locator matches an element.

        Args:
            locator: A classified locator

        Returns:
            True if a node matches, False otherwise

        Raises:
            ResolutionError: INVALID_SYNTAX for a malformed CSS selector,
                EMPTY_OR_INVALID_SELECTOR for an invalid locator
        """
        if locator.kind == LocatorKind.INVALID:
            raise ResolutionError(ResolutionErrorKind.EMPTY_OR_INVALID_SELECTOR, locator.raw)

        if locator.kind == LocatorKind.CSS:
            return await self._query_css(locator.expression)
        return await self._query_xpath(locator.expression)

    async def wait_for(self, locator: Locator, timeout_ms: float) -> bool:
        """Resolve, allowing the element up to ``timeout_ms`` to appear.

        Resolvers over a fixed snapshot cannot wait, so the default is an
        immediate resolve.
        """
        return await self.resolve(locator)

    @abstractmethod
    async def _query_css(self, selector: str) -> bool:
        ...

    @abstractmethod
    async def _query_xpath(self, expression: str) -> bool:
        ...


class StaticDocumentResolver(LocatorResolver):
    """Resolves locators against a parsed HTML snapshot. No scripts run."""

    def __init__(self, html: str):
        self.html = html or ""
        self._soup = BeautifulSoup(self.html, "html.parser")
        self._tree: Optional[etree._Element] = None
        self._tree_failed = False

    def _xpath_tree(self) -> Optional[etree._Element]:
        if self._tree is None and not self._tree_failed:
            try:
                # Bytes, so an XML declaration carrying an encoding is accepted.
                self._tree = lxml_html.fromstring(
                    self.html.encode("utf-8"), parser=lxml_html.HTMLParser(encoding="utf-8")
                )
            except (etree.ParserError, ValueError) as e:
                logger.debug(f"Could not build XPath tree from document: {e}")
                self._tree_failed = True
        return self._tree

    async def _query_css(self, selector: str) -> bool:
        try:
            return self._soup.select_one(selector) is not None
        except SelectorSyntaxError as e:
            raise ResolutionError(
                ResolutionErrorKind.INVALID_SYNTAX,
                selector,
                f"Invalid CSS selector {selector!r}: {e}",
            ) from e

    async def _query_xpath(self, expression: str) -> bool:
        tree = self._xpath_tree()
        if tree is None:
            return False
        try:
            result = tree.xpath(expression)
        except (etree.XPathError, ValueError, TypeError) as e:
            logger.debug(f"XPath evaluation failed for {expression!r}: {e}")
            return False
        # Only node-set results count; numbers, strings and booleans are not nodes.
        return isinstance(result, list) and len(result) > 0
