"""Locator classification.

Decides whether a user-supplied selector is CSS or XPath using syntactic
heuristics. This is not a parser: a CSS selector that happens to contain an
XPath keyword (``.parent-menu``) is classified as XPath, and the mistake
surfaces later as a resolution failure rather than a wrong match.
"""

import logging
import re
from typing import Any

from .models import Locator, LocatorKind

logger = logging.getLogger(__name__)


XPATH_PREFIXES = ("/", "./", "(")

XPATH_AXIS_KEYWORDS = (
    "following-sibling",
    "preceding-sibling",
    "ancestor",
    "descendant",
    "parent",
    "child",
)

XPATH_FUNCTIONS = ("contains(", "starts-with(", "text()")

# @id="x", @disabled]
ATTRIBUTE_PREDICATE = re.compile(r"@[\w:.-]+\s*(=|\])")

# a//div[ anywhere in the string
PATH_STEP_PREDICATE = re.compile(r"//[\w*:-]+\[")


def _classify_expression(expression: str) -> LocatorKind:
    if expression.startswith(XPATH_PREFIXES):
        return LocatorKind.XPATH

    lowered = expression.lower()
    if any(keyword in lowered for keyword in XPATH_AXIS_KEYWORDS):
        return LocatorKind.XPATH
    if any(func in lowered for func in XPATH_FUNCTIONS):
        return LocatorKind.XPATH
    if ATTRIBUTE_PREDICATE.search(expression):
        return LocatorKind.XPATH

    if PATH_STEP_PREDICATE.search(expression):
        return LocatorKind.XPATH

    return LocatorKind.CSS


def classify(raw: Any) -> Locator:
    """Classify a selector string as CSS, XPath or invalid.

    Never raises. Non-string and blank input is INVALID. An explicit
    ``xpath=`` or ``css=`` engine prefix overrides the heuristics. The
    returned locator keeps the stripped string as ``raw`` so that
    ``classify(classify(s).raw)`` yields the same kind.
    """
    if not isinstance(raw, str):
        return Locator(raw="" if raw is None else str(raw), kind=LocatorKind.INVALID)

    stripped = raw.strip()
    if not stripped:
        return Locator(raw=stripped, kind=LocatorKind.INVALID)

    lowered = stripped.lower()
    if lowered.startswith("xpath="):
        body = stripped[len("xpath="):].strip()
        kind = LocatorKind.XPATH if body else LocatorKind.INVALID
    elif lowered.startswith("css="):
        body = stripped[len("css="):].strip()
        kind = LocatorKind.CSS if body else LocatorKind.INVALID
    else:
        kind = _classify_expression(stripped)

    logger.debug(f"Classified locator {stripped!r} as {kind.value}")
    return Locator(raw=stripped, kind=kind)
