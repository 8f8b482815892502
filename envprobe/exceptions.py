"""Custom exceptions for the environment probe."""

from enum import Enum


class ProbeError(Exception):
    """Base exception for all probe errors."""
    pass


class NetworkError(ProbeError):
    """Raised when a target is unreachable or a request times out."""

    def __init__(self, message: str, url: str = None, original_error: Exception = None):
        self.url = url
        self.original_error = original_error
        super().__init__(message)


class ResolutionErrorKind(str, Enum):
    """Why a locator could not be resolved."""
    NOT_FOUND = "not_found"
    INVALID_SYNTAX = "invalid_syntax"
    EMPTY_OR_INVALID_SELECTOR = "empty_or_invalid_selector"


class ResolutionError(ProbeError):
    """Raised when a locator is missing from the document or cannot be evaluated."""

    def __init__(self, kind: ResolutionErrorKind, selector: str = "", message: str = None):
        self.kind = kind
        self.selector = selector
        super().__init__(message or f"Locator resolution failed ({kind.value}): {selector!r}")


class ProbeAssertionError(ProbeError):
    """Raised when an expected error text or redirect was not observed."""
    pass


class OperationalError(ProbeError):
    """Raised when the execution strategy itself cannot run.

    This is the only error allowed to abort a probe run instead of being
    recorded as a check result.
    """

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(message)


class ConfigError(ProbeError):
    """Raised when configuration loading or validation fails."""
    pass


class DatabaseError(ProbeError):
    """Raised when a history store operation fails."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
