# opsbrief/errors.py
"""
Error taxonomy for source adapters and the LLM client.

Adapters raise these internally; the adapter base class converts them into
``SourceResult`` failures so they never reach the fan-out coordinator.
Every error renders as ``"<CATEGORY>: <message>"``.
"""

from enum import Enum
from typing import Iterable, Optional


class ErrorCategory(str, Enum):
    """Failure classes surfaced in ``SourceResult.error`` and ``gemini.error``."""

    CONFIG_MISSING = "CONFIG_MISSING"
    TRANSPORT = "TRANSPORT"
    NO_MATCH = "NO_MATCH"
    FOUND_FILES_BUT_NO_TEXT = "FOUND_FILES_BUT_NO_TEXT"
    PARSE = "PARSE"
    RATE_LIMITED = "RATE_LIMITED"
    UNEXPECTED = "UNEXPECTED"


def format_error(category: ErrorCategory, message: str) -> str:
    return f"{category.value}: {message}"


class SourceError(Exception):
    """Base class for failures raised while talking to an external system."""

    category: ErrorCategory = ErrorCategory.UNEXPECTED

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return format_error(self.category, self.message)


class ConfigurationError(SourceError):
    """Required secrets or URLs are absent."""

    category = ErrorCategory.CONFIG_MISSING

    def __init__(self, label: str, missing_keys: Iterable[str]):
        self.missing_keys = list(missing_keys)
        super().__init__(
            f"{label} credentials not configured; missing env {', '.join(self.missing_keys)}"
        )


class TransportError(SourceError):
    """Timeout, connection failure or a non-2xx response."""

    category = ErrorCategory.TRANSPORT

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NoMatchError(SourceError):
    """The call worked but nothing matched (no account, no file)."""

    category = ErrorCategory.NO_MATCH


class UnreadableContentError(SourceError):
    """Files matched but no readable text could be extracted."""

    category = ErrorCategory.FOUND_FILES_BUT_NO_TEXT


class ParseError(SourceError):
    """The response body was not JSON or not the expected shape."""

    category = ErrorCategory.PARSE


class LLMError(SourceError):
    """Non-retryable failure from the text-generation endpoint."""

    category = ErrorCategory.TRANSPORT

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(LLMError):
    """429/503 from the text-generation endpoint; the only retryable class."""

    category = ErrorCategory.RATE_LIMITED
