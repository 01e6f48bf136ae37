"""Error kinds reported by the summary lifecycle."""
from __future__ import annotations

from typing import Optional


class SummaryError(RuntimeError):
    """Base error for summary requests that cannot complete."""


class BusyError(SummaryError):
    """Raised when a request is already in flight for the entry."""

    def __init__(self, message: str = "A summary request is already in progress for this entry.") -> None:
        super().__init__(message)


class NotConfiguredError(SummaryError):
    """Raised when no generation provider has been configured."""

    def __init__(self, message: str = "No summary provider is configured.") -> None:
        super().__init__(message)


class NoContentError(SummaryError):
    """Raised when the entry has nothing to summarise."""

    def __init__(self, message: str = "Entry has no content to summarise.") -> None:
        super().__init__(message)


class NothingToExpandError(SummaryError):
    """Raised when expansion is requested before any summary exists."""

    def __init__(self, message: str = "Entry has no summary to expand yet.") -> None:
        super().__init__(message)


class ServiceError(SummaryError):
    """Raised (asynchronously) when the generation call itself fails."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause
