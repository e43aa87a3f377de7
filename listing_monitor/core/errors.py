# listing_monitor/core/errors.py

"""Exception hierarchy for the deduplication engine.

Only :class:`PersistenceError` is meant to end a run.  Store failures
inside price-history tracking are caught by the tracker and reported
through :class:`~listing_monitor.core.price_history.PriceTrackResult`
instead of being raised.
"""

from typing import Any


class ListingMonitorError(Exception):
    """Base exception for all listing_monitor errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert the error to a plain dict for JSON output."""
        result: dict[str, Any] = {
            "error": type(self).__name__,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


class ConfigError(ListingMonitorError):
    """An EngineConfig value is out of range."""


class StoreError(ListingMonitorError):
    """The persistent key/value store failed an I/O operation."""


class PersistenceError(ListingMonitorError):
    """The fingerprint map could not be written, even after a retry."""


class EngineStateError(ListingMonitorError):
    """The engine was used before ``initialize()`` was called."""
