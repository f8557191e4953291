"""Error types for the ledger statistics service.

Exception Hierarchy:
    StatisticsError (base)
    ├── AggregationError - Ledger aggregation query failures
    └── CacheConnectionError - Remote cache unreachable at startup

Only AggregationError is expected to reach API callers. Cache failures are
absorbed by the cache layer and treated as misses.
"""

from typing import Any


class StatisticsError(Exception):
    """Base exception for all ledger statistics errors.

    Attributes:
        message: Human-readable error message.
        details: Additional error details.
    """

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/API responses."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class AggregationError(StatisticsError):
    """An aggregation query against the ledger failed.

    Attributes:
        operation: Name of the aggregation that failed.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.operation = operation

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        base = super().to_dict()
        base["operation"] = self.operation
        return base


class CacheConnectionError(StatisticsError):
    """The remote cache could not be reached during startup."""

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.url = url
