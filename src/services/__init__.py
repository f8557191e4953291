"""Statistics services exposed by the API."""

from src.services.statistics import TransactionStatisticsService

__all__ = ["TransactionStatisticsService"]
