"""Data layer for the transaction ledger.

This module provides:
- Aggregator contract with MongoDB and in-memory implementations
- Percentile ranking helpers
- Data models: Transaction, Timeframe, response models
"""

from src.data.aggregator import (
    Aggregator,
    LedgerAggregator,
    MongoAggregator,
    percentile_for_rank,
    rank_percentile,
)
from src.data.models import Currency, Timeframe, Transaction, TransactionType

__all__ = [
    "Aggregator",
    "Currency",
    "LedgerAggregator",
    "MongoAggregator",
    "Timeframe",
    "Transaction",
    "TransactionType",
    "percentile_for_rank",
    "rank_percentile",
]
