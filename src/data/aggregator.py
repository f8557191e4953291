"""Ledger aggregations behind the statistics service.

This module provides:
- Aggregator: the contract the statistics service depends on
- MongoAggregator: runs the aggregation pipelines against MongoDB
- LedgerAggregator: the same computations over in-memory transactions
- Percentile ranking helpers shared by both implementations

Percentile rule: users with at least one wager in range are ranked by total
wagered USD, highest first. The user at rank r of N gets
100 - (r - 1) / N * 100. A user with no wagers in range gets 0.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Iterable, Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any

import structlog
from bson import Decimal128
from pymongo.errors import PyMongoError

from src.cache.keys import parse_timestamp
from src.data.models import Transaction, TransactionType
from src.errors import AggregationError

logger = structlog.get_logger(__name__)

Row = dict[str, Any]


# ============================================================================
# Percentile Ranking
# ============================================================================


def percentile_for_rank(rank: int, total: int) -> float:
    """Percentile for a 1-indexed rank among total ranked users.

    Args:
        rank: Position in the ranking, 1 being the highest total.
        total: Number of ranked users.

    Returns:
        Percentile in (0, 100]. Rank 1 always yields 100.
    """
    if total <= 0 or rank <= 0:
        return 0.0
    return 100.0 - (rank - 1) / total * 100.0


def rank_percentile(totals: Mapping[str, float], user_id: str) -> float:
    """Percentile of user_id given every user's wager total.

    Users with equal totals keep their insertion order.

    Args:
        totals: Total wagered USD per user.
        user_id: User to rank.

    Returns:
        Percentile, or 0.0 if the user has no total.
    """
    if user_id not in totals:
        return 0.0
    ranked = sorted(totals, key=lambda uid: totals[uid], reverse=True)
    return percentile_for_rank(ranked.index(user_id) + 1, len(ranked))


# ============================================================================
# Contract
# ============================================================================


class Aggregator(ABC):
    """Computes statistics over the ledger for an inclusive time range."""

    @abstractmethod
    async def calculate_ggr(self, from_: datetime, to: datetime) -> list[Row]:
        """Gross gaming revenue per currency.

        Returns:
            Rows of {currency, ggr, ggrUSD} where ggr = wagered - paid out.
        """

    @abstractmethod
    async def calculate_daily_wager_volume(self, from_: datetime, to: datetime) -> list[Row]:
        """Wagered amount per UTC day and currency.

        Returns:
            Rows of {date, currency, wagerAmount, wagerUSDAmount}, sorted
            ascending by date then currency.
        """

    @abstractmethod
    async def calculate_user_wager_percentile(
        self, user_id: str, from_: datetime, to: datetime
    ) -> float:
        """Percentile rank of a user's total wagered USD."""


# ============================================================================
# MongoDB Implementation
# ============================================================================


def _to_number(value: Any) -> Any:
    """Convert BSON decimals to float so rows survive JSON encoding."""
    if isinstance(value, Decimal128):
        return float(value.to_decimal())
    if isinstance(value, Decimal):
        return float(value)
    return value


def _clean_rows(rows: Iterable[Mapping[str, Any]]) -> list[Row]:
    return [{key: _to_number(value) for key, value in row.items()} for row in rows]


def _sum_for_type(field: str, tx_type: TransactionType) -> dict[str, Any]:
    return {
        "$sum": {
            "$cond": [{"$eq": ["$_id.type", tx_type.value]}, field, 0],
        }
    }


class MongoAggregator(Aggregator):
    """Aggregator backed by a MongoDB transactions collection.

    Example:
        from pymongo import AsyncMongoClient

        client = AsyncMongoClient("mongodb://localhost:27017")
        aggregator = MongoAggregator(client["casino"]["transactions"])
        rows = await aggregator.calculate_ggr(from_, to)
    """

    def __init__(self, collection: Any) -> None:  # pymongo AsyncCollection
        """Initialize aggregator.

        Args:
            collection: Async collection holding transaction documents.
        """
        self.collection = collection

    @staticmethod
    def ggr_pipeline(from_: datetime, to: datetime) -> list[dict[str, Any]]:
        """Pipeline computing wager minus payout per currency."""
        return [
            {"$match": {"createdAt": {"$gte": from_, "$lte": to}}},
            {
                "$group": {
                    "_id": {"currency": "$currency", "type": "$type"},
                    "totalAmount": {"$sum": "$amount"},
                    "totalUSDAmount": {"$sum": "$usdAmount"},
                }
            },
            {
                "$group": {
                    "_id": "$_id.currency",
                    "wager": _sum_for_type("$totalAmount", TransactionType.WAGER),
                    "payout": _sum_for_type("$totalAmount", TransactionType.PAYOUT),
                    "wagerUSD": _sum_for_type("$totalUSDAmount", TransactionType.WAGER),
                    "payoutUSD": _sum_for_type("$totalUSDAmount", TransactionType.PAYOUT),
                }
            },
            {
                "$project": {
                    "_id": 0,
                    "currency": "$_id",
                    "ggr": {"$subtract": ["$wager", "$payout"]},
                    "ggrUSD": {"$subtract": ["$wagerUSD", "$payoutUSD"]},
                }
            },
            {"$sort": {"currency": 1}},
        ]

    @staticmethod
    def daily_wager_volume_pipeline(from_: datetime, to: datetime) -> list[dict[str, Any]]:
        """Pipeline computing wager totals per day and currency."""
        return [
            {
                "$match": {
                    "createdAt": {"$gte": from_, "$lte": to},
                    "type": TransactionType.WAGER.value,
                }
            },
            {
                "$addFields": {
                    "date": {"$dateToString": {"format": "%Y-%m-%d", "date": "$createdAt"}}
                }
            },
            {
                "$group": {
                    "_id": {"date": "$date", "currency": "$currency"},
                    "wagerAmount": {"$sum": "$amount"},
                    "wagerUSDAmount": {"$sum": "$usdAmount"},
                }
            },
            {
                "$project": {
                    "_id": 0,
                    "date": "$_id.date",
                    "currency": "$_id.currency",
                    "wagerAmount": 1,
                    "wagerUSDAmount": 1,
                }
            },
            {"$sort": {"date": 1, "currency": 1}},
        ]

    @staticmethod
    def wager_totals_pipeline(
        from_: datetime, to: datetime, user_id: str | None = None
    ) -> list[dict[str, Any]]:
        """Pipeline computing total wagered USD per user, highest first."""
        match: dict[str, Any] = {
            "createdAt": {"$gte": from_, "$lte": to},
            "type": TransactionType.WAGER.value,
        }
        if user_id is not None:
            match["userId"] = user_id
        return [
            {"$match": match},
            {"$group": {"_id": "$userId", "totalWagerUSD": {"$sum": "$usdAmount"}}},
            {"$sort": {"totalWagerUSD": -1, "_id": 1}},
        ]

    async def _aggregate(self, operation: str, pipeline: list[dict[str, Any]]) -> list[Row]:
        try:
            cursor = await self.collection.aggregate(pipeline)
            rows = await cursor.to_list()
        except PyMongoError as e:
            logger.error("aggregation_failed", operation=operation, error=str(e))
            raise AggregationError(str(e), operation=operation) from e
        return _clean_rows(rows)

    async def calculate_ggr(self, from_: datetime, to: datetime) -> list[Row]:
        return await self._aggregate("ggr", self.ggr_pipeline(from_, to))

    async def calculate_daily_wager_volume(self, from_: datetime, to: datetime) -> list[Row]:
        return await self._aggregate(
            "daily_wager_volume", self.daily_wager_volume_pipeline(from_, to)
        )

    async def calculate_user_wager_percentile(
        self, user_id: str, from_: datetime, to: datetime
    ) -> float:
        # Skip the full ranking for users with nothing to rank
        own = await self._aggregate(
            "user_wager_total", self.wager_totals_pipeline(from_, to, user_id)
        )
        if not own:
            return 0.0

        ranked = await self._aggregate("wager_ranking", self.wager_totals_pipeline(from_, to))
        totals = {str(row["_id"]): row["totalWagerUSD"] for row in ranked}
        return rank_percentile(totals, user_id)


# ============================================================================
# In-Memory Implementation
# ============================================================================


class LedgerAggregator(Aggregator):
    """Aggregator computing statistics over an in-memory list of transactions."""

    def __init__(self, transactions: Iterable[Transaction] = ()) -> None:
        self.transactions: list[Transaction] = list(transactions)

    def add(self, *transactions: Transaction) -> None:
        """Append transactions to the ledger."""
        self.transactions.extend(transactions)

    def _in_range(
        self, from_: datetime, to: datetime, tx_type: TransactionType | None = None
    ) -> list[Transaction]:
        from_, to = parse_timestamp(from_), parse_timestamp(to)
        return [
            tx
            for tx in self.transactions
            if from_ <= tx.created_at <= to and (tx_type is None or tx.type == tx_type)
        ]

    async def calculate_ggr(self, from_: datetime, to: datetime) -> list[Row]:
        sums: dict[str, dict[str, Decimal]] = defaultdict(
            lambda: {"ggr": Decimal(0), "ggrUSD": Decimal(0)}
        )
        for tx in self._in_range(from_, to):
            sign = 1 if tx.type == TransactionType.WAGER else -1
            entry = sums[tx.currency.value]
            entry["ggr"] += sign * tx.amount
            entry["ggrUSD"] += sign * tx.usd_amount

        return [
            {"currency": currency, "ggr": float(entry["ggr"]), "ggrUSD": float(entry["ggrUSD"])}
            for currency, entry in sorted(sums.items())
        ]

    async def calculate_daily_wager_volume(self, from_: datetime, to: datetime) -> list[Row]:
        volumes: dict[tuple[str, str], dict[str, Decimal]] = defaultdict(
            lambda: {"wagerAmount": Decimal(0), "wagerUSDAmount": Decimal(0)}
        )
        for tx in self._in_range(from_, to, TransactionType.WAGER):
            entry = volumes[(tx.created_at.strftime("%Y-%m-%d"), tx.currency.value)]
            entry["wagerAmount"] += tx.amount
            entry["wagerUSDAmount"] += tx.usd_amount

        return [
            {
                "date": date,
                "currency": currency,
                "wagerAmount": float(entry["wagerAmount"]),
                "wagerUSDAmount": float(entry["wagerUSDAmount"]),
            }
            for (date, currency), entry in sorted(volumes.items())
        ]

    async def calculate_user_wager_percentile(
        self, user_id: str, from_: datetime, to: datetime
    ) -> float:
        totals: dict[str, Decimal] = defaultdict(Decimal)
        for tx in self._in_range(from_, to, TransactionType.WAGER):
            totals[tx.user_id] += tx.usd_amount
        return rank_percentile({uid: float(total) for uid, total in totals.items()}, user_id)
