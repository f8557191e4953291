"""Cache-aside statistics over the transaction ledger.

Each operation follows the same steps:

1. Derive a deterministic cache key from the operation and its parameters.
2. Look the key up. On a hit, rebuild the typed result from the cached
   payload; if that works, return it without touching the aggregator.
3. On a miss (or an unusable payload), ask the aggregator. Its exceptions
   propagate unchanged and nothing is cached.
4. Store the result for the configured TTL and return it, whether or not
   the store succeeded.

Concurrent misses for the same key are not deduplicated: both callers run
the aggregation and the last write wins.
"""

import time
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

import structlog

from src.cache.base import DEFAULT_TTL_SECONDS, Cache, CacheMetrics
from src.cache.coercion import coerce_percentile, coerce_rows
from src.cache.keys import CacheKeyBuilder, Timestamp, parse_timestamp
from src.data.aggregator import Aggregator

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class TransactionStatisticsService:
    """Ledger statistics fronted by a cache.

    Example:
        service = TransactionStatisticsService(MongoAggregator(collection), MemoryCache())
        rows = await service.calculate_ggr(from_, to)
        percentile = await service.calculate_user_wager_percentile("user-1", from_, to)
    """

    def __init__(
        self,
        aggregator: Aggregator,
        cache: Cache,
        ttl: float = DEFAULT_TTL_SECONDS,
    ) -> None:
        """Initialize the service.

        Args:
            aggregator: Source of truth for the statistics.
            cache: Cache backend fronting the aggregator.
            ttl: Lifetime of cached results in seconds.
        """
        self.aggregator = aggregator
        self.cache = cache
        self.ttl = ttl
        self.metrics = CacheMetrics()

    async def calculate_ggr(self, from_: Timestamp, to: Timestamp) -> list[dict[str, Any]]:
        """Gross gaming revenue per currency.

        Args:
            from_: Range start (inclusive).
            to: Range end (inclusive).

        Returns:
            Rows of {currency, ggr, ggrUSD}.
        """
        start, end = parse_timestamp(from_), parse_timestamp(to)
        return await self._get_or_compute(
            key=CacheKeyBuilder.ggr(start, end),
            compute_fn=lambda: self.aggregator.calculate_ggr(start, end),
            coerce_fn=coerce_rows,
        )

    async def calculate_daily_wager_volume(
        self, from_: Timestamp, to: Timestamp
    ) -> list[dict[str, Any]]:
        """Wagered amount per day and currency, sorted by date then currency.

        Args:
            from_: Range start (inclusive).
            to: Range end (inclusive).

        Returns:
            Rows of {date, currency, wagerAmount, wagerUSDAmount}.
        """
        start, end = parse_timestamp(from_), parse_timestamp(to)
        return await self._get_or_compute(
            key=CacheKeyBuilder.daily_wager_volume(start, end),
            compute_fn=lambda: self.aggregator.calculate_daily_wager_volume(start, end),
            coerce_fn=coerce_rows,
        )

    async def calculate_user_wager_percentile(
        self, user_id: str, from_: Timestamp, to: Timestamp
    ) -> float:
        """A user's wager percentile among all users who wagered in range.

        Args:
            user_id: User to rank.
            from_: Range start (inclusive).
            to: Range end (inclusive).

        Returns:
            Percentile in [0, 100]; 0 if the user did not wager in range.
        """
        start, end = parse_timestamp(from_), parse_timestamp(to)
        return await self._get_or_compute(
            key=CacheKeyBuilder.user_wager_percentile(user_id, start, end),
            compute_fn=lambda: self.aggregator.calculate_user_wager_percentile(
                user_id, start, end
            ),
            coerce_fn=coerce_percentile,
        )

    async def _get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], Awaitable[T]],
        coerce_fn: Callable[[Any], T | None],
    ) -> T:
        start = time.monotonic()

        cached, found = await self.cache.get(key)
        if found:
            value = coerce_fn(cached)
            if value is not None:
                latency_ms = (time.monotonic() - start) * 1000
                await self.metrics.record_hit(latency_ms)
                logger.debug("cache_hit", key=key, latency_ms=round(latency_ms, 2))
                return value

            await self.metrics.record_type_mismatch()
            logger.warning(
                "cache_type_mismatch",
                key=key,
                cached_type=type(cached).__name__,
            )

        result = await compute_fn()

        await self.cache.set(key, result, self.ttl)

        latency_ms = (time.monotonic() - start) * 1000
        await self.metrics.record_miss(latency_ms)
        logger.debug("cache_computed", key=key, compute_time_ms=round(latency_ms, 2))

        return result
