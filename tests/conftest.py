"""Shared fixtures: instrumented cache and aggregator doubles."""

from datetime import UTC, datetime
from typing import Any

import pytest

from src.cache.base import Cache
from src.data.aggregator import Aggregator


class RecordingCache(Cache):
    """In-memory cache that records every call.

    Attributes:
        get_calls: Keys passed to get, in order.
        set_calls: Mapping of key to the last value stored.
        delete_calls: Keys passed to delete, in order.
        fail_gets: When True, every get reports not found.
        custom_results: Values returned by get regardless of what was stored.
    """

    def __init__(self) -> None:
        self.items: dict[str, Any] = {}
        self.get_calls: list[str] = []
        self.set_calls: dict[str, Any] = {}
        self.ttls: dict[str, float] = {}
        self.delete_calls: list[str] = []
        self.fail_gets = False
        self.custom_results: dict[str, Any] = {}

    async def get(self, key: str) -> tuple[Any, bool]:
        self.get_calls.append(key)
        if self.fail_gets:
            return None, False
        if key in self.custom_results:
            return self.custom_results[key], True
        if key in self.items:
            return self.items[key], True
        return None, False

    async def set(self, key: str, value: Any, ttl: float) -> None:
        self.items[key] = value
        self.set_calls[key] = value
        self.ttls[key] = ttl

    async def delete(self, key: str) -> None:
        self.delete_calls.append(key)
        self.items.pop(key, None)


class CountingAggregator(Aggregator):
    """Aggregator returning canned results and counting calls.

    Set an attribute ending in `_error` to make the matching operation raise.
    """

    def __init__(self) -> None:
        self.ggr_result: list[dict[str, Any]] = [
            {"currency": "BTC", "ggr": 104.5, "ggrUSD": 5225000.0},
        ]
        self.daily_result: list[dict[str, Any]] = [
            {"date": "2023-01-01", "currency": "BTC", "wagerAmount": 10.0, "wagerUSDAmount": 500000.0},
            {"date": "2023-01-01", "currency": "ETH", "wagerAmount": 2.0, "wagerUSDAmount": 4000.0},
        ]
        self.percentile_result = 75.0
        self.ggr_error: Exception | None = None
        self.daily_error: Exception | None = None
        self.percentile_error: Exception | None = None
        self.ggr_calls: list[tuple[datetime, datetime]] = []
        self.daily_calls: list[tuple[datetime, datetime]] = []
        self.percentile_calls: list[tuple[str, datetime, datetime]] = []

    async def calculate_ggr(self, from_: datetime, to: datetime) -> list[dict[str, Any]]:
        self.ggr_calls.append((from_, to))
        if self.ggr_error:
            raise self.ggr_error
        return self.ggr_result

    async def calculate_daily_wager_volume(
        self, from_: datetime, to: datetime
    ) -> list[dict[str, Any]]:
        self.daily_calls.append((from_, to))
        if self.daily_error:
            raise self.daily_error
        return self.daily_result

    async def calculate_user_wager_percentile(
        self, user_id: str, from_: datetime, to: datetime
    ) -> float:
        self.percentile_calls.append((user_id, from_, to))
        if self.percentile_error:
            raise self.percentile_error
        return self.percentile_result


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def recording_cache() -> RecordingCache:
    """Cache double recording calls."""
    return RecordingCache()


@pytest.fixture
def counting_aggregator() -> CountingAggregator:
    """Aggregator double counting calls."""
    return CountingAggregator()


@pytest.fixture
def clock() -> FakeClock:
    """Controllable clock for expiration tests."""
    return FakeClock()


@pytest.fixture
def january() -> tuple[datetime, datetime]:
    """Range covering January 2023 in UTC."""
    return (
        datetime(2023, 1, 1, tzinfo=UTC),
        datetime(2023, 1, 31, tzinfo=UTC),
    )
