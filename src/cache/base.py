"""Cache contract shared by the in-process and Redis backends.

Every backend exposes the same three async operations:

- get(key) -> (value, found): found is False when the key is absent,
  expired, or the backend failed. Never raises.
- set(key, value, ttl): best effort. Failures are logged and swallowed.
- delete(key): best effort, same contract as set.

Callers treat any "not found" as a signal to recompute, so a backend outage
degrades to slower responses and never to failed requests.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

# Default lifetime for computed statistics, in seconds
DEFAULT_TTL_SECONDS = 300


class Cache(ABC):
    """Key-value cache with per-entry expiration."""

    @abstractmethod
    async def get(self, key: str) -> tuple[Any, bool]:
        """Look up a key.

        Args:
            key: Cache key.

        Returns:
            Tuple of (value, found). Value is None when not found.
        """

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: float) -> None:
        """Store a value for ttl seconds."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key if present."""

    async def close(self) -> None:
        """Release backend resources."""


@dataclass
class CacheMetrics:
    """Hit/miss counters for cache-aside lookups.

    Attributes:
        hits: Lookups answered from the cache.
        misses: Lookups that fell through to the aggregator.
        type_mismatches: Hits whose payload could not be reconstructed.
        total_hit_latency_ms: Total latency for hits in milliseconds.
        total_miss_latency_ms: Total latency for misses in milliseconds.
    """

    hits: int = 0
    misses: int = 0
    type_mismatches: int = 0
    total_hit_latency_ms: float = 0.0
    total_miss_latency_ms: float = 0.0
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    @property
    def total_requests(self) -> int:
        """Total number of cache lookups."""
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Cache hit rate as a percentage."""
        if self.total_requests == 0:
            return 0.0
        return (self.hits / self.total_requests) * 100

    async def record_hit(self, latency_ms: float) -> None:
        """Record a cache hit."""
        async with self._lock:
            self.hits += 1
            self.total_hit_latency_ms += latency_ms

    async def record_miss(self, latency_ms: float) -> None:
        """Record a cache miss (including recompute time)."""
        async with self._lock:
            self.misses += 1
            self.total_miss_latency_ms += latency_ms

    async def record_type_mismatch(self) -> None:
        """Record a cached payload that failed reconstruction."""
        async with self._lock:
            self.type_mismatches += 1

    def to_dict(self) -> dict[str, Any]:
        """Convert metrics to dictionary."""
        avg_hit = self.total_hit_latency_ms / self.hits if self.hits else 0.0
        avg_miss = self.total_miss_latency_ms / self.misses if self.misses else 0.0
        return {
            "hits": self.hits,
            "misses": self.misses,
            "type_mismatches": self.type_mismatches,
            "total_requests": self.total_requests,
            "hit_rate": round(self.hit_rate, 2),
            "avg_hit_latency_ms": round(avg_hit, 2),
            "avg_miss_latency_ms": round(avg_miss, 2),
        }
