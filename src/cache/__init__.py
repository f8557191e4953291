"""Caching layer for ledger statistics.

This module contains:
- Cache contract shared by all backends
- MemoryCache for in-process caching with a background sweep
- RedisCache for a shared Redis-backed cache
- CacheKeyBuilder for deterministic key generation
- Coercion helpers that rebuild typed results after a JSON round-trip
"""

from src.cache.base import DEFAULT_TTL_SECONDS, Cache, CacheMetrics
from src.cache.coercion import coerce_percentile, coerce_rows
from src.cache.keys import CacheKeyBuilder, format_rfc3339, parse_rfc3339, parse_timestamp
from src.cache.memory import CacheEntry, MemoryCache, ReadWriteLock
from src.cache.remote import RedisCache, deserialize, serialize

__all__ = [
    # Contract
    "Cache",
    "CacheMetrics",
    "DEFAULT_TTL_SECONDS",
    # Backends
    "CacheEntry",
    "MemoryCache",
    "ReadWriteLock",
    "RedisCache",
    # Keys
    "CacheKeyBuilder",
    "format_rfc3339",
    "parse_rfc3339",
    "parse_timestamp",
    # Reconstruction
    "coerce_percentile",
    "coerce_rows",
    # Utilities
    "deserialize",
    "serialize",
]
