"""Redis-backed cache.

Values cross the wire as JSON, so what comes back from get() is a plain
tree of dicts, lists, strings and numbers rather than the object that was
stored. Callers reconstruct typed results with the helpers in
src.cache.coercion.

Every Redis call is bounded by a short timeout. Timeouts, connection errors
and encoding errors are logged and reported as a miss (get) or ignored
(set/delete).
"""

import asyncio
import json
import math
from typing import Any

import redis.asyncio as redis
import structlog

from src.cache.base import Cache
from src.errors import CacheConnectionError

logger = structlog.get_logger(__name__)

DEFAULT_OPERATION_TIMEOUT = 1.0
DEFAULT_CONNECT_TIMEOUT = 5.0


def serialize(value: Any) -> str:
    """Serialize a value for caching.

    Args:
        value: Value to serialize.

    Returns:
        JSON string representation.
    """
    return json.dumps(value, default=str)


def deserialize(data: str | bytes) -> Any:
    """Deserialize a cached value.

    Args:
        data: Serialized data from cache.

    Returns:
        Deserialized value.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    return json.loads(data)


class RedisCache(Cache):
    """Cache backed by a Redis server.

    Example:
        cache = await RedisCache.from_url("redis://localhost:6379/0")
        await cache.set("percentile:...", 87.5, ttl=300)
        value, found = await cache.get("percentile:...")
    """

    def __init__(
        self,
        redis_client: Any,  # redis.asyncio.Redis
        operation_timeout: float = DEFAULT_OPERATION_TIMEOUT,
    ) -> None:
        """Initialize the cache.

        Args:
            redis_client: Redis client instance.
            operation_timeout: Timeout in seconds for each get/set/delete.
        """
        self.redis = redis_client
        self.operation_timeout = operation_timeout

    @classmethod
    async def from_url(
        cls,
        url: str,
        operation_timeout: float = DEFAULT_OPERATION_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> "RedisCache":
        """Create a cache from a Redis URL and verify connectivity.

        Args:
            url: Redis connection URL.
            operation_timeout: Timeout for each cache operation.
            connect_timeout: Timeout for the initial ping.

        Returns:
            Connected RedisCache.

        Raises:
            CacheConnectionError: If the URL is invalid or the server does not answer.
        """
        try:
            client = redis.Redis.from_url(url)
        except ValueError as e:
            raise CacheConnectionError(f"Invalid Redis URL: {e}", url=url) from e

        cache = cls(client, operation_timeout=operation_timeout)
        try:
            await cache.connect(timeout=connect_timeout)
        except CacheConnectionError as e:
            raise CacheConnectionError(e.message, url=url, details=e.details) from e
        return cache

    async def connect(self, timeout: float = DEFAULT_CONNECT_TIMEOUT) -> None:
        """Ping the server.

        Raises:
            CacheConnectionError: If the ping fails or times out.
        """
        try:
            await asyncio.wait_for(self.redis.ping(), timeout=timeout)
        except Exception as e:
            await self.close()
            raise CacheConnectionError(
                f"Redis ping failed: {str(e) or type(e).__name__}",
                details={"timeout": timeout},
            ) from e
        logger.info("redis_cache_connected")

    async def ping(self) -> bool:
        """Check that the server answers within the operation timeout."""
        try:
            return bool(
                await asyncio.wait_for(self.redis.ping(), timeout=self.operation_timeout)
            )
        except Exception as e:
            logger.warning("redis_cache_ping_failed", error=str(e))
            return False

    async def get(self, key: str) -> tuple[Any, bool]:
        try:
            data = await asyncio.wait_for(self.redis.get(key), timeout=self.operation_timeout)
        except TimeoutError:
            logger.warning("cache_get_timeout", key=key, timeout=self.operation_timeout)
            return None, False
        except Exception as e:
            logger.error("cache_get_error", key=key, error=str(e))
            return None, False

        if data is None:
            return None, False

        try:
            return deserialize(data), True
        except (UnicodeDecodeError, ValueError) as e:
            logger.warning("cache_decode_error", key=key, error=str(e))
            return None, False

    async def set(self, key: str, value: Any, ttl: float) -> None:
        try:
            serialized = serialize(value)
        except (TypeError, ValueError) as e:
            logger.warning("cache_encode_error", key=key, error=str(e))
            return

        # SETEX only accepts whole seconds
        seconds = max(1, math.ceil(ttl))
        try:
            await asyncio.wait_for(
                self.redis.setex(key, seconds, serialized),
                timeout=self.operation_timeout,
            )
            logger.debug("cache_set", key=key, ttl=seconds)
        except TimeoutError:
            logger.warning("cache_set_timeout", key=key, timeout=self.operation_timeout)
        except Exception as e:
            logger.error("cache_set_error", key=key, error=str(e))

    async def delete(self, key: str) -> None:
        try:
            await asyncio.wait_for(self.redis.delete(key), timeout=self.operation_timeout)
            logger.debug("cache_delete", key=key)
        except TimeoutError:
            logger.warning("cache_delete_timeout", key=key, timeout=self.operation_timeout)
        except Exception as e:
            logger.error("cache_delete_error", key=key, error=str(e))

    async def close(self) -> None:
        """Close the Redis client."""
        try:
            await self.redis.aclose()
        except Exception as e:
            logger.warning("redis_cache_close_error", error=str(e))
