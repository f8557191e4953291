"""In-process cache backend.

Entries live in a dict guarded by a reader/writer lock. Reads share the lock
and check expiration lazily; expired entries are only removed by the
background sweep so the read path never needs exclusive access. Values are
copied on the way in and out, so callers cannot mutate a cached entry.
"""

import asyncio
import copy
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import structlog

from src.cache.base import Cache

logger = structlog.get_logger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 300.0


@dataclass
class CacheEntry:
    """A cached value and the clock reading after which it is stale."""

    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        """Return True once now is past the expiration time."""
        return now > self.expires_at


class ReadWriteLock:
    """Asyncio reader/writer lock.

    Any number of readers may hold the lock together. A writer holds it
    alone. Waiting writers block new readers so a steady stream of reads
    cannot starve a sweep.
    """

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @property
    def readers(self) -> int:
        """Number of readers currently holding the lock."""
        return self._readers

    @property
    def write_locked(self) -> bool:
        """Whether a writer currently holds the lock."""
        return self._writer

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        """Hold the lock in shared mode."""
        async with self._cond:
            await self._cond.wait_for(
                lambda: not self._writer and self._writers_waiting == 0
            )
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        """Hold the lock exclusively."""
        async with self._cond:
            self._writers_waiting += 1
            try:
                await self._cond.wait_for(
                    lambda: not self._writer and self._readers == 0
                )
            finally:
                self._writers_waiting -= 1
                # Readers parked behind this writer must recheck
                self._cond.notify_all()
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()


class MemoryCache(Cache):
    """Process-local cache with lazy expiration and a periodic sweep.

    Example:
        async with MemoryCache() as cache:
            await cache.set("ggr:...", rows, ttl=300)
            value, found = await cache.get("ggr:...")
    """

    def __init__(
        self,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            sweep_interval: Seconds between background sweeps.
            clock: Monotonic clock used for expiration.
        """
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._items: dict[str, CacheEntry] = {}
        self._lock = ReadWriteLock()
        self._sweeper: asyncio.Task[None] | None = None

    async def __aenter__(self) -> "MemoryCache":
        self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def __len__(self) -> int:
        """Number of stored entries, expired ones included."""
        return len(self._items)

    @property
    def running(self) -> bool:
        """Whether the background sweep task is alive."""
        return self._sweeper is not None and not self._sweeper.done()

    def start(self) -> None:
        """Start the background sweep on the running event loop."""
        if self.running:
            return
        self._sweeper = asyncio.create_task(self._sweep_loop())
        logger.debug("memory_cache_sweeper_started", interval=self.sweep_interval)

    async def close(self) -> None:
        """Cancel the background sweep and wait for it to finish."""
        if self._sweeper is None:
            return
        sweeper, self._sweeper = self._sweeper, None
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
        logger.debug("memory_cache_sweeper_stopped")

    async def get(self, key: str) -> tuple[Any, bool]:
        async with self._lock.read():
            entry = self._items.get(key)
            if entry is None or entry.is_expired(self._clock()):
                return None, False
            return copy.deepcopy(entry.value), True

    async def set(self, key: str, value: Any, ttl: float) -> None:
        try:
            stored = copy.deepcopy(value)
        except Exception as e:
            logger.warning("memory_cache_copy_error", key=key, error=str(e))
            return

        async with self._lock.write():
            self._items[key] = CacheEntry(value=stored, expires_at=self._clock() + ttl)

    async def delete(self, key: str) -> None:
        async with self._lock.write():
            self._items.pop(key, None)

    async def sweep(self) -> int:
        """Remove every expired entry.

        Returns:
            Number of entries removed.
        """
        async with self._lock.write():
            now = self._clock()
            expired = [key for key, entry in self._items.items() if entry.is_expired(now)]
            for key in expired:
                del self._items[key]
        if expired:
            logger.debug("memory_cache_swept", removed=len(expired), remaining=len(self._items))
        return len(expired)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            await self.sweep()
