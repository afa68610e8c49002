"""In-process TTL cache with single-flight recomputation."""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Any
    stored_at: float


class TTLCache:
    """
    Read-mostly map with a per-entry time-to-live.

    Concurrent misses on the same key share one computation: the first
    caller computes while the others wait on the key's lock and then read
    the fresh entry.
    """

    def __init__(self,
                 ttl_seconds: float,
                 clock: Callable[[], float] = time.monotonic,
                 name: str = "cache"):
        if ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must be non-negative, got {ttl_seconds}")
        self.ttl_seconds = ttl_seconds
        self.name = name
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry] = {}
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._lock_users: Dict[Hashable, int] = {}

        self.stats = {
            "hits": 0,
            "misses": 0,
            "computations": 0,
        }

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value if present and fresh."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock())

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
        self._locks.clear()
        self._lock_users.clear()

    def __len__(self) -> int:
        return len(self._entries)

    async def get_or_compute(self,
                             key: Hashable,
                             compute: Callable[[], Awaitable[Any]],
                             bypass: bool = False) -> Any:
        """
        Return the cached value for key, computing it at most once on a miss.

        Args:
            key: Cache key
            compute: Coroutine factory producing the value
            bypass: Ignore any cached entry and recompute

        Returns:
            The cached or freshly computed value
        """
        if not bypass:
            cached = self.get(key)
            if cached is not None:
                self.stats["hits"] += 1
                return cached

        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                if not bypass:
                    cached = self.get(key)
                    if cached is not None:
                        self.stats["hits"] += 1
                        return cached

                self.stats["misses"] += 1
                self.stats["computations"] += 1
                value = await compute()
                if value is not None:
                    self.set(key, value)
                    logger.debug(f"{self.name}: stored {key!r} for {self.ttl_seconds}s")
                return value
        finally:
            # Last caller out drops the key's lock
            remaining = self._lock_users.get(key, 1) - 1
            if remaining > 0:
                self._lock_users[key] = remaining
            else:
                self._lock_users.pop(key, None)
                self._locks.pop(key, None)
