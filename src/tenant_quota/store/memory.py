"""In-memory counter store implementation."""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable

from tenant_quota.exceptions import StoreUnavailable
from tenant_quota.store.base import CounterStore

logger = logging.getLogger(__name__)


@dataclass
class _Counter:
    count: int
    expires_at: float


class InMemoryCounterStore(CounterStore):
    """
    In-memory counter store using a simple dictionary.

    Best for:
    - Single-instance deployments
    - Development and testing

    Limitations:
    - Not shared across instances, so limits are enforced per process
    - Lost on restart

    Expired counters are dropped lazily on access, which mirrors how the
    store-side TTL behaves in Redis.
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        """
        Initialize in-memory store.

        Args:
            clock: Monotonic time source in seconds (defaults to time.monotonic)
        """
        self._store: dict[str, _Counter] = {}
        self._clock = clock or time.monotonic
        self._lock = asyncio.Lock()
        self._connected = True

    @property
    def name(self) -> str:
        return "memory"

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _ensure_open(self) -> None:
        if not self._connected:
            raise StoreUnavailable("In-memory store is closed")

    def _live(self, key: str, now: float) -> _Counter | None:
        """Return the counter for key, evicting it if expired (must hold lock)."""
        counter = self._store.get(key)
        if counter is None:
            return None
        if now >= counter.expires_at:
            del self._store[key]
            return None
        return counter

    @staticmethod
    def _ttl(counter: _Counter, now: float) -> int:
        return max(0, math.ceil(counter.expires_at - now))

    async def increment_and_expire(self, key: str, window_seconds: int) -> tuple[int, int]:
        """Increment under the store lock, arming the TTL on creation."""
        self._ensure_open()
        async with self._lock:
            now = self._clock()
            counter = self._live(key, now)
            if counter is None:
                counter = _Counter(count=0, expires_at=now + window_seconds)
                self._store[key] = counter

            counter.count += 1

            return counter.count, self._ttl(counter, now)

    async def peek(self, key: str) -> tuple[int, int]:
        """Read a counter without mutating it."""
        self._ensure_open()
        async with self._lock:
            now = self._clock()
            counter = self._live(key, now)
            if counter is None:
                return 0, 0
            return counter.count, self._ttl(counter, now)

    async def reset(self, key: str) -> None:
        """Delete a counter."""
        self._ensure_open()
        async with self._lock:
            self._store.pop(key, None)

    async def close(self) -> None:
        """Close the store and drop all counters."""
        self._connected = False
        self._store.clear()

    async def cleanup_expired(self) -> int:
        """Remove all expired counters."""
        async with self._lock:
            now = self._clock()
            expired_keys = [
                k for k, v in self._store.items()
                if now >= v.expires_at
            ]
            for key in expired_keys:
                del self._store[key]

            if expired_keys:
                logger.debug(f"Cleaned up {len(expired_keys)} expired counters")

            return len(expired_keys)

    async def health_check(self) -> dict[str, Any]:
        """Return health status with store statistics."""
        async with self._lock:
            total = len(self._store)

        return {
            "backend": self.name,
            "connected": self.is_connected,
            "total_counters": total,
        }

    def size(self) -> int:
        """Get current number of counters (sync method for convenience)."""
        return len(self._store)
