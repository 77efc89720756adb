"""Abstract base class for counter stores."""

from abc import ABC, abstractmethod
from typing import Any


class CounterStore(ABC):
    """
    Abstract base class for counter store backends.

    A counter store holds one integer counter per key, each with a
    time-to-live enforced by the store itself. Implementations carry no
    quota logic; they only guarantee that creating a counter and arming
    its expiry happen as one indivisible step.

    Every backend error (connection refused, timeout, malformed reply)
    must surface as ``StoreUnavailable``. Stores never retry.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Unique identifier for this backend.

        Returns:
            Backend name (e.g., 'memory', 'redis')
        """
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """
        Check if the backend is connected and healthy.

        Returns:
            True if connected, False otherwise
        """
        ...

    @abstractmethod
    async def increment_and_expire(self, key: str, window_seconds: int) -> tuple[int, int]:
        """
        Atomically add one to a counter, arming its TTL on creation.

        If the counter did not exist (or exists without any expiry), its
        TTL is set to ``window_seconds`` in the same atomic operation as
        the increment. An existing TTL is left untouched.

        Args:
            key: Fully qualified counter key
            window_seconds: TTL to apply when the counter is created

        Returns:
            Tuple of (post-increment count, TTL seconds now in effect)

        Raises:
            StoreUnavailable: If the backend cannot be reached
        """
        ...

    @abstractmethod
    async def peek(self, key: str) -> tuple[int, int]:
        """
        Read a counter without mutating it.

        Args:
            key: Fully qualified counter key

        Returns:
            Tuple of (count, TTL seconds); (0, 0) if the counter is absent

        Raises:
            StoreUnavailable: If the backend cannot be reached
        """
        ...

    @abstractmethod
    async def reset(self, key: str) -> None:
        """
        Delete a counter unconditionally. Deleting an absent key is a no-op.

        Raises:
            StoreUnavailable: If the backend cannot be reached
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the store connection."""
        ...

    async def health_check(self) -> dict[str, Any]:
        """
        Perform a health check on the store backend.

        Returns:
            Dict with health status info
        """
        return {
            "backend": self.name,
            "connected": self.is_connected,
        }
