"""Redis counter store implementation."""

import asyncio
import logging
import re
from typing import Any

import redis.asyncio as aioredis
from redis.asyncio.sentinel import Sentinel
from redis.exceptions import RedisError

from tenant_quota.exceptions import StoreUnavailable
from tenant_quota.store.base import CounterStore

logger = logging.getLogger(__name__)


# Increment and conditional expire as one server-side step.
# KEYS[1] = counter key
# ARGV[1] = window length in seconds
# Returns: {count, ttl}
# TTL is -1 both for a freshly created key and for a key left behind without
# an expiry, so either case gets the window applied here.
INCREMENT_AND_EXPIRE_LUA = r"""
local count = redis.call('INCR', KEYS[1])
local ttl = redis.call('TTL', KEYS[1])
if ttl < 0 then
  redis.call('EXPIRE', KEYS[1], ARGV[1])
  ttl = tonumber(ARGV[1])
end
return {count, ttl}
"""


def mask_url(url: str) -> str:
    """Hide the password component of a redis:// URL."""
    return re.sub(r":[^:@/]+@", ":***@", url)


def parse_host(entry: str, default_port: int) -> tuple[str, int]:
    """Split a 'host:port' entry."""
    host, _, port = entry.strip().partition(":")
    return host, int(port or default_port)


class RedisCounterStore(CounterStore):
    """
    Redis counter store for counters shared across service instances.

    Features:
    - Automatic connection pooling
    - Single round-trip atomic increment via a registered Lua script
    - Standalone or Sentinel deployments
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        mode: str = "standalone",
        sentinel_hosts: list[str] | None = None,
        sentinel_name: str = "mymaster",
        password: str | None = None,
        max_connections: int = 20,
        socket_timeout: float = 2.0,
        socket_connect_timeout: float = 2.0,
    ) -> None:
        """
        Initialize Redis store.

        Args:
            url: Redis connection URL (standalone mode)
            mode: "standalone" or "sentinel"
            sentinel_hosts: Sentinel 'host:port' entries (sentinel mode)
            sentinel_name: Master name monitored by the sentinels
            password: Password for Redis (and sentinels)
            max_connections: Maximum connections in pool
            socket_timeout: Socket timeout in seconds
            socket_connect_timeout: Connection timeout in seconds
        """
        self._url = url
        self._mode = mode
        self._sentinel_hosts = sentinel_hosts or []
        self._sentinel_name = sentinel_name
        self._password = password
        self._max_connections = max_connections
        self._socket_timeout = socket_timeout
        self._socket_connect_timeout = socket_connect_timeout
        self._client: Any = None
        self._increment_script: Any = None
        self._connected = False
        self._connect_lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "redis"

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _build_client(self) -> Any:
        if self._mode == "sentinel":
            if not self._sentinel_hosts:
                raise StoreUnavailable("Sentinel mode requires at least one sentinel host")
            logger.info(
                f"Creating Redis Sentinel connection "
                f"({len(self._sentinel_hosts)} hosts, master={self._sentinel_name})"
            )
            sentinel = Sentinel(
                [parse_host(h, 26379) for h in self._sentinel_hosts],
                socket_timeout=self._socket_timeout,
                socket_connect_timeout=self._socket_connect_timeout,
                sentinel_kwargs={"password": self._password} if self._password else None,
            )
            return sentinel.master_for(
                self._sentinel_name,
                password=self._password,
                socket_timeout=self._socket_timeout,
                socket_connect_timeout=self._socket_connect_timeout,
                max_connections=self._max_connections,
                decode_responses=True,
            )

        logger.info(f"Creating Redis standalone connection to {mask_url(self._url)}")
        kwargs: dict[str, Any] = {
            "max_connections": self._max_connections,
            "socket_timeout": self._socket_timeout,
            "socket_connect_timeout": self._socket_connect_timeout,
            "decode_responses": True,
        }
        if self._password:
            kwargs["password"] = self._password
        return aioredis.from_url(self._url, **kwargs)

    async def connect(self) -> bool:
        """
        Connect to Redis and register the increment script.

        Returns:
            True if connected successfully
        """
        if self._connected and self._client:
            return True

        # Concurrent callers on a cold store share one client
        async with self._connect_lock:
            if self._connected and self._client:
                return True

            await self._discard_client()
            try:
                self._client = self._build_client()
                self._increment_script = self._client.register_script(INCREMENT_AND_EXPIRE_LUA)

                # Test connection
                await self._client.ping()
                self._connected = True
                logger.info(f"Connected to Redis ({self._mode})")
                return True

            except (RedisError, OSError, StoreUnavailable) as e:
                logger.error(f"Failed to connect to Redis: {e}")
                await self._discard_client()
                return False

    async def _discard_client(self) -> None:
        """Release a stale or half-built client (must hold the connect lock)."""
        client, self._client = self._client, None
        self._increment_script = None
        self._connected = False
        if client is not None:
            try:
                await client.aclose()
            except (RedisError, OSError) as e:
                logger.warning(f"Error releasing Redis client: {e}")

    async def _ensure_connected(self) -> None:
        """Ensure we're connected to Redis."""
        if not self._connected and not await self.connect():
            raise StoreUnavailable(f"Redis is not reachable at {mask_url(self._url)}")

    async def increment_and_expire(self, key: str, window_seconds: int) -> tuple[int, int]:
        """Run the increment script against the counter key."""
        await self._ensure_connected()

        try:
            count, ttl = await self._increment_script(keys=[key], args=[window_seconds])
            return int(count), int(ttl)
        except (RedisError, OSError) as e:
            raise StoreUnavailable(f"Redis increment failed for {key}: {e}") from e
        except (TypeError, ValueError) as e:
            raise StoreUnavailable(f"Unexpected Redis reply for {key}: {e}") from e

    async def peek(self, key: str) -> tuple[int, int]:
        """Read count and TTL in one round trip."""
        await self._ensure_connected()

        try:
            pipe = self._client.pipeline(transaction=False)
            pipe.get(key)
            pipe.ttl(key)
            raw_count, ttl = await pipe.execute()
        except (RedisError, OSError) as e:
            raise StoreUnavailable(f"Redis read failed for {key}: {e}") from e

        if raw_count is None:
            return 0, 0
        try:
            count = int(raw_count)
        except (TypeError, ValueError) as e:
            raise StoreUnavailable(f"Non-integer counter at {key}: {raw_count!r}") from e
        return count, max(0, int(ttl))

    async def reset(self, key: str) -> None:
        """Delete a counter."""
        await self._ensure_connected()

        try:
            await self._client.delete(key)
        except (RedisError, OSError) as e:
            raise StoreUnavailable(f"Redis delete failed for {key}: {e}") from e

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._client:
            try:
                await self._client.aclose()
            except (RedisError, OSError) as e:
                logger.error(f"Error closing Redis connection: {e}")
            finally:
                self._client = None
                self._increment_script = None
                self._connected = False

    async def health_check(self) -> dict[str, Any]:
        """Return health status with Redis info."""
        try:
            await self._ensure_connected()
            await self._client.ping()
            info = await self._client.info("server")
        except (RedisError, OSError, StoreUnavailable) as e:
            self._connected = False
            return {
                "backend": self.name,
                "connected": False,
                "error": str(e),
            }

        return {
            "backend": self.name,
            "connected": True,
            "mode": self._mode,
            "redis_version": info.get("redis_version"),
            "uptime_seconds": info.get("uptime_in_seconds"),
        }
