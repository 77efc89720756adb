"""Store factory for creating counter stores based on configuration."""

import logging
from typing import Any

from tenant_quota.config import Settings, settings as default_settings
from tenant_quota.exceptions import InvalidConfiguration
from tenant_quota.store.base import CounterStore
from tenant_quota.store.memory import InMemoryCounterStore
from tenant_quota.store.redis import RedisCounterStore

logger = logging.getLogger(__name__)

# Global store instance
_store_instance: CounterStore | None = None


def create_store(
    backend: str | None = None,
    settings: Settings | None = None,
    **kwargs: Any,
) -> CounterStore:
    """
    Create a counter store instance.

    Args:
        backend: Backend type ("memory" or "redis"), defaults to config
        settings: Settings to read from (defaults to the process settings)
        **kwargs: Overrides passed to the backend

    Returns:
        CounterStore instance

    Raises:
        InvalidConfiguration: If backend type is unknown
    """
    cfg = settings or default_settings
    backend_type = backend or cfg.store_backend

    if backend_type == "memory":
        logger.warning(
            "Using in-memory counter store; quotas are enforced per process only"
        )
        return InMemoryCounterStore(clock=kwargs.get("clock"))

    elif backend_type == "redis":
        return RedisCounterStore(
            url=kwargs.get("url", cfg.redis_url),
            mode=kwargs.get("mode", cfg.redis_mode),
            sentinel_hosts=kwargs.get("sentinel_hosts", cfg.redis_sentinel_hosts),
            sentinel_name=kwargs.get("sentinel_name", cfg.redis_sentinel_name),
            password=kwargs.get("password", cfg.redis_password),
            max_connections=kwargs.get("max_connections", cfg.redis_max_connections),
            socket_timeout=kwargs.get("socket_timeout", cfg.redis_socket_timeout),
            socket_connect_timeout=kwargs.get(
                "socket_connect_timeout", cfg.redis_socket_connect_timeout
            ),
        )

    else:
        raise InvalidConfiguration(f"Unknown store backend: {backend_type}")


def get_store() -> CounterStore:
    """
    Get the global store instance.

    Creates the store on first access using configuration settings.

    Returns:
        CounterStore instance
    """
    global _store_instance

    if _store_instance is None:
        _store_instance = create_store()
        logger.info(f"Initialized {_store_instance.name} counter store")

    return _store_instance


async def initialize_store() -> CounterStore:
    """
    Initialize the global store and establish connections.

    A Redis store that cannot connect is kept as-is rather than replaced by
    an in-memory one: per-process counters would silently multiply every
    tenant's limit by the number of instances. Calls made while Redis is
    down are handled by the controller's failure mode.

    Returns:
        Initialized CounterStore instance
    """
    store = get_store()

    if isinstance(store, RedisCounterStore):
        connected = await store.connect()
        if not connected:
            logger.warning("Redis unreachable at startup; quota checks will degrade until it recovers")

    return store


async def shutdown_store() -> None:
    """
    Shutdown the global store and close connections.

    Call this during application shutdown for clean teardown.
    """
    global _store_instance

    if _store_instance is not None:
        await _store_instance.close()
        _store_instance = None
        logger.info("Counter store shutdown complete")


def reset_store() -> None:
    """
    Reset the global store instance.

    Useful for testing or when configuration changes.
    """
    global _store_instance
    _store_instance = None
