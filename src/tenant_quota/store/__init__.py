"""
Counter store module.

Provides pluggable counter backends (in-memory and Redis) with an atomic
increment-and-expire primitive shared by every quota check.
"""

from tenant_quota.store.base import CounterStore
from tenant_quota.store.memory import InMemoryCounterStore
from tenant_quota.store.redis import RedisCounterStore
from tenant_quota.store.factory import (
    create_store,
    get_store,
    initialize_store,
    reset_store,
    shutdown_store,
)

__all__ = [
    "CounterStore",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "create_store",
    "get_store",
    "initialize_store",
    "reset_store",
    "shutdown_store",
]
