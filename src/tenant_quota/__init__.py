"""Tenant-scoped, multi-window quota enforcement backed by a shared counter store."""

from tenant_quota.exceptions import (
    InvalidConfiguration,
    InvalidTenant,
    QuotaError,
    StoreUnavailable,
)
from tenant_quota.quota import (
    PolicyRegistry,
    QuotaController,
    QuotaDecision,
    RateLimitDecision,
    WindowPolicy,
    WindowStatus,
    create_controller,
)
from tenant_quota.store import CounterStore, InMemoryCounterStore, RedisCounterStore

__version__ = "0.1.0"

__all__ = [
    "CounterStore",
    "InMemoryCounterStore",
    "InvalidConfiguration",
    "InvalidTenant",
    "PolicyRegistry",
    "QuotaController",
    "QuotaDecision",
    "QuotaError",
    "RateLimitDecision",
    "RedisCounterStore",
    "StoreUnavailable",
    "WindowPolicy",
    "WindowStatus",
    "create_controller",
]
