"""Pytest configuration and fixtures."""

import pytest

from tenant_quota.quota.controller import QuotaController
from tenant_quota.quota.policy import PolicyRegistry, WindowPolicy
from tenant_quota.store.memory import InMemoryCounterStore


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock."""
    return FakeClock()


@pytest.fixture
def memory_store(clock: FakeClock) -> InMemoryCounterStore:
    """Create an in-memory store driven by the fake clock."""
    return InMemoryCounterStore(clock=clock)


@pytest.fixture
def registry() -> PolicyRegistry:
    """Default burst/sustained policies with one overridden tenant."""
    return PolicyRegistry(
        defaults={
            "burst": WindowPolicy(window_seconds=60, max_count=20),
            "sustained": WindowPolicy(window_seconds=3600, max_count=100),
        },
        overrides={
            "tenant-vip": {"burst": WindowPolicy(window_seconds=60, max_count=200)},
        },
    )


@pytest.fixture
def controller(memory_store: InMemoryCounterStore, registry: PolicyRegistry) -> QuotaController:
    """Create a fail-open controller over the in-memory store."""
    return QuotaController(store=memory_store, registry=registry)
