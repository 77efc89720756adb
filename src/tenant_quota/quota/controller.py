"""
Quota controller.

Charges tenants against one or more fixed windows held in a shared counter
store and combines the per-window outcomes into a single decision.

The controller keeps no counter state of its own and takes no locks;
correctness rests on the store's atomic increment-and-expire. Every check
consumes one unit of quota whether or not it is allowed, so a client that
keeps retrying cannot get past the limit.

Store outages are handled according to the failure mode: "open" (default)
admits the request, "closed" rejects it. Either way the outage is logged
at ERROR and never raised from ``check``/``check_all``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from tenant_quota.config import Settings, settings as default_settings
from tenant_quota.exceptions import InvalidConfiguration, InvalidTenant, StoreUnavailable
from tenant_quota.quota.decision import QuotaDecision, RateLimitDecision, WindowStatus
from tenant_quota.quota.policy import (
    KEY_SEPARATOR,
    PolicyRegistry,
    TenantPolicyLookup,
    WindowPolicy,
)
from tenant_quota.store.base import CounterStore
from tenant_quota.store.factory import get_store

logger = logging.getLogger(__name__)

FAILURE_MODES = ("open", "closed")


def validate_tenant_id(tenant_id: object) -> str:
    """Refuse identifiers that would share a counter between unidentified callers."""
    if not isinstance(tenant_id, str):
        raise InvalidTenant(f"Tenant id must be a string, got {type(tenant_id).__name__}")
    if not tenant_id.strip():
        raise InvalidTenant("Tenant id must not be empty")
    if not tenant_id.isprintable():
        raise InvalidTenant(f"Tenant id contains non-printable characters: {tenant_id!r}")
    return tenant_id


def counter_key(namespace: str, window_name: str, tenant_id: str) -> str:
    """Build the store key for a tenant's window."""
    return f"{namespace}{window_name}{KEY_SEPARATOR}{tenant_id}"


class QuotaController:
    """
    Multi-window, tenant-scoped quota enforcement.

    Example:
        controller = QuotaController(store, PolicyRegistry.from_settings(settings))
        decision = await controller.check_all("tenant-a")
        if not decision.allowed:
            raise TooManyRequests(retry_after=decision.retry_after)
    """

    def __init__(
        self,
        store: CounterStore,
        registry: PolicyRegistry,
        key_prefix: str = "quota:",
        failure_mode: str = "open",
    ) -> None:
        """
        Initialize the controller.

        Args:
            store: Shared counter store
            registry: Window policies with per-tenant overrides
            key_prefix: Namespace for counter keys in a shared store
            failure_mode: "open" to admit or "closed" to reject on store outage
        """
        if failure_mode not in FAILURE_MODES:
            raise InvalidConfiguration(
                f"failure_mode must be one of {FAILURE_MODES}, got {failure_mode!r}"
            )
        self._store = store
        self._registry = registry
        self._key_prefix = key_prefix
        self._failure_mode = failure_mode

    @property
    def registry(self) -> PolicyRegistry:
        return self._registry

    @property
    def store(self) -> CounterStore:
        return self._store

    @property
    def failure_mode(self) -> str:
        return self._failure_mode

    def key_for(self, tenant_id: str, window_name: str) -> str:
        return counter_key(self._key_prefix, window_name, validate_tenant_id(tenant_id))

    def _window_names(self, window_names: Sequence[str] | None) -> list[str]:
        if window_names is None:
            return list(self._registry.window_names)
        if isinstance(window_names, str):
            window_names = [window_names]
        names = list(dict.fromkeys(window_names))
        if not names:
            raise InvalidConfiguration("At least one window name is required")
        return names

    async def _resolve_all(
        self,
        tenant_id: str,
        window_names: Sequence[str] | None,
    ) -> dict[str, WindowPolicy]:
        validate_tenant_id(tenant_id)
        names = self._window_names(window_names)
        policies = await asyncio.gather(
            *(self._registry.resolve(tenant_id, name) for name in names)
        )
        return dict(zip(names, policies))

    async def _charge(
        self,
        tenant_id: str,
        window_name: str,
        policy: WindowPolicy,
    ) -> RateLimitDecision:
        key = counter_key(self._key_prefix, window_name, tenant_id)

        try:
            count, ttl = await self._store.increment_and_expire(key, policy.window_seconds)
        except StoreUnavailable as e:
            return self._degraded_decision(tenant_id, window_name, policy, e)

        allowed = count <= policy.max_count
        decision = RateLimitDecision(
            window_name=window_name,
            allowed=allowed,
            remaining_count=max(0, policy.max_count - count),
            reset_seconds=ttl if ttl > 0 else policy.window_seconds,
            current_count=count,
            max_count=policy.max_count,
        )

        if not allowed:
            logger.warning(
                f"Quota window exceeded: tenant={tenant_id} window={window_name} "
                f"count={count}/{policy.max_count} reset_in={decision.reset_seconds}s",
                extra={
                    "tenant_id": tenant_id,
                    "window": window_name,
                    "count": count,
                    "max_count": policy.max_count,
                    "reset_seconds": decision.reset_seconds,
                },
            )

        return decision

    def _degraded_decision(
        self,
        tenant_id: str,
        window_name: str,
        policy: WindowPolicy,
        error: StoreUnavailable,
    ) -> RateLimitDecision:
        fail_open = self._failure_mode == "open"
        logger.error(
            f"Quota store unavailable: tenant={tenant_id} window={window_name} "
            f"- {'allowing' if fail_open else 'rejecting'} request: {error}",
            extra={
                "tenant_id": tenant_id,
                "window": window_name,
                "error": str(error),
            },
        )
        return RateLimitDecision(
            window_name=window_name,
            allowed=fail_open,
            remaining_count=policy.max_count if fail_open else 0,
            reset_seconds=policy.window_seconds,
            current_count=0,
            max_count=policy.max_count,
            degraded=True,
        )

    async def check(self, tenant_id: str, window_name: str) -> RateLimitDecision:
        """
        Charge one unit against a single window.

        Args:
            tenant_id: Tenant identifier
            window_name: Configured window name (e.g. "burst")

        Returns:
            RateLimitDecision for the window

        Raises:
            InvalidTenant: If tenant_id is empty or malformed
            InvalidConfiguration: If the window has no policy
        """
        validate_tenant_id(tenant_id)
        policy = await self._registry.resolve(tenant_id, window_name)
        return await self._charge(tenant_id, window_name, policy)

    async def check_all(
        self,
        tenant_id: str,
        window_names: Sequence[str] | None = None,
    ) -> QuotaDecision:
        """
        Charge every window concurrently and AND the results.

        All windows are charged even when one is already exceeded, so a
        tenant cannot save sustained quota by tripping the burst window.
        Policies are resolved before anything is charged.

        Args:
            tenant_id: Tenant identifier
            window_names: Windows to check (defaults to all configured windows)

        Returns:
            QuotaDecision with per-window decisions
        """
        policies = await self._resolve_all(tenant_id, window_names)
        decisions = await asyncio.gather(
            *(self._charge(tenant_id, name, policy) for name, policy in policies.items())
        )
        per_window = {d.window_name: d for d in decisions}

        return QuotaDecision(
            tenant_id=tenant_id,
            allowed=all(d.allowed for d in decisions),
            per_window=per_window,
        )

    async def status(
        self,
        tenant_id: str,
        window_names: Sequence[str] | None = None,
    ) -> dict[str, WindowStatus]:
        """
        Report remaining quota without consuming any.

        Raises:
            StoreUnavailable: If the store cannot be read
        """
        policies = await self._resolve_all(tenant_id, window_names)
        snapshots = await asyncio.gather(
            *(
                self._store.peek(counter_key(self._key_prefix, name, tenant_id))
                for name in policies
            )
        )

        result = {}
        for (name, policy), (count, ttl) in zip(policies.items(), snapshots):
            result[name] = WindowStatus(
                window_name=name,
                remaining_count=max(0, policy.max_count - count),
                reset_seconds=ttl if ttl > 0 else policy.window_seconds,
                current_count=count,
                max_count=policy.max_count,
            )
        return result

    async def reset(
        self,
        tenant_id: str,
        window_names: Sequence[str] | None = None,
    ) -> None:
        """
        Delete a tenant's counters. Idempotent.

        This bypasses enforcement; callers are responsible for auditing it.

        Raises:
            StoreUnavailable: If the store cannot be reached
        """
        validate_tenant_id(tenant_id)
        names = self._window_names(window_names)
        for name in names:
            await self._registry.resolve(tenant_id, name)

        await asyncio.gather(
            *(self._store.reset(counter_key(self._key_prefix, name, tenant_id)) for name in names)
        )
        logger.info(f"Reset quota windows {names} for tenant {tenant_id}")


def create_controller(
    store: CounterStore | None = None,
    registry: PolicyRegistry | None = None,
    settings: Settings | None = None,
    lookup: TenantPolicyLookup | None = None,
) -> QuotaController:
    """
    Wire a controller from settings.

    Args:
        store: Counter store (defaults to the global store)
        registry: Policy registry (defaults to one built from settings)
        settings: Settings to read (defaults to the process settings)
        lookup: Injected per-tenant policy lookup

    Returns:
        Configured QuotaController
    """
    cfg = settings or default_settings
    return QuotaController(
        store=store or get_store(),
        registry=registry or PolicyRegistry.from_settings(cfg, lookup=lookup),
        key_prefix=cfg.key_prefix,
        failure_mode=cfg.failure_mode,
    )
