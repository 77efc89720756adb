"""
Window policies and their resolution per tenant.

Default windows are loaded once from settings at startup and never mutated.
Tenants can override any window (or add windows of their own) through a
static mapping, a JSON file, or an injected lookup callable.
"""

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any

from tenant_quota.config import Settings
from tenant_quota.exceptions import InvalidConfiguration

logger = logging.getLogger(__name__)

KEY_SEPARATOR = ":"

TenantPolicyLookup = Callable[
    [str, str],
    "WindowPolicy | None | Awaitable[WindowPolicy | None]",
]
"""Returns a tenant's policy for a window, or None to fall back to defaults."""


@dataclass(frozen=True)
class WindowPolicy:
    """A fixed rate window: at most ``max_count`` operations per ``window_seconds``."""

    window_seconds: int
    max_count: int

    def __post_init__(self) -> None:
        for field_name in ("window_seconds", "max_count"):
            value = getattr(self, field_name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvalidConfiguration(
                    f"{field_name} must be a positive integer, got {value!r}"
                )

    def to_dict(self) -> dict[str, int]:
        return {"window_seconds": self.window_seconds, "max_count": self.max_count}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> WindowPolicy:
        try:
            return cls(
                window_seconds=data["window_seconds"],
                max_count=data["max_count"],
            )
        except (KeyError, TypeError) as e:
            raise InvalidConfiguration(f"Malformed window policy {data!r}: {e}") from e


def validate_window_name(window_name: Any) -> str:
    """Reject names that are empty or would blur counter key boundaries."""
    if not isinstance(window_name, str) or not window_name.strip():
        raise InvalidConfiguration(f"Window name must be a non-empty string, got {window_name!r}")
    if KEY_SEPARATOR in window_name:
        raise InvalidConfiguration(
            f"Window name {window_name!r} may not contain {KEY_SEPARATOR!r}"
        )
    return window_name


class PolicyRegistry:
    """
    Immutable registry of window policies.

    Resolution order for ``(tenant, window)``:
    1. Injected lookup callable, if it returns a policy
    2. Static per-tenant overrides
    3. Process-wide defaults
    """

    def __init__(
        self,
        defaults: Mapping[str, WindowPolicy],
        overrides: Mapping[str, Mapping[str, WindowPolicy]] | None = None,
        lookup: TenantPolicyLookup | None = None,
    ) -> None:
        if not defaults:
            raise InvalidConfiguration("At least one default window must be configured")

        for name in defaults:
            validate_window_name(name)
        for tenant_windows in (overrides or {}).values():
            for name in tenant_windows:
                validate_window_name(name)

        self._defaults = MappingProxyType(dict(defaults))
        self._overrides = MappingProxyType(
            {tenant: MappingProxyType(dict(windows)) for tenant, windows in (overrides or {}).items()}
        )
        self._lookup = lookup

    @property
    def window_names(self) -> tuple[str, ...]:
        """Configured default window names, in configuration order."""
        return tuple(self._defaults)

    @property
    def defaults(self) -> Mapping[str, WindowPolicy]:
        return self._defaults

    def overrides_for(self, tenant_id: str) -> Mapping[str, WindowPolicy]:
        return self._overrides.get(tenant_id, MappingProxyType({}))

    async def resolve(self, tenant_id: str, window_name: str) -> WindowPolicy:
        """
        Resolve the effective policy for a tenant's window.

        Raises:
            InvalidConfiguration: If neither an override nor a default exists
        """
        validate_window_name(window_name)

        if self._lookup is not None:
            policy = self._lookup(tenant_id, window_name)
            if inspect.isawaitable(policy):
                policy = await policy
            if policy is not None:
                if not isinstance(policy, WindowPolicy):
                    raise InvalidConfiguration(
                        f"Policy lookup returned {type(policy).__name__} for window "
                        f"{window_name!r} (tenant {tenant_id!r}), expected WindowPolicy"
                    )
                return policy

        policy = self._overrides.get(tenant_id, {}).get(window_name)
        if policy is not None:
            return policy

        policy = self._defaults.get(window_name)
        if policy is None:
            raise InvalidConfiguration(
                f"No policy for window {window_name!r} (tenant {tenant_id!r})"
            )
        return policy

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        lookup: TenantPolicyLookup | None = None,
    ) -> PolicyRegistry:
        """Build the registry from settings, loading the overrides file if configured."""
        defaults = {
            name: WindowPolicy(window_seconds=w.window_seconds, max_count=w.max_count)
            for name, w in settings.default_windows.items()
        }
        overrides = None
        if settings.tenant_overrides_path:
            overrides = load_overrides(settings.tenant_overrides_path)

        registry = cls(defaults, overrides=overrides, lookup=lookup)
        logger.info(
            "Quota policies loaded: "
            + ", ".join(
                f"{name}={p.max_count}/{p.window_seconds}s" for name, p in defaults.items()
            )
            + f" ({len(overrides or {})} tenant overrides)"
        )
        return registry


def load_overrides(path: str | Path) -> dict[str, dict[str, WindowPolicy]]:
    """
    Load per-tenant overrides from a JSON file.

    Expected shape::

        {"tenant-a": {"burst": {"window_seconds": 60, "max_count": 50}}}

    Raises:
        InvalidConfiguration: If the file is missing or malformed
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise InvalidConfiguration(f"Cannot load tenant overrides from {path}: {e}") from e

    if not isinstance(data, dict):
        raise InvalidConfiguration(f"Tenant overrides in {path} must be a JSON object")

    overrides: dict[str, dict[str, WindowPolicy]] = {}
    for tenant_id, windows in data.items():
        if not isinstance(windows, dict):
            raise InvalidConfiguration(f"Overrides for tenant {tenant_id!r} must be an object")
        overrides[tenant_id] = {
            name: WindowPolicy.from_dict(policy) for name, policy in windows.items()
        }

    logger.info(f"Loaded tenant overrides for {len(overrides)} tenants from {path}")
    return overrides
