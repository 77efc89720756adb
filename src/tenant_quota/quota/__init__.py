"""
Quota management module for multi-window, per-tenant rate limiting.

Provides window policies with per-tenant overrides and a controller that
charges tenants against a shared counter store.
"""

from tenant_quota.quota.controller import (
    QuotaController,
    counter_key,
    create_controller,
    validate_tenant_id,
)
from tenant_quota.quota.decision import (
    QuotaDecision,
    RateLimitDecision,
    WindowStatus,
)
from tenant_quota.quota.policy import (
    PolicyRegistry,
    TenantPolicyLookup,
    WindowPolicy,
    load_overrides,
)

__all__ = [
    "PolicyRegistry",
    "QuotaController",
    "QuotaDecision",
    "RateLimitDecision",
    "TenantPolicyLookup",
    "WindowPolicy",
    "WindowStatus",
    "counter_key",
    "create_controller",
    "load_overrides",
    "validate_tenant_id",
]
