"""Decision types returned by the quota controller."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of charging one window."""

    window_name: str
    """Window this decision belongs to."""

    allowed: bool
    """Whether the request is within this window's limit."""

    remaining_count: int
    """Requests left in the current window (never negative)."""

    reset_seconds: int
    """Seconds until the window's counter expires."""

    current_count: int
    """Counter value after this call (0 when the store was unavailable)."""

    max_count: int
    """Configured limit for the window."""

    degraded: bool = False
    """True when produced by the store-failure policy instead of the store."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "window": self.window_name,
            "allowed": self.allowed,
            "remaining": self.remaining_count,
            "reset_seconds": self.reset_seconds,
            "current_count": self.current_count,
            "limit": self.max_count,
            "degraded": self.degraded,
        }


@dataclass(frozen=True)
class QuotaDecision:
    """Combined outcome across every window checked for a tenant."""

    tenant_id: str
    allowed: bool
    per_window: dict[str, RateLimitDecision] = field(default_factory=dict)

    @property
    def exceeded_windows(self) -> list[str]:
        return [name for name, d in self.per_window.items() if not d.allowed]

    @property
    def retry_after(self) -> int | None:
        """Seconds until every exceeded window has reset, or None if allowed."""
        if self.allowed:
            return None
        return max(self.per_window[name].reset_seconds for name in self.exceeded_windows)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "allowed": self.allowed,
            "retry_after": self.retry_after,
            "windows": {name: d.to_dict() for name, d in self.per_window.items()},
        }


@dataclass(frozen=True)
class WindowStatus:
    """Read-only view of a window, computed without charging it."""

    window_name: str
    remaining_count: int
    reset_seconds: int
    current_count: int
    max_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "window": self.window_name,
            "remaining": self.remaining_count,
            "reset_seconds": self.reset_seconds,
            "current_count": self.current_count,
            "limit": self.max_count,
        }
