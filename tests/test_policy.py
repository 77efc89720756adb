"""Tests for window policies, overrides, and settings."""

import json
from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest
from pydantic import ValidationError

from tenant_quota.config import Settings
from tenant_quota.exceptions import InvalidConfiguration
from tenant_quota.quota.policy import (
    PolicyRegistry,
    WindowPolicy,
    load_overrides,
    validate_window_name,
)


class TestWindowPolicy:
    """Tests for WindowPolicy value object."""

    def test_valid_policy(self) -> None:
        """Test construction and serialization."""
        policy = WindowPolicy(window_seconds=60, max_count=20)
        assert policy.to_dict() == {"window_seconds": 60, "max_count": 20}

    @pytest.mark.parametrize(
        "window_seconds,max_count",
        [(0, 10), (60, 0), (-1, 10), (60, -5), (True, 10), (60, 2.5)],
    )
    def test_rejects_invalid_values(self, window_seconds, max_count) -> None:
        """Test non-positive or non-integer values are refused."""
        with pytest.raises(InvalidConfiguration):
            WindowPolicy(window_seconds=window_seconds, max_count=max_count)

    def test_is_immutable(self) -> None:
        """Test policies cannot be mutated after creation."""
        policy = WindowPolicy(window_seconds=60, max_count=20)
        with pytest.raises(FrozenInstanceError):
            policy.max_count = 50  # type: ignore[misc]

    def test_from_dict_missing_field(self) -> None:
        """Test malformed dicts raise InvalidConfiguration."""
        with pytest.raises(InvalidConfiguration, match="Malformed"):
            WindowPolicy.from_dict({"window_seconds": 60})


class TestWindowNames:
    """Tests for window name validation."""

    def test_accepts_plain_name(self) -> None:
        assert validate_window_name("burst") == "burst"

    @pytest.mark.parametrize("name", ["", "   ", None, "burst:extra", 5])
    def test_rejects_bad_names(self, name) -> None:
        """Test empty, non-string, and separator-bearing names."""
        with pytest.raises(InvalidConfiguration):
            validate_window_name(name)


class TestPolicyRegistry:
    """Tests for PolicyRegistry resolution."""

    @pytest.mark.asyncio
    async def test_resolves_default(self, registry: PolicyRegistry) -> None:
        """Test tenants without overrides get the default."""
        policy = await registry.resolve("tenant-a", "burst")
        assert policy == WindowPolicy(window_seconds=60, max_count=20)

    @pytest.mark.asyncio
    async def test_resolves_override(self, registry: PolicyRegistry) -> None:
        """Test tenant override wins over the default."""
        policy = await registry.resolve("tenant-vip", "burst")
        assert policy.max_count == 200

        sustained = await registry.resolve("tenant-vip", "sustained")
        assert sustained.max_count == 100

    @pytest.mark.asyncio
    async def test_unknown_window(self, registry: PolicyRegistry) -> None:
        """Test unknown windows raise InvalidConfiguration."""
        with pytest.raises(InvalidConfiguration, match="No policy"):
            await registry.resolve("tenant-a", "daily")

    @pytest.mark.asyncio
    async def test_override_only_window(self) -> None:
        """Test a tenant can define a window with no default."""
        registry = PolicyRegistry(
            defaults={"burst": WindowPolicy(60, 20)},
            overrides={"tenant-b": {"daily": WindowPolicy(86400, 1000)}},
        )
        assert (await registry.resolve("tenant-b", "daily")).max_count == 1000
        with pytest.raises(InvalidConfiguration):
            await registry.resolve("tenant-a", "daily")

    @pytest.mark.asyncio
    async def test_sync_lookup(self) -> None:
        """Test an injected sync lookup takes precedence."""

        def lookup(tenant_id: str, window_name: str):
            if tenant_id == "tenant-x":
                return WindowPolicy(10, 3)
            return None

        registry = PolicyRegistry(defaults={"burst": WindowPolicy(60, 20)}, lookup=lookup)
        assert (await registry.resolve("tenant-x", "burst")).max_count == 3
        assert (await registry.resolve("tenant-y", "burst")).max_count == 20

    @pytest.mark.asyncio
    async def test_async_lookup(self) -> None:
        """Test an injected coroutine lookup is awaited."""

        async def lookup(tenant_id: str, window_name: str):
            return WindowPolicy(30, 5) if window_name == "burst" else None

        registry = PolicyRegistry(defaults={"burst": WindowPolicy(60, 20)}, lookup=lookup)
        assert (await registry.resolve("any", "burst")).window_seconds == 30

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "returned", [{"window_seconds": 30, "max_count": 5}, 5, "burst"]
    )
    async def test_lookup_returning_non_policy(self, returned) -> None:
        """Test a lookup result that is not a WindowPolicy is refused."""
        registry = PolicyRegistry(
            defaults={"burst": WindowPolicy(60, 20)},
            lookup=lambda tenant_id, window_name: returned,
        )
        with pytest.raises(InvalidConfiguration, match="expected WindowPolicy"):
            await registry.resolve("tenant-a", "burst")

    def test_requires_defaults(self) -> None:
        """Test an empty registry is refused."""
        with pytest.raises(InvalidConfiguration):
            PolicyRegistry(defaults={})

    def test_window_names_keep_order(self, registry: PolicyRegistry) -> None:
        """Test window names follow configuration order."""
        assert registry.window_names == ("burst", "sustained")

    def test_defaults_are_read_only(self, registry: PolicyRegistry) -> None:
        """Test the defaults mapping cannot be mutated."""
        with pytest.raises(TypeError):
            registry.defaults["burst"] = WindowPolicy(1, 1)  # type: ignore[index]


class TestOverridesFile:
    """Tests for loading tenant overrides from JSON."""

    def test_load_overrides(self, tmp_path: Path) -> None:
        """Test a valid overrides file."""
        path = tmp_path / "overrides.json"
        path.write_text(json.dumps({
            "tenant-a": {"burst": {"window_seconds": 60, "max_count": 50}},
        }))

        overrides = load_overrides(path)
        assert overrides == {"tenant-a": {"burst": WindowPolicy(60, 50)}}

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test a missing file raises InvalidConfiguration."""
        with pytest.raises(InvalidConfiguration):
            load_overrides(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Test unparsable JSON raises InvalidConfiguration."""
        path = tmp_path / "overrides.json"
        path.write_text("{not json")
        with pytest.raises(InvalidConfiguration):
            load_overrides(path)

    def test_wrong_shape(self, tmp_path: Path) -> None:
        """Test non-object tenant entries are rejected."""
        path = tmp_path / "overrides.json"
        path.write_text(json.dumps({"tenant-a": [1, 2]}))
        with pytest.raises(InvalidConfiguration):
            load_overrides(path)


class TestSettings:
    """Tests for settings and registry construction from settings."""

    def test_default_windows(self) -> None:
        """Test burst/sustained defaults."""
        cfg = Settings(_env_file=None)
        assert cfg.default_windows["burst"].max_count == 20
        assert cfg.default_windows["sustained"].window_seconds == 3600
        assert cfg.failure_mode == "open"
        assert cfg.key_prefix == "quota:"

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test QUOTA_ prefixed environment variables."""
        monkeypatch.setenv("QUOTA_FAILURE_MODE", "closed")
        monkeypatch.setenv(
            "QUOTA_DEFAULT_WINDOWS",
            '{"minute": {"window_seconds": 60, "max_count": 5}}',
        )
        cfg = Settings(_env_file=None)
        assert cfg.failure_mode == "closed"
        assert list(cfg.default_windows) == ["minute"]

    def test_rejects_invalid_values(self) -> None:
        """Test invalid settings fail validation."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, failure_mode="sometimes")
        with pytest.raises(ValidationError):
            Settings(_env_file=None, default_windows={})
        with pytest.raises(ValidationError):
            Settings(_env_file=None, default_windows={"burst": {"window_seconds": 0, "max_count": 1}})

    @pytest.mark.asyncio
    async def test_registry_from_settings(self, tmp_path: Path) -> None:
        """Test registry built from settings and an overrides file."""
        path = tmp_path / "overrides.json"
        path.write_text(json.dumps({
            "tenant-a": {"burst": {"window_seconds": 60, "max_count": 99}},
        }))
        cfg = Settings(_env_file=None, tenant_overrides_path=str(path))

        registry = PolicyRegistry.from_settings(cfg)
        assert registry.window_names == ("burst", "sustained")
        assert (await registry.resolve("tenant-a", "burst")).max_count == 99
        assert (await registry.resolve("tenant-b", "burst")).max_count == 20
