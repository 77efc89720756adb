"""Tests for the admin CLI."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from tenant_quota.cli import cli
from tenant_quota.exceptions import StoreUnavailable
from tenant_quota.store.memory import InMemoryCounterStore


def parse_json(output: str) -> dict:
    """Extract the JSON document printed by a command."""
    return json.loads(output[output.index("{"):])


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner."""
    return CliRunner()


class TestCli:
    """Tests for tenant-quota commands against the in-memory backend."""

    def test_status_json(self, runner: CliRunner) -> None:
        """Test status of an untouched tenant."""
        result = runner.invoke(cli, ["--backend", "memory", "status", "tenant-a", "--json"])

        assert result.exit_code == 0
        data = parse_json(result.output)
        assert data["burst"]["remaining"] == 20
        assert data["sustained"]["remaining"] == 100

    def test_status_table(self, runner: CliRunner) -> None:
        """Test status renders a table."""
        result = runner.invoke(cli, ["--backend", "memory", "status", "tenant-a", "-w", "burst"])

        assert result.exit_code == 0
        assert "burst" in result.output
        assert "sustained" not in result.output

    def test_check_json(self, runner: CliRunner) -> None:
        """Test check charges and reports the decision."""
        result = runner.invoke(cli, ["--backend", "memory", "check", "tenant-a", "--json"])

        assert result.exit_code == 0
        data = parse_json(result.output)
        assert data["allowed"] is True
        assert data["windows"]["burst"]["current_count"] == 1

    def test_check_reports_degraded(self, runner: CliRunner) -> None:
        """Test store outages are flagged in the output."""
        store = InMemoryCounterStore()
        outage = AsyncMock(side_effect=StoreUnavailable("refused"))
        with patch("tenant_quota.cli.create_store", return_value=store):
            with patch.object(store, "increment_and_expire", outage):
                result = runner.invoke(cli, ["check", "tenant-a"])

        assert result.exit_code == 0
        assert "allowed" in result.output
        assert "store unavailable" in result.output

    def test_unknown_window(self, runner: CliRunner) -> None:
        """Test configuration errors exit non-zero."""
        result = runner.invoke(cli, ["--backend", "memory", "check", "tenant-a", "-w", "daily"])

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_invalid_tenant(self, runner: CliRunner) -> None:
        """Test empty tenants are rejected."""
        result = runner.invoke(cli, ["--backend", "memory", "status", " "])

        assert result.exit_code == 1
        assert "Tenant id" in result.output

    def test_reset_requires_confirmation(self, runner: CliRunner) -> None:
        """Test reset aborts when not confirmed."""
        result = runner.invoke(cli, ["--backend", "memory", "reset", "tenant-a"], input="n\n")

        assert result.exit_code == 1
        assert "Reset all windows for tenant-a?" in result.output

    def test_reset_with_yes(self, runner: CliRunner) -> None:
        """Test reset succeeds with --yes."""
        result = runner.invoke(
            cli, ["--backend", "memory", "reset", "tenant-a", "-w", "burst", "--yes"]
        )

        assert result.exit_code == 0
        assert "Reset burst for tenant-a" in result.output

    def test_reset_closes_store(self, runner: CliRunner) -> None:
        """Test the store is closed after the command."""
        store = InMemoryCounterStore()
        with patch("tenant_quota.cli.create_store", return_value=store):
            result = runner.invoke(cli, ["reset", "tenant-a", "--yes"])

        assert result.exit_code == 0
        assert store.is_connected is False

    def test_health_memory(self, runner: CliRunner) -> None:
        """Test health for the in-memory backend."""
        result = runner.invoke(cli, ["--backend", "memory", "health"])

        assert result.exit_code == 0
        assert "healthy" in result.output

    def test_health_unreachable(self, runner: CliRunner) -> None:
        """Test health exits non-zero when the store is down."""
        store = InMemoryCounterStore()
        unhealthy = {"backend": "redis", "connected": False, "error": "refused"}
        with patch("tenant_quota.cli.create_store", return_value=store):
            with patch.object(store, "health_check", AsyncMock(return_value=unhealthy)):
                result = runner.invoke(cli, ["health"])

        assert result.exit_code == 1
        assert "unreachable" in result.output

    def test_windows_json(self, runner: CliRunner) -> None:
        """Test listing default windows."""
        result = runner.invoke(cli, ["windows", "--json"])

        assert result.exit_code == 0
        data = parse_json(result.output)
        assert data["burst"] == {"window_seconds": 60, "max_count": 20}

    def test_redis_url_passed_to_store(self, runner: CliRunner) -> None:
        """Test --redis-url reaches the store factory."""
        store = InMemoryCounterStore()
        with patch("tenant_quota.cli.create_store", return_value=store) as factory:
            runner.invoke(cli, ["--redis-url", "redis://other:6379/1", "status", "tenant-a"])

        factory.assert_called_once_with(None, url="redis://other:6379/1")
