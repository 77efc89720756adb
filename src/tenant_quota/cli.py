"""
Tenant Quota CLI Tool
Administrative command-line interface for inspecting and resetting quotas.
"""

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Any, Optional

import click
from rich.console import Console
from rich.table import Table

from tenant_quota.config import settings
from tenant_quota.exceptions import QuotaError
from tenant_quota.quota.controller import QuotaController, create_controller
from tenant_quota.store.factory import create_store


console = Console()


def run_with_controller(
    ctx: click.Context,
    action: Callable[[QuotaController], Awaitable[Any]],
) -> Any:
    """Build a controller for one command, run it, and close the store."""

    async def runner() -> Any:
        kwargs = {"url": ctx.obj["redis_url"]} if ctx.obj.get("redis_url") else {}
        store = create_store(ctx.obj.get("backend"), **kwargs)
        try:
            controller = create_controller(store=store)
            return await action(controller)
        finally:
            await store.close()

    try:
        return asyncio.run(runner())
    except QuotaError as e:
        console.print(f"❌ [red]Error: {e}[/red]")
        sys.exit(1)


@click.group()
@click.option("--redis-url", "-r", envvar="QUOTA_REDIS_URL", help="Redis connection URL")
@click.option(
    "--backend",
    "-b",
    type=click.Choice(["redis", "memory"]),
    default=None,
    help="Counter store backend (default: from settings)",
)
@click.pass_context
def cli(ctx, redis_url: Optional[str], backend: Optional[str]):
    """Tenant quota administration."""
    ctx.ensure_object(dict)
    ctx.obj["redis_url"] = redis_url
    ctx.obj["backend"] = backend


window_option = click.option(
    "--window",
    "-w",
    "windows",
    multiple=True,
    help="Window name (repeatable, default: all configured windows)",
)


@cli.command()
@click.argument("tenant_id")
@window_option
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status(ctx, tenant_id: str, windows: tuple[str, ...], as_json: bool):
    """Show remaining quota for a tenant without consuming it."""
    result = run_with_controller(
        ctx, lambda c: c.status(tenant_id, list(windows) or None)
    )

    if as_json:
        console.print(json.dumps({name: s.to_dict() for name, s in result.items()}, indent=2))
        return

    table = Table(title=f"Quota status for {tenant_id}")
    table.add_column("Window", style="cyan")
    table.add_column("Used", justify="right")
    table.add_column("Limit", justify="right")
    table.add_column("Remaining", justify="right")
    table.add_column("Resets in", justify="right")

    for name, s in result.items():
        color = "green" if s.remaining_count > s.max_count * 0.2 else "yellow" if s.remaining_count else "red"
        table.add_row(
            name,
            str(s.current_count),
            str(s.max_count),
            f"[{color}]{s.remaining_count}[/{color}]",
            f"{s.reset_seconds}s",
        )

    console.print(table)


@cli.command()
@click.argument("tenant_id")
@window_option
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def check(ctx, tenant_id: str, windows: tuple[str, ...], as_json: bool):
    """Charge one unit against each window and print the decision."""
    decision = run_with_controller(
        ctx, lambda c: c.check_all(tenant_id, list(windows) or None)
    )

    if as_json:
        console.print(json.dumps(decision.to_dict(), indent=2))
        return

    if decision.allowed:
        console.print(f"✅ [green]{tenant_id} allowed[/green]")
    else:
        console.print(
            f"⛔ [red]{tenant_id} rate limited[/red] "
            f"({', '.join(decision.exceeded_windows)}; retry in {decision.retry_after}s)"
        )
    for name, d in decision.per_window.items():
        note = " [yellow](store unavailable)[/yellow]" if d.degraded else ""
        console.print(
            f"   {name}: {d.current_count}/{d.max_count}, "
            f"{d.remaining_count} left, resets in {d.reset_seconds}s{note}"
        )


@cli.command()
@click.argument("tenant_id")
@window_option
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def reset(ctx, tenant_id: str, windows: tuple[str, ...], yes: bool):
    """Delete a tenant's counters (bypasses enforcement)."""
    label = ", ".join(windows) if windows else "all windows"
    if not yes:
        click.confirm(f"Reset {label} for {tenant_id}?", abort=True)

    run_with_controller(ctx, lambda c: c.reset(tenant_id, list(windows) or None))
    console.print(f"✅ [green]Reset {label} for {tenant_id}[/green]")


@cli.command()
@click.pass_context
def health(ctx):
    """Check counter store health."""
    info = run_with_controller(ctx, lambda c: c.store.health_check())

    if info.get("connected"):
        console.print(f"✅ [green]{info['backend']} store is healthy[/green]")
        if info.get("redis_version"):
            console.print(f"   Version: {info['redis_version']}")
    else:
        console.print(f"❌ [red]{info['backend']} store unreachable: {info.get('error', 'unknown')}[/red]")
        sys.exit(1)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def windows(as_json: bool):
    """List configured default windows."""
    data = {name: w.model_dump() for name, w in settings.default_windows.items()}

    if as_json:
        console.print(json.dumps(data, indent=2))
        return

    table = Table(title="Default Windows")
    table.add_column("Window", style="cyan")
    table.add_column("Length", justify="right")
    table.add_column("Limit", justify="right")

    for name, w in data.items():
        table.add_row(name, f"{w['window_seconds']}s", str(w["max_count"]))

    console.print(table)
    console.print(f"[dim]Failure mode: fail-{settings.failure_mode}[/dim]")


def main():
    """CLI entry point."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    cli(obj={})


if __name__ == "__main__":
    main()
