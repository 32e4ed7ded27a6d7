"""
Module upgrader — CLI entrypoint.

Usage:
    python -m upgrader.main --help
    python -m upgrader.main status
    python -m upgrader.main upgrade admin-app
    python -m upgrader.main batch -m admin-app -m api
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from upgrader import __version__
from upgrader.core.models.outcome import UpgradeOutcome
from upgrader.core.observability.logging_config import (
    LOG_FILE_ENV,
    LOG_LEVEL_ENV,
    setup_logging,
)
from upgrader.core.services.upgrade_service import UpgradeService


def _service(ctx: click.Context) -> UpgradeService:
    """Load modules.yml and build the upgrade service, or exit 1."""
    from upgrader.core.config.loader import ConfigError, load_fleet

    try:
        fleet = load_fleet(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)
    return UpgradeService.from_config(fleet)


def _echo_outcome(outcome: UpgradeOutcome, verbose: bool) -> None:
    timing = f" ({outcome.duration_ms}ms)" if outcome.duration_ms else ""
    if outcome.success:
        click.secho(f"   ✓ {outcome.module}", fg="green", nl=False)
        click.echo(f"  {outcome.version}{timing}")
        return

    click.secho(f"   ✗ {outcome.module}", fg="red", nl=False)
    kind = f" [{outcome.error_kind}]" if outcome.error_kind else ""
    click.echo(f"{kind}{timing}")
    lines = outcome.message.split("\n")
    for line in lines if verbose else lines[:5]:
        click.echo(f"     │ {line}")


@click.group()
@click.version_option(version=__version__, prog_name="upgrader")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to modules.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Module upgrader — fetch, build and redeploy configured modules."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get(LOG_LEVEL_ENV, "WARNING")

    setup_logging(level, log_file=os.environ.get(LOG_FILE_ENV))


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show deployed vs. latest version for every module."""
    service = _service(ctx)
    statuses = service.get_modules_status()

    if as_json:
        click.echo(json.dumps([s.model_dump(mode="json") for s in statuses], indent=2))
        return

    if not ctx.obj.get("quiet"):
        click.secho(f"\n📋 Modules: {len(statuses)}", fg="cyan", bold=True)
        click.echo()

    for s in statuses:
        color = "green" if s.status == "up-to-date" else "yellow"
        click.secho(f"   • {s.name} ", fg=color, nl=False)
        click.echo(f"[{s.kind}] {s.current_version} → {s.latest_version}  ({s.status})")
        if s.error:
            click.secho(f"     ⚠️  {s.error}", fg="yellow")
        if ctx.obj.get("verbose"):
            click.echo(f"     {s.deploy_path}  last updated: {s.last_updated or '-'}")

    click.echo()


@cli.command()
@click.argument("name")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def upgrade(ctx: click.Context, name: str, as_json: bool) -> None:
    """Upgrade a single module."""
    service = _service(ctx)
    outcome = service.upgrade_module(name)

    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2))
    else:
        click.secho(f"\n⚡ upgrade — {name}", fg="cyan", bold=True)
        _echo_outcome(outcome, ctx.obj.get("verbose", False))
        click.echo()

    if not outcome.success:
        sys.exit(1)


@cli.command()
@click.option("--module", "-m", "modules", multiple=True, help="Upgrade only these modules.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def batch(ctx: click.Context, modules: tuple[str, ...], as_json: bool) -> None:
    """Upgrade several modules in configuration order.

    Examples:

        upgrader batch

        upgrader batch -m admin-app -m api
    """
    from upgrader.core.use_cases.batch import BatchReport

    service = _service(ctx)
    report = BatchReport(service.batch_upgrade(list(modules) if modules else None))

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        click.secho(f"\n⚡ batch — {report.total} module(s)", fg="cyan", bold=True)
        click.echo()
        for outcome in report.outcomes:
            _echo_outcome(outcome, ctx.obj.get("verbose", False))

        click.echo()
        status_color = {"ok": "green", "partial": "yellow", "failed": "red"}.get(
            report.status, "white"
        )
        click.secho(
            f"   Result: {report.succeeded}/{report.total} succeeded",
            fg=status_color,
            bold=True,
        )
        click.echo()

    if report.failed > 0:
        sys.exit(1)


@cli.group()
def config() -> None:
    """Fleet configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate modules.yml configuration."""
    from upgrader.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.fleet is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   Modules: {len(result.fleet.modules)}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    click.echo()
    if not result.valid:
        sys.exit(1)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def tools(as_json: bool) -> None:
    """Show which external tools (git, npm, shell) are available."""
    from upgrader.adapters.registry import AdapterRegistry

    status_map = AdapterRegistry.default().adapter_status()

    if as_json:
        click.echo(json.dumps(status_map, indent=2))
        return

    click.echo()
    for name, info in status_map.items():
        if info["available"]:
            click.secho(f"   ✓ {name}", fg="green", nl=False)
        else:
            click.secho(f"   ✗ {name}", fg="red", nl=False)
        click.echo(f"  ({info['type']})")
    click.echo()


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address.")
@click.option("--port", "-p", default=8000, type=int, help="Port number.")
@click.pass_context
def web(ctx: click.Context, host: str, port: int) -> None:
    "Start the upgrade HTTP API."
    from upgrader.core.config.loader import ConfigError
    from upgrader.ui.web.server import create_app, run_server

    try:
        app = create_app(config_path=ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    debug = ctx.obj.get("debug", False)

    click.echo()
    click.secho("⚡ Module upgrader — HTTP API", bold=True)
    click.echo(f"   Endpoint: http://{host}:{port}/api/upgrade")
    if debug:
        click.secho("   Logging: DEBUG (all output)", fg="yellow")
    click.echo()

    run_server(app, host=host, port=port, debug=debug)


if __name__ == "__main__":
    cli()
