"""CLI for snmpmigrate: plan, run, and verify the SNMP interface consolidation."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import asyncpg
import click

from snmpmigrate import __version__
from snmpmigrate.config import ConfigError, MigrationConfig, load_config
from snmpmigrate.consolidation.errors import ConsolidationError
from snmpmigrate.consolidation.runner import plan_consolidation, run_consolidation
from snmpmigrate.consolidation.verify import verify_consolidation
from snmpmigrate.core.logging import configure_logging
from snmpmigrate.db import Database
from snmpmigrate.migrations import run_upgrade

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CliState:
    config: MigrationConfig

    def database_url(self) -> str:
        """Resolve the URL, exiting 1 when none is configured."""
        try:
            return self.config.require_database_url()
        except ConfigError as exc:
            click.echo(f"Configuration error: {exc}", err=True)
            sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to snmpmigrate.toml (default: ./snmpmigrate.toml if present)",
)
@click.option("--database-url", default=None, help="PostgreSQL URL (overrides config/env)")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level (overrides config)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    database_url: str | None,
    log_level: str | None,
) -> None:
    """snmpmigrate: move per-item SNMP settings onto SNMP interfaces."""
    try:
        config = load_config(config_path)
        if database_url:
            config.database_url = database_url
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    configure_logging(level=log_level or config.logging.level, fmt=config.logging.format)
    ctx.obj = CliState(config=config)


def _run(state: CliState, action: Callable[[Any], Awaitable[T]]) -> T:
    """Open a connection, run *action* on it, and exit 1 on any database failure."""
    url = state.database_url()

    async def _with_connection() -> T:
        async with Database(url) as conn:
            return await action(conn)

    try:
        return asyncio.run(_with_connection())
    except ConsolidationError as exc:
        logger.error("SNMP consolidation failed: %s", exc)
        click.echo(f"Failed: {exc}", err=True)
        sys.exit(1)
    except (OSError, asyncpg.PostgresError) as exc:
        click.echo(f"Database error: {exc}", err=True)
        sys.exit(1)


def _echo_json(data: dict[str, Any]) -> None:
    click.echo(json.dumps(data, indent=2, sort_keys=True))


@cli.command()
@click.pass_obj
def plan(state: CliState) -> None:
    """Show what a consolidation run would write, without writing anything."""
    report = _run(state, lambda conn: plan_consolidation(conn, state.config))
    _echo_json(report.as_dict())


@cli.command()
@click.pass_obj
def consolidate(state: CliState) -> None:
    """Run the consolidation pass against an already-created interface_snmp table."""
    report = _run(state, lambda conn: run_consolidation(conn, state.config))
    _echo_json(report.as_dict())


@cli.command()
@click.pass_obj
def verify(state: CliState) -> None:
    """Check post-migration invariants; exit 1 if any are violated."""
    report = _run(state, verify_consolidation)
    _echo_json(report.counts)
    if not report.ok:
        click.echo(f"Verification failed: {', '.join(sorted(report.failures))}", err=True)
        sys.exit(1)


@cli.command()
@click.pass_obj
def upgrade(state: CliState) -> None:
    """Create interface_snmp, run the pass, then drop the legacy columns."""
    url = state.database_url()
    try:
        report = asyncio.run(run_upgrade(url, state.config))
    except ConsolidationError as exc:
        click.echo(f"Upgrade halted before dropping legacy columns: {exc}", err=True)
        sys.exit(1)
    if report is None:
        click.echo("Already upgraded; nothing to do")
        return
    _echo_json(report.as_dict())


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
