"""Click CLI for soundshelf — build a catalog and manage its artifact cache."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from soundshelf.config.hierarchy import load_config_hierarchy
from soundshelf.errors.exceptions import CacheConsistencyError, ConfigError

console = Console()
error_console = Console(stderr=True)

_STRATEGIES = ["delayed", "immediate", "wipe", "manual"]


def _setup_logging(verbosity: int, default_level: str = "WARNING") -> None:
    """Configure logging based on verbosity level."""
    level = logging.getLevelName(default_level.upper())
    if not isinstance(level, int):
        level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=error_console, show_time=False, show_path=False)],
    )


def _load_settings(catalog_dir: str, **overrides: object):
    from soundshelf.config.schema import BuildSettings

    config = load_config_hierarchy(catalog_dir, **overrides)
    try:
        return BuildSettings.from_config(Path(catalog_dir).resolve(), config)
    except ConfigError as e:
        error_console.print(f"[red]Configuration error:[/red] {e.message}")
        sys.exit(2)


@click.group()
@click.version_option(package_name="soundshelf")
def cli() -> None:
    """soundshelf — static music catalog builder."""


@cli.command()
@click.argument("catalog_dir", type=click.Path(exists=True, file_okay=False), default=".")
@click.option("--build-dir", type=click.Path(file_okay=False), help="Output directory.")
@click.option("--cache-dir", type=click.Path(file_okay=False), help="Artifact cache directory.")
@click.option(
    "--strategy",
    type=click.Choice(_STRATEGIES),
    default=None,
    help="Cache optimization strategy.",
)
@click.option("--grace-hours", type=float, default=None, help="Grace window for stale entries.")
@click.option("--no-cache", is_flag=True, default=False, help="Recompute every artifact.")
@click.option("--workers", type=int, default=None, help="Releases processed concurrently.")
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug).")
def build(
    catalog_dir: str,
    build_dir: str | None,
    cache_dir: str | None,
    strategy: str | None,
    grace_hours: float | None,
    no_cache: bool,
    workers: int | None,
    verbose: int,
) -> None:
    """Build the catalog in CATALOG_DIR."""
    settings = _load_settings(
        catalog_dir,
        build_dir=build_dir,
        cache_dir=cache_dir,
        cache_strategy=strategy,
        grace_period_hours=grace_hours,
        no_cache=no_cache or None,
        max_workers=workers,
    )
    _setup_logging(verbose, settings.log_level)

    from soundshelf.build import BuildSession, scan_catalog

    releases = scan_catalog(
        settings.catalog_dir, exclude={settings.cache_dir, settings.build_dir}
    )
    if not releases:
        error_console.print("[yellow]No releases found in catalog.[/yellow]")
        return

    session = BuildSession(settings)
    try:
        result = session.run(releases)
    except CacheConsistencyError as e:
        error_console.print(f"[red]Internal cache consistency error:[/red] {e.message}")
        error_console.print(f"  key: {e.key}")
        sys.exit(1)

    for line in result.report_lines:
        error_console.print(line)

    built = len(result.releases) - len(result.failed)
    console.print(
        f"[green]Built {built} of {len(result.releases)} releases "
        f"({result.artifact_count} artifacts) into {settings.build_dir}[/green]"
    )
    if result.failed:
        for failed in result.failed:
            error_console.print(f"[red]Failed:[/red] {failed.slug}: {failed.error}")
        sys.exit(1)


@cli.group()
def cache() -> None:
    """Cache management commands."""


def _open_index(catalog_dir: str, cache_dir: str | None):
    from soundshelf.cache.index import CacheIndex

    settings = _load_settings(catalog_dir, cache_dir=cache_dir)
    index = CacheIndex(settings.cache_dir)
    index.load()
    return settings, index


_catalog_argument = click.argument(
    "catalog_dir", type=click.Path(exists=True, file_okay=False), default="."
)
_cache_dir_option = click.option(
    "--cache-dir", type=click.Path(file_okay=False), help="Artifact cache directory."
)


@cache.command("report")
@_catalog_argument
@_cache_dir_option
def cache_report(catalog_dir: str, cache_dir: str | None) -> None:
    """Show cached artifacts grouped by kind and state."""
    from soundshelf.cache.policy import CachePolicy
    from soundshelf.utils.format import format_bytes

    _, index = _open_index(catalog_dir, cache_dir)
    report = CachePolicy().report(index)

    table = Table(title="Cache Report", show_header=True)
    table.add_column("Kind", style="cyan")
    table.add_column("Fresh")
    table.add_column("Fresh size")
    table.add_column("Stale")
    table.add_column("Stale size")

    for row in report.kinds.values():
        table.add_row(
            row.kind.value,
            str(row.fresh_count),
            format_bytes(row.fresh_bytes),
            str(row.stale_count),
            format_bytes(row.stale_bytes),
        )

    console.print(table)
    console.print(report.lines()[-1])


@cache.command("optimize")
@_catalog_argument
@_cache_dir_option
def cache_optimize(catalog_dir: str, cache_dir: str | None) -> None:
    """Purge every stale artifact now."""
    from soundshelf.cache.policy import CachePolicy
    from soundshelf.utils.format import format_bytes

    _, index = _open_index(catalog_dir, cache_dir)
    policy = CachePolicy()
    outcome = policy.purge_stale(index)
    policy.remove_orphans(index)
    index.persist()
    console.print(
        f"[green]Purged {outcome.purged} stale artifacts, "
        f"reclaimed {format_bytes(outcome.reclaimed_bytes)}.[/green]"
    )
    if outcome.purge_failures:
        error_console.print(
            f"[yellow]{outcome.purge_failures} artifacts could not be removed.[/yellow]"
        )


@cache.command("wipe")
@_catalog_argument
@_cache_dir_option
@click.confirmation_option(prompt="Are you sure you want to delete all cached artifacts?")
def cache_wipe(catalog_dir: str, cache_dir: str | None) -> None:
    """Purge every cached artifact now."""
    from soundshelf.cache.policy import CachePolicy
    from soundshelf.utils.format import format_bytes

    _, index = _open_index(catalog_dir, cache_dir)
    policy = CachePolicy()
    outcome = policy.purge_all(index)
    policy.remove_orphans(index)
    index.persist()
    console.print(
        f"[green]Cache wiped: {outcome.purged} artifacts, "
        f"{format_bytes(outcome.reclaimed_bytes)}.[/green]"
    )


def main() -> None:
    """Entry point for the CLI."""
    cli()
