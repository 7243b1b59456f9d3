# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/cli/main.py

"""
CLI dispatcher.

Commands parse options, build an AppContext (configuration plus an
executor carrying the dry-run flag) and hand off to the handlers in
pvbackup.cli.commands. Every PVBackupError ends up in
handle_operation_error, which prints the cause chain and exits 1.
"""

# Standard library imports
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Optional

# Third-party imports
import typer
from rich.console import Console

# Local imports
from pvbackup.cli.commands import backup as backup_commands
from pvbackup.cli.commands import config as config_commands
from pvbackup.cli.commands import restore as restore_commands
from pvbackup.cli.utils import (
    backup_binaries, build_context, get_state, handle_operation_error,
    load_config_with_console, restore_binaries
)
from pvbackup.core.restore_point import parse_restore_point
from pvbackup.system.exceptions import PVBackupError
from pvbackup.system.logging_setup import setup_logging

app = typer.Typer(
    help="""pvbackup - snapshot-based block volume backup and restore

[bold green]Backup:[/bold green] backup run, backup list-archives
[bold magenta]Restore:[/bold magenta] restore list-snapshots, restore list-archives, restore run
[bold blue]Config:[/bold blue] config check, config show
""",
    rich_markup_mode="rich"
)
backup_app = typer.Typer(help="Export volumes to the backup store", rich_markup_mode="rich")
restore_app = typer.Typer(help="Restore archives onto local volumes", rich_markup_mode="rich")
config_app = typer.Typer(help="Inspect the configuration", rich_markup_mode="rich")
app.add_typer(backup_app, name="backup")
app.add_typer(restore_app, name="restore")
app.add_typer(config_app, name="config")

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        try:
            pkg_version = version("pvbackup")
        except PackageNotFoundError as e:
            handle_operation_error(console, "retrieving version", e)
        console.print(f"pvbackup version {pkg_version}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Config file (default: $PVBACKUP_CONFIG or /etc/pvbackup/config.yml)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    debug: bool = typer.Option(False, "--debug", help="Enable trace logging, including skipped volumes"),
    lock_dir: Optional[Path] = typer.Option(None, "--lock-dir", hidden=True),
    version: Optional[bool] = typer.Option(
        None, "--version", callback=version_callback, is_eager=True,
        help="Show version and exit"
    ),
) -> None:
    """pvbackup - snapshot-based block volume backup and restore."""
    state = get_state(ctx)
    state.config_path = config
    state.verbose = verbose
    state.debug = debug
    state.lock_dir = lock_dir
    setup_logging(verbose=verbose, debug=debug)


# =============================================================================
# BACKUP
# =============================================================================

@backup_app.command(name="run")
def backup_run(
    ctx: typer.Context,
    target: Optional[str] = typer.Option(None, "--target", "-t", help="Repository name from store.repos"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Log commands instead of running them"),
) -> None:
    """[bold green]Backup[/bold green]: Snapshot, clone and export every eligible volume."""
    state = get_state(ctx)
    app_ctx = build_context(console, state, required=backup_binaries, dry_run=dry_run)
    try:
        backup_commands.run(console, app_ctx, target=target)
    except PVBackupError as e:
        handle_operation_error(console, "running backup", e)


@backup_app.command(name="list-archives")
def backup_list_archives(ctx: typer.Context) -> None:
    """[bold green]Backup[/bold green]: Show the volumes a backup would export (discovery only)."""
    state = get_state(ctx)
    app_ctx = build_context(console, state, required=backup_binaries)
    try:
        backup_commands.list_archives(console, app_ctx)
    except PVBackupError as e:
        handle_operation_error(console, "discovering volumes", e)


# =============================================================================
# RESTORE
# =============================================================================

@restore_app.command(name="list-snapshots")
def restore_list_snapshots(
    ctx: typer.Context,
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Repository name from store.repos"),
) -> None:
    """[bold magenta]Restore[/bold magenta]: List backup-store snapshots."""
    state = get_state(ctx)
    app_ctx = build_context(console, state)
    try:
        restore_commands.list_snapshots(console, app_ctx, source)
    except PVBackupError as e:
        handle_operation_error(console, "listing snapshots", e)


@restore_app.command(name="list-archives")
def restore_list_archives(
    ctx: typer.Context,
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Repository name from store.repos"),
    snapshot: str = typer.Option("latest", "--snapshot", help="'latest', unix seconds or RFC3339"),
) -> None:
    """[bold magenta]Restore[/bold magenta]: List archives per restore target."""
    state = get_state(ctx)
    app_ctx = build_context(console, state)
    try:
        restore_commands.list_archives(console, app_ctx, source, parse_restore_point(snapshot))
    except PVBackupError as e:
        handle_operation_error(console, "listing archives", e)


@restore_app.command(name="run")
def restore_run(
    ctx: typer.Context,
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Repository name from store.repos"),
    snapshot: str = typer.Option("latest", "--snapshot", help="'latest', unix seconds or RFC3339"),
    archive: Optional[list[str]] = typer.Option(None, "--archive", "-a", help="Archive to restore (repeatable)"),
    all_archives: bool = typer.Option(False, "--all", help="Restore every routed archive"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Log commands instead of running them"),
) -> None:
    """[bold magenta]Restore[/bold magenta]: Provision destinations and stream archives into them."""
    state = get_state(ctx)
    app_ctx = build_context(console, state, required=restore_binaries, dry_run=dry_run)
    try:
        restore_commands.run(console, app_ctx, source=source, point=parse_restore_point(snapshot),
                             archives=archive or [], all_archives=all_archives)
    except PVBackupError as e:
        handle_operation_error(console, "running restore", e)


# =============================================================================
# CONFIG
# =============================================================================

@config_app.command(name="check")
def config_check(ctx: typer.Context) -> None:
    """[bold blue]Config[/bold blue]: Validate the configuration file."""
    config = load_config_with_console(console, get_state(ctx))
    config_commands.check(console, config)


@config_app.command(name="show")
def config_show(ctx: typer.Context) -> None:
    """[bold blue]Config[/bold blue]: Print the effective configuration (secrets redacted)."""
    config = load_config_with_console(console, get_state(ctx))
    config_commands.show(console, config)


if __name__ == "__main__":
    app()
