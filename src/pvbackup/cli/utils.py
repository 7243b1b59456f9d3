# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/cli/utils.py

"""Shared CLI helpers: state passed from the root callback, config loading, error reporting."""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import typer
from rich.console import Console

from pvbackup.config.manager import Config, find_config_path
from pvbackup.core.context import AppContext
from pvbackup.storage import binaries
from pvbackup.system.exceptions import ConfigError, PVBackupError, error_chain
from pvbackup.system.logging_setup import setup_logging


@dataclass
class CliState:
    config_path: Path | None = None
    verbose: bool = False
    debug: bool = False
    lock_dir: Path | None = None


def get_state(ctx: typer.Context) -> CliState:
    if ctx.obj is None:
        ctx.obj = CliState()
    return ctx.obj


def handle_operation_error(console: Console, operation: str, error: Exception) -> None:
    """Print the error and its causes, then exit non-zero."""
    chain = error_chain(error)
    console.print(f"[red]✗[/red] Error {operation}: {chain[0]}")
    for cause in chain[1:]:
        console.print(f"  [dim]caused by:[/dim] {cause}")
    raise typer.Exit(1)


def load_config_with_console(console: Console, state: CliState) -> Config:
    """Load config or exit with a readable message."""
    path = find_config_path(state.config_path)
    if state.verbose:
        console.print(f"[dim]Loading configuration from {path}...[/dim]")
    try:
        config = Config.load(path)
    except ConfigError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")
        raise typer.Exit(1)
    setup_logging(verbose=state.verbose, debug=state.debug, log_file=config.log.file)
    return config


def build_context(console: Console, state: CliState,
                  required: Callable[[Config], list[str]] | None = None,
                  dry_run: bool = False) -> AppContext:
    config = load_config_with_console(console, state)
    app_ctx = AppContext.create(config, dry_run=dry_run, lock_dir=state.lock_dir)
    if required is None:
        return app_ctx
    try:
        binaries.ensure_binaries(required(config), app_ctx.executor)
    except PVBackupError as e:
        handle_operation_error(console, "checking required programs", e)
    return app_ctx


def backup_binaries(config: Config) -> list[str]:
    names = list(binaries.COMMON)
    if config.zfs is not None:
        names += binaries.BACKUP_POOL
    if config.lvmthin is not None:
        names += binaries.BACKUP_THIN
    return names


def restore_binaries(config: Config) -> list[str]:
    names = list(binaries.COMMON) + binaries.RESTORE
    kinds = {target.type for target in config.restore.targets.values()}
    if "zfs" in kinds:
        names += binaries.RESTORE_POOL
    if "lvmthin" in kinds:
        names += binaries.RESTORE_THIN
    return names
