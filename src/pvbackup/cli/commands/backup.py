# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/cli/commands/backup.py

"""Backup command handlers."""

from rich.console import Console

from pvbackup.core import operations
from pvbackup.core.context import AppContext
from pvbackup.system.display import display_volumes, format_time


def run(console: Console, app_ctx: AppContext, target: str | None = None) -> operations.BackupReport:
    report = operations.run_backup(app_ctx, target=target)
    if not report.volumes:
        console.print("[yellow]Nothing to back up[/yellow]")
        return report

    display_volumes(console, report.volumes, title=f"Backup to {report.repo}")
    if report.dry_run:
        console.print(f"[dim]Dry-run: {len(report.volumes)} volume(s) would be exported[/dim]")
    elif report.backup_time is not None:
        console.print(f"[green]✓[/green] Backup complete: {format_time(report.backup_time)}")
    else:
        console.print("[green]✓[/green] Backup complete")
    return report


def list_archives(console: Console, app_ctx: AppContext) -> list:
    volumes = operations.list_backup_archives(app_ctx)
    display_volumes(console, volumes, title="Volumes eligible for backup")
    return volumes
