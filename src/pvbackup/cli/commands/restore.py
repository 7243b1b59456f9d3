# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/cli/commands/restore.py

"""Restore command handlers."""

from rich.console import Console

from pvbackup.core import operations
from pvbackup.core.context import AppContext
from pvbackup.core.restore_point import RestorePoint
from pvbackup.system.display import archives_to_table, display_volumes, snapshots_to_table


def list_snapshots(console: Console, app_ctx: AppContext, source: str | None = None) -> list:
    snapshots = operations.list_snapshots(app_ctx, source)
    if not snapshots:
        console.print("[yellow]No snapshots found[/yellow]")
        return snapshots
    console.print(snapshots_to_table(snapshots))
    return snapshots


def list_archives(console: Console, app_ctx: AppContext, source: str | None = None,
                  point: RestorePoint = RestorePoint()) -> dict[str, list[str]]:
    snapshot, by_target = operations.list_restore_archives(app_ctx, source, point)
    if not any(by_target.values()):
        console.print(f"[yellow]No archive of {snapshot.path} is routed to a restore target[/yellow]")
        return by_target
    console.print(archives_to_table(by_target, snapshot))
    return by_target


def run(console: Console, app_ctx: AppContext, source: str | None = None,
        point: RestorePoint = RestorePoint(), archives: list[str] | None = None,
        all_archives: bool = False) -> operations.RestoreReport:
    report = operations.run_restore(app_ctx, source=source, point=point,
                                    archives=archives, all_archives=all_archives)
    if not report.volumes:
        console.print("[yellow]Nothing restored[/yellow]")
        return report
    display_volumes(console, report.volumes, title=f"Restore from {report.snapshot.path}")
    if report.dry_run:
        console.print(f"[dim]Dry-run: {len(report.volumes)} archive(s) would be restored[/dim]")
    else:
        console.print(f"[green]✓[/green] Restored {len(report.volumes)} archive(s)")
    return report
