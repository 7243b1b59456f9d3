# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/system/display.py

# Standard library imports
from datetime import datetime, UTC

# Third-party imports
import humanize
from rich.console import Console
from rich.table import Table

# Local imports
from pvbackup.core.volume import RestoreMeta, Volume
from pvbackup.storage.backup_store import StoreSnapshot


def format_time(unix_seconds: int) -> str:
    return datetime.fromtimestamp(unix_seconds, UTC).strftime("%Y-%m-%d %H:%M:%S UTC")


def volumes_to_table(volumes: list[Volume], title: str | None = None) -> Table:
    """Convert volumes to a rich Table for display.

    Args:
        volumes: Volumes from discovery or restore resolution
        title: Optional table title

    Returns:
        Rich Table object ready for display
    """
    table = Table(title=title)
    table.add_column("Storage")
    table.add_column("Disk")
    table.add_column("Archive")
    table.add_column("Device")
    table.add_column("Size", justify="right")

    for volume in volumes:
        size = ""
        if isinstance(volume.metadata, RestoreMeta):
            size = humanize.naturalsize(volume.metadata.size_bytes, binary=True)
            if volume.metadata.provisioned:
                size = f"{size} (new)"
        table.add_row(volume.storage_id, volume.disk_name, volume.archive_name, volume.device_path, size)
    return table


def snapshots_to_table(snapshots: list[StoreSnapshot]) -> Table:
    table = Table()
    table.add_column("Backup ID")
    table.add_column("Time")
    table.add_column("Archives", justify="right")
    table.add_column("Size", justify="right")

    for snap in sorted(snapshots, key=lambda s: s.backup_time, reverse=True):
        archives = snap.archives()
        total = sum(f.size or 0 for f in archives)
        table.add_row(
            snap.backup_id,
            format_time(snap.backup_time),
            str(len(archives)),
            humanize.naturalsize(total, binary=True),
        )
    return table


def archives_to_table(by_target: dict[str, list[str]], snapshot: StoreSnapshot) -> Table:
    table = Table(title=f"{snapshot.backup_id} @ {format_time(snapshot.backup_time)}")
    table.add_column("Target")
    table.add_column("Archive")
    table.add_column("Size", justify="right")

    for target, archives in by_target.items():
        for archive in archives:
            f = snapshot.file(archive)
            size = humanize.naturalsize(f.size, binary=True) if f is not None and f.size is not None else "?"
            table.add_row(target, archive, size)
    return table


def display_volumes(console: Console, volumes: list[Volume], title: str | None = None) -> None:
    if not volumes:
        console.print("[dim]No volumes[/dim]")
        return
    console.print(volumes_to_table(volumes, title=title))
