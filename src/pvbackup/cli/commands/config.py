# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/cli/commands/config.py

from rich.console import Console
from rich.syntax import Syntax

from pvbackup.config.manager import Config


def check(console: Console, config: Config) -> None:
    sources = []
    if config.zfs is not None:
        sources.append(f"zfs pools: {', '.join(config.zfs.pools)}")
    if config.lvmthin is not None:
        sources.append(f"lvmthin vgs: {', '.join(config.lvmthin.vgs)}")

    console.print(f"[green]✓[/green] Configuration OK: {config.source}")
    console.print(f"  repos: {', '.join(sorted(config.store.repos))}")
    console.print(f"  backup id: {config.store.backup_id}")
    for line in sources or ["no backup sources configured"]:
        console.print(f"  {line}")
    console.print(f"  restore targets: {', '.join(config.restore.targets) or 'none'}")


def show(console: Console, config: Config) -> None:
    console.print(Syntax(config.to_yaml(), "yaml"))
