# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/storage/blockcopy.py

from pvbackup.system.execution import CommandSpec, cmd


def dd_cmd(device: str, block_size: str = "4M") -> CommandSpec:
    """Write stdin onto a device without truncating it, bypassing the page cache."""
    return cmd("dd", f"of={device}", f"bs={block_size}", "conv=notrunc", "oflag=direct", "status=progress")
