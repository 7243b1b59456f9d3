# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/storage/binaries.py

import shutil

from pvbackup.system.exceptions import MissingBinaryError
from pvbackup.system.execution import CommandExecutor

COMMON = ["proxmox-backup-client", "pvesh"]
BACKUP_POOL = ["zfs", "udevadm"]
BACKUP_THIN = ["lvs", "lvcreate", "lvchange", "lvremove", "udevadm"]
RESTORE = ["dd"]
RESTORE_POOL = ["zfs", "mkdir", "truncate", "udevadm"]
RESTORE_THIN = ["lvs", "lvcreate", "lvchange", "udevadm"]


def missing_binaries(names: list[str], executor: CommandExecutor) -> list[str]:
    missing = []
    for name in names:
        if name not in missing and shutil.which(executor.resolve(name)) is None:
            missing.append(name)
    return missing


def ensure_binaries(names: list[str], executor: CommandExecutor) -> None:
    missing = missing_binaries(names, executor)
    if missing:
        raise MissingBinaryError(f"required programs not found on PATH: {', '.join(missing)}",
                                 binaries=missing)
