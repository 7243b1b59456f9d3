# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/storage/__init__.py

"""
Adapters for the external collaborators: backend CLIs (zfs, lvm2), the
storage catalog (pvesh), the backup-store client, block copy, filesystem
helpers and the device waiter. All commands go through CommandExecutor.
"""

from .backup_store import BackupStoreClient, StoreFile, StoreSnapshot
from .catalog import StorageCatalog
from .devices import DeviceWaiter
from .fs import FsOps
from .lvm import LvmCli
from .zfs import ZfsCli
