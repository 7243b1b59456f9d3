# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/core/context.py

"""Per-run wiring: configuration, executor (with its dry-run flag) and adapters."""

from dataclasses import dataclass
from pathlib import Path

from pvbackup.config.manager import Config
from pvbackup.storage.backup_store import BackupStoreClient
from pvbackup.storage.catalog import StorageCatalog
from pvbackup.storage.devices import DeviceWaiter
from pvbackup.storage.fs import FsOps
from pvbackup.storage.lvm import LvmCli
from pvbackup.storage.zfs import ZfsCli
from pvbackup.system.execution import CommandExecutor


@dataclass
class Toolbox:
    executor: CommandExecutor
    zfs: ZfsCli
    lvm: LvmCli
    catalog: StorageCatalog
    store: BackupStoreClient
    fs: FsOps
    devices: DeviceWaiter

    @classmethod
    def build(cls, config: Config, executor: CommandExecutor) -> "Toolbox":
        return cls(
            executor=executor,
            zfs=ZfsCli(executor),
            lvm=LvmCli(executor),
            catalog=StorageCatalog(executor),
            store=BackupStoreClient(executor, password=config.store.password),
            fs=FsOps(executor),
            devices=DeviceWaiter(
                executor,
                timeout=config.backup.device_timeout,
                interval=config.backup.device_poll_interval,
            ),
        )


@dataclass
class AppContext:
    config: Config
    tools: Toolbox
    lock_dir: Path | None = None

    @property
    def executor(self) -> CommandExecutor:
        return self.tools.executor

    @property
    def dry_run(self) -> bool:
        return self.tools.executor.dry_run

    @classmethod
    def create(cls, config: Config, dry_run: bool = False, lock_dir: Path | None = None) -> "AppContext":
        executor = CommandExecutor(dry_run=dry_run, bin_overrides=config.binaries)
        return cls(config=config, tools=Toolbox.build(config, executor), lock_dir=lock_dir)
