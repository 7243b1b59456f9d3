# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/providers/pool_restore.py

"""
Pool backend restore target.

Each archive lands in ROOT/<leaf>:
- an existing block volume is written in place
- an existing mounted filesystem dataset receives a file named <leaf>
  (created sparse when missing)
- otherwise a block volume sized to the archive is created
"""

from loguru import logger

from pvbackup.config.targets import PoolTarget
from pvbackup.core import naming
from pvbackup.core.context import Toolbox
from pvbackup.core.router import RestoreRouter
from pvbackup.core.volume import RestoreMeta, Volume
from pvbackup.providers.restore_base import RoutedRestoreProvider
from pvbackup.storage.backup_store import StoreSnapshot
from pvbackup.storage.zfs import zvol_device
from pvbackup.system.exceptions import ExecError, RoutingError


class PoolRestoreProvider(RoutedRestoreProvider):
    def __init__(self, name: str, target: PoolTarget, tools: Toolbox, router: RestoreRouter,
                 snapshot: StoreSnapshot | None) -> None:
        super().__init__(name, router, snapshot)
        self.root = target.root.rstrip("/")
        self.zfs = tools.zfs
        self.fs = tools.fs
        self.catalog = tools.catalog
        self.devices = tools.devices
        self._storage_id: str | None = None

    @property
    def storage_id(self) -> str:
        if self._storage_id is None:
            self._storage_id = self.catalog.pool_storage(self.root)
        return self._storage_id

    def destination_key(self, archive: str) -> str:
        return f"zfs:{self.root}/{naming.parse(archive).disk_name}"

    def _resolve(self, archive: str) -> Volume:
        leaf = naming.parse(archive).disk_name
        dataset = f"{self.root}/{leaf}"
        try:
            device, provisioned = self._destination(archive, leaf, dataset)
        except ExecError as e:
            raise RoutingError(f"resolving destination for {archive} failed: {e}", archive=archive) from e

        logger.debug(f"[{self.name}] {archive} -> {device}{' (new)' if provisioned else ''}")
        return Volume(
            storage_id=self.storage_id,
            disk_name=leaf,
            archive_name=archive,
            device_path=device,
            metadata=RestoreMeta(archive=archive, target=self.name,
                                 size_bytes=self.known_size(archive), provisioned=provisioned),
        )

    def _destination(self, archive: str, leaf: str, dataset: str) -> tuple[str, bool]:
        if not self.zfs.exists(dataset):
            size = self.required_size(archive)
            self.zfs.create_volume(dataset, size)
            device = zvol_device(dataset)
            self.devices.wait(device)
            return device, True

        info = self.zfs.dataset_info(dataset)
        if info.kind == "volume":
            device = zvol_device(dataset)
            self.check_fits(archive, device, self.zfs.volsize(dataset))
            return device, False

        if info.mountpoint is None:
            raise RoutingError(f"dataset {dataset} is neither a volume nor a mounted filesystem",
                               archive=archive)

        path = f"{info.mountpoint.rstrip('/')}/{leaf}"
        existing = self.fs.size_of(path)
        if existing is not None:
            self.check_fits(archive, path, existing)
            return path, False

        size = self.required_size(archive)
        self.fs.ensure_dir(info.mountpoint)
        self.fs.create_sparse(path, size)
        return path, True
