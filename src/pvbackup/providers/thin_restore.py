# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/providers/thin_restore.py

"""Thin backend restore target: one thin LV per leaf in VG, carved from THINPOOL."""

from loguru import logger

from pvbackup.config.targets import ThinTarget
from pvbackup.core import naming
from pvbackup.core.context import Toolbox
from pvbackup.core.router import RestoreRouter
from pvbackup.core.volume import RestoreMeta, Volume
from pvbackup.providers.restore_base import RoutedRestoreProvider
from pvbackup.storage.backup_store import StoreSnapshot
from pvbackup.storage.lvm import lv_device
from pvbackup.system.exceptions import ExecError, RoutingError


class ThinRestoreProvider(RoutedRestoreProvider):
    def __init__(self, name: str, target: ThinTarget, tools: Toolbox, router: RestoreRouter,
                 snapshot: StoreSnapshot | None) -> None:
        super().__init__(name, router, snapshot)
        self.vg = target.vg
        self.thinpool = target.thinpool
        self.lvm = tools.lvm
        self.catalog = tools.catalog
        self.devices = tools.devices
        self._storage_id: str | None = None

    @property
    def storage_id(self) -> str:
        if self._storage_id is None:
            self._storage_id = self.catalog.thin_storage(self.vg, self.thinpool)
        return self._storage_id

    def destination_key(self, archive: str) -> str:
        return f"lvmthin:{self.vg}/{naming.parse(archive).disk_name}"

    def _resolve(self, archive: str) -> Volume:
        leaf = naming.parse(archive).disk_name
        device = lv_device(self.vg, leaf)
        fq_name = f"{self.vg}/{leaf}"
        try:
            existing = self.lvm.size_of(self.vg, leaf)
            if existing is None:
                size = self.required_size(archive)
                self.lvm.create_thin(self.vg, self.thinpool, leaf, size)
                provisioned = True
            else:
                self.check_fits(archive, device, existing)
                provisioned = False
            self.lvm.activate(fq_name)
        except ExecError as e:
            raise RoutingError(f"resolving destination for {archive} failed: {e}", archive=archive) from e
        self.devices.wait(device)

        logger.debug(f"[{self.name}] {archive} -> {device}{' (new)' if provisioned else ''}")
        return Volume(
            storage_id=self.storage_id,
            disk_name=leaf,
            archive_name=archive,
            device_path=device,
            metadata=RestoreMeta(archive=archive, target=self.name,
                                 size_bytes=self.known_size(archive), provisioned=provisioned),
        )
