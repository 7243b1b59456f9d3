# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/providers/thin.py

"""
Thin backend volume provider (lvm2 thin pools).

Thin snapshots are created with the activation-skip flag set, so each one
is activated with -K before its device node can appear under /dev/VG/.
"""

from loguru import logger

from pvbackup.config.manager import Config
from pvbackup.core import naming
from pvbackup.core.cleanup import CleanupGuard, CleanupTask
from pvbackup.core.context import Toolbox
from pvbackup.core.volume import ThinSourceMeta, Volume
from pvbackup.storage.lvm import LogicalVolume, lv_device
from pvbackup.system.exceptions import DiscoveryError, ExecError, NamingError, PrepareError

PROVIDER_TAG = "lvmthin"


class ThinVolumeProvider:
    name = PROVIDER_TAG

    def __init__(self, config: Config, tools: Toolbox, run_token: str) -> None:
        if config.lvmthin is None:
            raise DiscoveryError("lvmthin provider requested without a [lvmthin] section", provider=self.name)
        self.vgs = list(config.lvmthin.vgs)
        self.store_config = config.store
        self.suffix = config.backup.clone_suffix
        self.run_token = run_token
        self.lvm = tools.lvm
        self.catalog = tools.catalog
        self.devices = tools.devices
        self.cleanup = CleanupGuard(tools.executor, owner=self.name)

    def snapshot_name(self, lv: str) -> str:
        return naming.clone_name(lv, self.suffix, self.run_token)

    def _reject_reason(self, lv: LogicalVolume) -> str | None:
        if lv.segtype != "thin":
            return f"segment type '{lv.segtype}' is not thin"
        if lv.origin:
            return f"is a snapshot of {lv.origin}"
        if lv.vg not in self.vgs:
            return f"volume group '{lv.vg}' not in allowed vgs"
        allowed, reason = self.store_config.pv_allows(lv.name)
        if not allowed:
            return reason
        return None

    def discover(self) -> list[Volume]:
        try:
            listed = self.lvm.list_volumes()
        except ExecError as e:
            raise DiscoveryError(f"listing logical volumes failed: {e}", provider=self.name) from e

        volumes = []
        for candidate in listed:
            reason = self._reject_reason(candidate)
            if reason:
                logger.trace(f"[lvmthin] skip {candidate.fq_name}: {reason}")
                continue
            volume = self._to_volume(candidate)
            if volume is not None:
                volumes.append(volume)
        logger.debug(f"[lvmthin] discovered {len(volumes)} volume(s)")
        return volumes

    def _to_volume(self, lv: LogicalVolume) -> Volume | None:
        content_id = naming.content_id_from_text(lv.uuid)
        try:
            archive = naming.create(self.name, lv.name, content_id)
        except NamingError as e:
            logger.warning(f"[lvmthin] skip {lv.fq_name}: {e}")
            return None
        try:
            storage_id = self.catalog.thin_storage(lv.vg)
        except ExecError as e:
            raise DiscoveryError(f"storage catalog lookup failed: {e}", provider=self.name) from e

        return Volume(
            storage_id=storage_id,
            disk_name=lv.name,
            archive_name=archive,
            device_path=lv_device(lv.vg, self.snapshot_name(lv.name)),
            metadata=ThinSourceMeta(vg=lv.vg, lv=lv.name, run_token=self.run_token),
        )

    def prepare(self, volumes: list[Volume]) -> None:
        for volume in volumes:
            meta = volume.metadata
            if not isinstance(meta, ThinSourceMeta):
                raise PrepareError(f"volume {volume.disk_name} was not discovered by the lvmthin provider",
                                   object_name=volume.disk_name)
            snapshot = self.snapshot_name(meta.lv)
            fq_name = f"{meta.vg}/{snapshot}"

            try:
                self.lvm.snapshot(meta.vg, meta.lv, snapshot)
            except ExecError as e:
                raise PrepareError(f"lvcreate snapshot {fq_name} failed: {e}", object_name=fq_name) from e
            self.cleanup.add(CleanupTask(f"remove snapshot {fq_name}", self.lvm.remove_cmd(fq_name)))

            try:
                self.lvm.activate(fq_name)
            except ExecError as e:
                raise PrepareError(f"activating {fq_name} failed: {e}", object_name=fq_name) from e

            self.devices.wait(volume.device_path)
            logger.debug(f"[lvmthin] prepared {volume.device_path}")
