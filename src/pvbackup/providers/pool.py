# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/providers/pool.py

"""
Pool backend volume provider (zfs).

Discovery lists block volumes of every configured pool. A volume is
exported through a read-only clone of a fresh snapshot:

    tank/vm-1.raw@pvbackup-<token>       (snapshot)
    tank/vm-1.raw-pvbackup-<token>       (clone, volmode=dev)
    /dev/zvol/tank/vm-1.raw-pvbackup-<token>

Both objects are queued for destruction the moment they exist.
"""

from loguru import logger

from pvbackup.config.manager import Config
from pvbackup.core import naming
from pvbackup.core.cleanup import CleanupGuard, CleanupTask
from pvbackup.core.context import Toolbox
from pvbackup.core.volume import PoolSourceMeta, Volume
from pvbackup.storage.zfs import ZfsVolume, zvol_device
from pvbackup.system.exceptions import DiscoveryError, ExecError, NamingError, PrepareError

PROVIDER_TAG = "zfs"


class PoolVolumeProvider:
    name = PROVIDER_TAG

    def __init__(self, config: Config, tools: Toolbox, run_token: str) -> None:
        if config.zfs is None:
            raise DiscoveryError("zfs provider requested without a [zfs] section", provider=self.name)
        self.pools = list(config.zfs.pools)
        self.store_config = config.store
        self.suffix = config.backup.clone_suffix
        self.run_token = run_token
        self.zfs = tools.zfs
        self.catalog = tools.catalog
        self.devices = tools.devices
        self.cleanup = CleanupGuard(tools.executor, owner=self.name)

    def snapshot_name(self, dataset: str) -> str:
        return f"{dataset}@{self.suffix}-{self.run_token}"

    def clone_name(self, dataset: str) -> str:
        return naming.clone_name(dataset, self.suffix, self.run_token)

    def _reject_reason(self, volume: ZfsVolume) -> str | None:
        if volume.origin is not None:
            return f"is a clone of {volume.origin}"
        if volume.pool not in self.pools:
            return f"pool '{volume.pool}' not in allowed pools"
        allowed, reason = self.store_config.pv_allows(volume.leaf)
        if not allowed:
            return reason
        return None

    def discover(self) -> list[Volume]:
        volumes = []
        for pool in self.pools:
            try:
                listed = self.zfs.list_volumes(pool)
                guids = self.zfs.guids(pool)
            except ExecError as e:
                raise DiscoveryError(f"listing volumes of pool '{pool}' failed: {e}", provider=self.name) from e

            for candidate in listed:
                reason = self._reject_reason(candidate)
                if reason:
                    logger.trace(f"[zfs] skip {candidate.name}: {reason}")
                    continue
                volume = self._to_volume(pool, candidate, guids)
                if volume is not None:
                    volumes.append(volume)
        logger.debug(f"[zfs] discovered {len(volumes)} volume(s)")
        return volumes

    def _to_volume(self, pool: str, candidate: ZfsVolume, guids: dict[str, int]) -> Volume | None:
        guid = guids.get(candidate.name)
        if guid is None:
            raise DiscoveryError(f"no guid reported for {candidate.name}", provider=self.name)
        try:
            archive = naming.create(self.name, candidate.leaf, naming.content_id_from_int(guid))
        except NamingError as e:
            logger.warning(f"[zfs] skip {candidate.name}: {e}")
            return None

        parent = candidate.name.rsplit("/", 1)[0]
        try:
            storage_id = self.catalog.pool_storage(parent)
        except ExecError as e:
            raise DiscoveryError(f"storage catalog lookup failed: {e}", provider=self.name) from e

        return Volume(
            storage_id=storage_id,
            disk_name=candidate.leaf,
            archive_name=archive,
            device_path=zvol_device(self.clone_name(candidate.name)),
            metadata=PoolSourceMeta(pool=pool, dataset=candidate.name, leaf=candidate.leaf,
                                    run_token=self.run_token),
        )

    def prepare(self, volumes: list[Volume]) -> None:
        for volume in volumes:
            meta = volume.metadata
            if not isinstance(meta, PoolSourceMeta):
                raise PrepareError(f"volume {volume.disk_name} was not discovered by the zfs provider",
                                   object_name=volume.disk_name)
            snapshot = self.snapshot_name(meta.dataset)
            clone = self.clone_name(meta.dataset)

            # Step 1: point-in-time snapshot
            try:
                self.zfs.snapshot(snapshot)
            except ExecError as e:
                raise PrepareError(f"zfs snapshot {snapshot} failed: {e}", object_name=snapshot) from e
            self.cleanup.add(CleanupTask(f"destroy snapshot {snapshot}", self.zfs.destroy_cmd(snapshot)))

            # Step 2: read-only block-mode clone
            try:
                self.zfs.clone(snapshot, clone)
            except ExecError as e:
                raise PrepareError(f"zfs clone {snapshot} -> {clone} failed: {e}", object_name=clone) from e
            self.cleanup.add(CleanupTask(f"destroy clone {clone}", self.zfs.destroy_cmd(clone)))

            # Step 3: device node
            self.devices.wait(volume.device_path)
            logger.debug(f"[zfs] prepared {volume.device_path}")
