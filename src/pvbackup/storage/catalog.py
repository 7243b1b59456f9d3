# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/storage/catalog.py

"""
Storage catalog lookups (pvesh).

Maps a pool or volume group to the storage id registered for it, which is
what Volume.storage_id reports.
"""

from dataclasses import dataclass

import orjson
from loguru import logger

from pvbackup.system.exceptions import DiscoveryError
from pvbackup.system.execution import CommandExecutor, cmd


@dataclass(frozen=True)
class StorageEntry:
    storage_id: str
    kind: str
    pool: str | None = None
    vgname: str | None = None
    thinpool: str | None = None


def parse_storage_list(out: str) -> list[StorageEntry]:
    try:
        rows = orjson.loads(out)
    except orjson.JSONDecodeError as e:
        raise DiscoveryError(f"failed to parse pvesh storage json: {e}") from e
    if not isinstance(rows, list):
        raise DiscoveryError("pvesh storage listing is not a list")

    entries = []
    for row in rows:
        storage_id = row.get("storage")
        kind = row.get("type")
        if not storage_id or not kind:
            logger.trace(f"skipping storage entry without id/type: {row!r}")
            continue
        entries.append(StorageEntry(
            storage_id=storage_id,
            kind=kind,
            pool=row.get("pool"),
            vgname=row.get("vgname"),
            thinpool=row.get("thinpool"),
        ))
    return entries


class StorageCatalog:
    """Cached view of the registered storages."""

    def __init__(self, executor: CommandExecutor) -> None:
        self.executor = executor
        self._entries: list[StorageEntry] | None = None

    def entries(self) -> list[StorageEntry]:
        if self._entries is None:
            out = self.executor.run_capture(cmd("pvesh", "get", "/storage", "--output-format", "json"))
            self._entries = parse_storage_list(out)
        return self._entries

    def pool_storage(self, dataset: str) -> str:
        """Storage id for a pool dataset: exact match, else the closest registered parent."""
        candidates = [e for e in self.entries() if e.kind == "zfspool" and e.pool]
        for entry in candidates:
            if entry.pool == dataset:
                return entry.storage_id
        parents = [e for e in candidates if dataset.startswith(f"{e.pool}/")]
        if parents:
            return max(parents, key=lambda e: len(e.pool)).storage_id
        raise DiscoveryError(f"zfs storage with pool='{dataset}' not found", provider="zfs")

    def thin_storage(self, vg: str, thinpool: str | None = None) -> str:
        matches = [e for e in self.entries() if e.kind == "lvmthin" and e.vgname == vg]
        if thinpool is not None:
            exact = [e for e in matches if e.thinpool == thinpool]
            matches = exact or matches
        if not matches:
            raise DiscoveryError(f"LVM-thin storage with vgname='{vg}' not found", provider="lvmthin")
        return matches[0].storage_id
