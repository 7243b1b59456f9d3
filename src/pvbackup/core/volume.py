# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/core/volume.py

"""
Volume data model shared by providers and orchestrators.

Provider metadata is a closed union of frozen dataclasses. Only the
provider that produced a volume looks inside it; orchestrators treat it
as opaque.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Union

from pvbackup.system.exceptions import CollisionError


@dataclass(frozen=True)
class PoolSourceMeta:
    """Backup-side metadata for a pool block volume."""
    pool: str
    dataset: str
    leaf: str
    run_token: str


@dataclass(frozen=True)
class ThinSourceMeta:
    """Backup-side metadata for a thin logical volume."""
    vg: str
    lv: str
    run_token: str


@dataclass(frozen=True)
class RestoreMeta:
    """Restore-side metadata: which archive streams into the volume."""
    archive: str
    target: str
    size_bytes: int
    provisioned: bool


ProviderMetadata = Union[PoolSourceMeta, ThinSourceMeta, RestoreMeta]


@dataclass(frozen=True)
class Volume:
    storage_id: str
    disk_name: str
    archive_name: str
    device_path: str
    metadata: ProviderMetadata


def _duplicates(keys: Iterable[str]) -> list[str]:
    counts = Counter(keys)
    return sorted(key for key, count in counts.items() if count > 1)


def ensure_unique_archive_names(volumes: list[Volume]) -> None:
    dupes = _duplicates(v.archive_name for v in volumes)
    if dupes:
        raise CollisionError(f"archive name collision: '{dupes[0]}'", key=dupes[0])


def ensure_unique_targets(volumes: list[Volume]) -> None:
    dupes = _duplicates(v.device_path for v in volumes)
    if dupes:
        raise CollisionError(f"target collision: '{dupes[0]}'", key=dupes[0])
