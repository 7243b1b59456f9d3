# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/providers/protocols.py

"""Provider protocols used by the orchestrators."""

from typing import Protocol

from pvbackup.core.cleanup import CleanupGuard
from pvbackup.core.volume import Volume


class VolumeProvider(Protocol):
    """Backup side: discover exportable volumes and materialize read-only clones"""

    name: str
    cleanup: CleanupGuard

    def discover(self) -> list[Volume]:
        """List accepted volumes; policy rejections are logged, not raised"""
        ...

    def prepare(self, volumes: list[Volume]) -> None:
        """Create snapshot and clone (or activation) for each volume, then wait for its device"""
        ...


class RestoreProvider(Protocol):
    """Restore side: one configured target that routed archives land in"""

    name: str

    def list_archives(self) -> list[str]:
        """Archives of the snapshot that route to this target"""
        ...

    def destination_key(self, archive: str) -> str:
        """Identity of the backend location the archive would be written to"""
        ...

    def collect_restore(self, archive: str | None, all_archives: bool) -> list[Volume]:
        """Resolve or provision destinations for the selected routed archives"""
        ...
