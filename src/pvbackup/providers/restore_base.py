# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/providers/restore_base.py

"""Routing and selection shared by the restore providers."""

from abc import ABC, abstractmethod

from pvbackup.core import naming
from pvbackup.core.router import RestoreRouter
from pvbackup.core.volume import Volume
from pvbackup.storage.backup_store import StoreFile, StoreSnapshot
from pvbackup.system.exceptions import DestinationTooSmallError, RoutingError


class RoutedRestoreProvider(ABC):
    """
    Base for restore targets.

    Subclasses implement _resolve(), which turns one routed archive into a
    destination Volume, provisioning it when it does not exist yet, and
    destination_key(), which names that destination without touching it.
    """

    def __init__(self, name: str, router: RestoreRouter, snapshot: StoreSnapshot | None) -> None:
        self.name = name
        self.router = router
        self.snapshot = snapshot

    def _routed_files(self) -> list[StoreFile]:
        if self.snapshot is None:
            return []
        # archives() only yields names that parse
        return [f for f in self.snapshot.archives()
                if self.router.pick_target(naming.parse(f.filename).provider, f.filename) == self.name]

    def list_archives(self) -> list[str]:
        return [f.archive for f in self._routed_files()]

    def collect_restore(self, archive: str | None, all_archives: bool) -> list[Volume]:
        if all_archives:
            selected = self.list_archives()
        elif archive is not None:
            if archive not in self.list_archives():
                return []
            selected = [archive]
        else:
            return []
        return [self._resolve(name) for name in selected]

    def required_size(self, archive: str) -> int:
        """Byte size recorded for the archive; needed whenever a destination is provisioned."""
        if self.snapshot is None:
            raise RoutingError(f"no snapshot context for archive {archive}", archive=archive)
        f = self.snapshot.file(archive)
        if f is None:
            raise RoutingError(f"archive {archive} not found in snapshot {self.snapshot.path}", archive=archive)
        if f.size is None:
            raise RoutingError(f"snapshot does not record a size for archive {archive}", archive=archive)
        return f.size

    def known_size(self, archive: str) -> int:
        f = self.snapshot.file(archive) if self.snapshot else None
        return f.size if f is not None and f.size is not None else 0

    def check_fits(self, archive: str, device: str, available: int) -> None:
        """Existing destinations are used as-is only when they can hold the archive."""
        if self.snapshot is None:
            return
        f = self.snapshot.file(archive)
        if f is None or f.size is None:
            return
        if available < f.size:
            raise DestinationTooSmallError(
                f"destination {device} ({available} bytes) is smaller than archive {archive} ({f.size} bytes)",
                archive=archive, device=device, required=f.size, available=available,
            )

    @abstractmethod
    def destination_key(self, archive: str) -> str:
        """Backend location the archive would land in; equal keys mean the same destination."""

    @abstractmethod
    def _resolve(self, archive: str) -> Volume:
        ...
