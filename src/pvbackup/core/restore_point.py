# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/core/restore_point.py

"""Restore point parsing and snapshot selection."""

from dataclasses import dataclass
from datetime import datetime, UTC

from pvbackup.storage.backup_store import StoreSnapshot
from pvbackup.system.exceptions import RestorePointError

LATEST = "latest"


@dataclass(frozen=True)
class RestorePoint:
    """Either the latest snapshot or the latest one at or before `at`."""
    at: int | None = None

    @property
    def is_latest(self) -> bool:
        return self.at is None

    def __str__(self) -> str:
        if self.at is None:
            return LATEST
        return datetime.fromtimestamp(self.at, UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_restore_point(text: str | None) -> RestorePoint:
    """Accepts 'latest', unix seconds, or an RFC3339 timestamp."""
    if text is None or text.strip().lower() in ("", LATEST):
        return RestorePoint()
    text = text.strip()
    if text.isdigit():
        return RestorePoint(int(text))
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00").replace("z", "+00:00"))
    except ValueError as e:
        raise RestorePointError(f"invalid restore point '{text}': expected 'latest', unix seconds or RFC3339") from e
    if parsed.tzinfo is None:
        raise RestorePointError(f"restore point '{text}' needs a timezone offset")
    return RestorePoint(int(parsed.timestamp()))


def pick_snapshot(snapshots: list[StoreSnapshot], backup_id: str, point: RestorePoint) -> StoreSnapshot:
    mine = [s for s in snapshots if s.backup_id == backup_id]
    if not mine:
        raise RestorePointError(f"no snapshots found for backup-id '{backup_id}'")
    if point.at is not None:
        mine = [s for s in mine if s.backup_time <= point.at]
        if not mine:
            raise RestorePointError(
                f"no matching snapshot found before given time {point} for backup-id '{backup_id}'")
    return max(mine, key=lambda s: s.backup_time)
