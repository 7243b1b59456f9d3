# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/storage/lvm.py

"""Thin backend command-line adapter (lvm2)."""

from dataclasses import dataclass

import orjson

from pvbackup.system.exceptions import DiscoveryError, ExecError
from pvbackup.system.execution import CommandExecutor, CommandSpec, cmd


@dataclass(frozen=True)
class LogicalVolume:
    name: str
    vg: str
    segtype: str
    uuid: str = ""
    size_bytes: int = 0
    origin: str = ""

    @property
    def fq_name(self) -> str:
        return f"{self.vg}/{self.name}"


def lv_device(vg: str, lv: str) -> str:
    return f"/dev/{vg}/{lv}"


def _parse_size(raw: str) -> int:
    # lvs --units b prints e.g. "4294967296B"
    text = raw.strip().rstrip("Bb")
    if not text:
        return 0
    return int(float(text))


def parse_lvs_report(out: str) -> list[LogicalVolume]:
    try:
        report = orjson.loads(out)
        rows = [row for section in report["report"] for row in section.get("lv", [])]
    except (orjson.JSONDecodeError, KeyError, TypeError) as e:
        raise DiscoveryError(f"failed to parse lvs json: {e}", provider="lvmthin") from e

    volumes = []
    for row in rows:
        try:
            volumes.append(LogicalVolume(
                name=row["lv_name"],
                vg=row["vg_name"],
                segtype=row.get("segtype", ""),
                uuid=row.get("lv_uuid", ""),
                size_bytes=_parse_size(row.get("lv_size", "")),
                origin=row.get("origin", ""),
            ))
        except (KeyError, ValueError) as e:
            raise DiscoveryError(f"malformed lvs row {row!r}: {e}", provider="lvmthin") from e
    return volumes


class LvmCli:
    """LVM operations issued through the execution engine"""

    def __init__(self, executor: CommandExecutor) -> None:
        self.executor = executor

    def list_volumes(self) -> list[LogicalVolume]:
        out = self.executor.run_capture(cmd(
            "lvs", "--reportformat", "json", "--units", "b",
            "-o", "lv_name,vg_name,segtype,lv_uuid,lv_size,origin"))
        return parse_lvs_report(out)

    def size_of(self, vg: str, lv: str) -> int | None:
        """Size in bytes of VG/LV, or None when it does not exist."""
        try:
            out = self.executor.run_capture(cmd(
                "lvs", "--noheadings", "--units", "b", "--nosuffix", "-o", "lv_size", f"{vg}/{lv}"))
        except ExecError:
            return None
        try:
            return _parse_size(out)
        except ValueError as e:
            raise ExecError(f"unexpected lv_size for {vg}/{lv}: {out.strip()!r}") from e

    @staticmethod
    def snapshot_cmd(vg: str, lv: str, snapshot: str) -> CommandSpec:
        return cmd("lvcreate", "-s", "-n", snapshot, f"{vg}/{lv}")

    @staticmethod
    def activate_cmd(fq_name: str) -> CommandSpec:
        # -K overrides the activation skip flag thin snapshots carry
        return cmd("lvchange", "-K", "-ay", fq_name)

    @staticmethod
    def remove_cmd(fq_name: str) -> CommandSpec:
        return cmd("lvremove", "-f", fq_name)

    @staticmethod
    def create_thin_cmd(vg: str, thinpool: str, name: str, size_bytes: int) -> CommandSpec:
        return cmd("lvcreate", "-T", f"{vg}/{thinpool}", "-n", name, "-V", f"{size_bytes}B")

    def snapshot(self, vg: str, lv: str, snapshot: str) -> None:
        self.executor.run(self.snapshot_cmd(vg, lv, snapshot))

    def activate(self, fq_name: str) -> None:
        self.executor.run(self.activate_cmd(fq_name))

    def create_thin(self, vg: str, thinpool: str, name: str, size_bytes: int) -> None:
        self.executor.run(self.create_thin_cmd(vg, thinpool, name, size_bytes))
