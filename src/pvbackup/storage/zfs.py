# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/storage/zfs.py

"""Pool backend command-line adapter (zfs)."""

from dataclasses import dataclass

from pvbackup.system.exceptions import DiscoveryError, ExecError
from pvbackup.system.execution import CommandExecutor, CommandSpec, cmd

NOT_MOUNTED = {"-", "none", "legacy", ""}


@dataclass(frozen=True)
class ZfsVolume:
    name: str
    origin: str | None

    @property
    def leaf(self) -> str:
        return self.name.rsplit("/", 1)[-1]

    @property
    def pool(self) -> str:
        return self.name.split("/", 1)[0]


@dataclass(frozen=True)
class DatasetInfo:
    kind: str
    mountpoint: str | None


def zvol_device(dataset: str) -> str:
    return f"/dev/zvol/{dataset}"


class ZfsCli:
    """ZFS operations issued through the execution engine"""

    def __init__(self, executor: CommandExecutor) -> None:
        self.executor = executor

    # --- queries (executed in dry-run too) ---

    def list_volumes(self, pool: str) -> list[ZfsVolume]:
        out = self.executor.run_capture(
            cmd("zfs", "list", "-H", "-t", "volume", "-o", "name,origin", "-r", pool))
        volumes = []
        for line in out.splitlines():
            if not line.strip():
                continue
            fields = line.split("\t")
            if len(fields) != 2:
                raise DiscoveryError(f"unexpected 'zfs list' line: {line!r}", provider="zfs")
            name, origin = fields[0].strip(), fields[1].strip()
            volumes.append(ZfsVolume(name, None if origin in ("-", "") else origin))
        return volumes

    def guids(self, pool: str) -> dict[str, int]:
        out = self.executor.run_capture(
            cmd("zfs", "get", "-H", "-o", "name,value", "guid", "-r", pool))
        guids = {}
        for line in out.splitlines():
            fields = line.split("\t")
            if len(fields) != 2:
                continue
            try:
                guids[fields[0].strip()] = int(fields[1].strip())
            except ValueError as e:
                raise DiscoveryError(f"invalid guid for {fields[0]!r}: {fields[1]!r}", provider="zfs") from e
        return guids

    def exists(self, dataset: str) -> bool:
        try:
            self.executor.run_capture(cmd("zfs", "list", "-H", "-o", "name", dataset))
        except ExecError:
            return False
        return True

    def dataset_info(self, dataset: str) -> DatasetInfo:
        out = self.executor.run_capture(
            cmd("zfs", "get", "-H", "-o", "value", "type,mountpoint", dataset))
        lines = [line.strip() for line in out.splitlines()]
        if len(lines) < 2:
            raise ExecError(f"unexpected 'zfs get type,mountpoint' output for {dataset}: {out!r}")
        mountpoint = None if lines[1] in NOT_MOUNTED else lines[1]
        return DatasetInfo(kind=lines[0], mountpoint=mountpoint)

    def volsize(self, dataset: str) -> int:
        out = self.executor.run_capture(cmd("zfs", "get", "-Hp", "-o", "value", "volsize", dataset))
        try:
            return int(out.strip())
        except ValueError as e:
            raise ExecError(f"unexpected volsize for {dataset}: {out.strip()!r}") from e

    # --- state-changing commands ---

    @staticmethod
    def snapshot_cmd(snapshot: str) -> CommandSpec:
        return cmd("zfs", "snapshot", snapshot)

    @staticmethod
    def clone_cmd(snapshot: str, clone: str) -> CommandSpec:
        return cmd("zfs", "clone", "-o", "readonly=on", "-o", "volmode=dev", snapshot, clone)

    @staticmethod
    def destroy_cmd(target: str) -> CommandSpec:
        return cmd("zfs", "destroy", "-r", target)

    @staticmethod
    def create_volume_cmd(dataset: str, size_bytes: int) -> CommandSpec:
        return cmd("zfs", "create", "-V", str(size_bytes), dataset)

    def snapshot(self, snapshot: str) -> None:
        self.executor.run(self.snapshot_cmd(snapshot))

    def clone(self, snapshot: str, clone: str) -> None:
        self.executor.run(self.clone_cmd(snapshot, clone))

    def create_volume(self, dataset: str, size_bytes: int) -> None:
        self.executor.run(self.create_volume_cmd(dataset, size_bytes))
