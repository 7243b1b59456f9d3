# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/storage/fs.py

"""Filesystem helpers for file-backed restore destinations."""

from pathlib import Path

from pvbackup.system.execution import CommandExecutor, cmd


class FsOps:
    """Changes go through the executor so dry-run covers them; queries read directly."""

    def __init__(self, executor: CommandExecutor) -> None:
        self.executor = executor

    def ensure_dir(self, path: str) -> None:
        self.executor.run(cmd("mkdir", "-p", path))

    def create_sparse(self, path: str, size_bytes: int) -> None:
        self.executor.run(cmd("truncate", "-s", str(size_bytes), path))

    @staticmethod
    def size_of(path: str) -> int | None:
        target = Path(path)
        if not target.exists():
            return None
        return target.stat().st_size
