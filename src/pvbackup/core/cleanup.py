# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/core/cleanup.py

"""
Cleanup guard for transient backend objects.

Each forward step that creates a snapshot or clone registers its reversal
command here as soon as it succeeds. When the guarded scope ends, on success
or failure, every task runs exactly once, most recent first, so clones are
removed before the snapshots they depend on. Failures are logged as
warnings and never raised.
"""

from dataclasses import dataclass

from loguru import logger

from pvbackup.system.exceptions import ExecError
from pvbackup.system.execution import CommandExecutor, Runnable


@dataclass
class CleanupTask:
    """A queued reversal command."""
    description: str
    command: Runnable


class CleanupGuard:
    """
    Ordered queue of best-effort undo actions.

    Usage as context manager:
        with CleanupGuard(executor, owner="zfs") as guard:
            executor.run(snapshot_cmd)
            guard.add(CleanupTask("destroy snapshot", destroy_cmd))
    """

    def __init__(self, executor: CommandExecutor, owner: str = ""):
        self.executor = executor
        self.owner = owner
        self._tasks: list[CleanupTask] = []

    def __enter__(self) -> "CleanupGuard":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.flush()

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def pending(self) -> list[CleanupTask]:
        return list(self._tasks)

    def add(self, task: CleanupTask) -> None:
        self._tasks.append(task)

    def flush(self) -> list[CleanupTask]:
        """Run and drain all queued tasks; returns the ones that failed."""
        failed = []
        prefix = f"[cleanup:{self.owner}]" if self.owner else "[cleanup]"
        while self._tasks:
            task = self._tasks.pop()
            try:
                self.executor.run(task.command)
                logger.debug(f"{prefix} {task.description}")
            except (ExecError, OSError) as e:
                logger.warning(f"{prefix} {task.description} failed: {e}")
                failed.append(task)
        return failed
