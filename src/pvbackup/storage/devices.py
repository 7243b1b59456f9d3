# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/storage/devices.py

"""
Bounded wait for block device nodes.

Freshly created clones and snapshots show up under /dev asynchronously. The
waiter polls for the node, asking udev to rescan block devices between
attempts, and gives up after a fixed number of poll cycles.
"""

import time
from pathlib import Path

from loguru import logger

from pvbackup.system.exceptions import PrepareError
from pvbackup.system.execution import CommandExecutor, cmd

DEFAULT_TIMEOUT = 5.0
DEFAULT_INTERVAL = 0.1
ANNOUNCE_AFTER = 1.0


class DeviceWaiter:
    def __init__(self, executor: CommandExecutor, timeout: float = DEFAULT_TIMEOUT,
                 interval: float = DEFAULT_INTERVAL) -> None:
        self.executor = executor
        self.timeout = timeout
        self.interval = interval

    @property
    def cycles(self) -> int:
        return max(1, round(self.timeout / self.interval))

    def rescan(self) -> None:
        # Failures are harmless: the next existence check decides
        self.executor.try_run(cmd("udevadm", "trigger", "--subsystem-match=block", "--action=add"))
        self.executor.try_run(cmd("udevadm", "settle"))

    def wait(self, device: str) -> None:
        if self.executor.dry_run:
            logger.info(f"[dry-run] would wait for device {device}")
            return

        node = Path(device)
        started = time.monotonic()
        announced = False
        for _ in range(self.cycles):
            if node.exists():
                return
            if not announced and time.monotonic() - started >= ANNOUNCE_AFTER:
                logger.info(f"Waiting for device {device} to appear")
                announced = True
            self.rescan()
            time.sleep(self.interval)

        if node.exists():
            return
        raise PrepareError(f"device node did not appear within {self.timeout}s: {device}",
                           object_name=device)
