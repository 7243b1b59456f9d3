# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/system/locking.py

"""
Process-wide advisory run lock.

A run holds an exclusive, non-blocking flock on a file under /var/lock (or
the system temp dir when /var/lock is not writable) for its whole duration.
Failing to acquire it is fatal; there is no waiting or queueing.
"""

import fcntl
import os
import re
import socket
import tempfile
from datetime import datetime, UTC
from pathlib import Path

import loguru
import orjson

from pvbackup.system.exceptions import LockConflictError, LockError

logger = loguru.logger

DEFAULT_LOCK_DIR = Path("/var/lock")


def sanitize_lock_name(name: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9_-]", "_", name)
    return f"pvbackup_{cleaned}"


def default_lock_dir() -> Path:
    if DEFAULT_LOCK_DIR.is_dir() and os.access(DEFAULT_LOCK_DIR, os.W_OK):
        return DEFAULT_LOCK_DIR
    return Path(tempfile.gettempdir())


class LockInfo:
    """Information about the process holding a lock."""

    def __init__(self, operation: str, pid: int, hostname: str, timestamp: str):
        self.operation = operation
        self.pid = pid
        self.hostname = hostname
        self.timestamp = timestamp

    @classmethod
    def current(cls, operation: str) -> "LockInfo":
        return cls(
            operation=operation,
            pid=os.getpid(),
            hostname=socket.gethostname(),
            timestamp=datetime.now(UTC).isoformat(),
        )

    def to_dict(self) -> dict[str, str | int]:
        return {
            "operation": self.operation,
            "pid": self.pid,
            "hostname": self.hostname,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, str | int]) -> "LockInfo":
        return cls(
            operation=str(data["operation"]),
            pid=int(data["pid"]),
            hostname=str(data["hostname"]),
            timestamp=str(data["timestamp"]),
        )


class RunLock:
    """
    Exclusive run lock.

    Usage as context manager:
        with RunLock("run", operation="backup"):
            # discover, prepare, export
            pass
    """

    def __init__(self, name: str, operation: str = "run", lock_dir: Path | None = None):
        self.name = name
        self.operation = operation
        self.lock_dir = Path(lock_dir) if lock_dir else default_lock_dir()
        self.path = self.lock_dir / f"{sanitize_lock_name(name)}.lock"
        self._fd: int | None = None

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        if self._fd is not None:
            return
        try:
            self.lock_dir.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            raise LockError(f"cannot open lock file {self.path}: {e}") from e

        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            holder = self._read_holder(fd)
            os.close(fd)
            detail = ""
            if holder:
                detail = f" (pid {holder.pid} on {holder.hostname}, {holder.operation} since {holder.timestamp})"
            raise LockConflictError(
                f"another run holds lock: {self.path}{detail}",
                lock_path=str(self.path),
                holder=holder.to_dict() if holder else None,
            )
        except OSError as e:
            os.close(fd)
            raise LockError(f"cannot lock {self.path}: {e}") from e

        os.ftruncate(fd, 0)
        os.write(fd, orjson.dumps(LockInfo.current(self.operation).to_dict()))
        self._fd = fd
        logger.debug(f"Acquired run lock {self.path}")

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            os.ftruncate(self._fd, 0)
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
        logger.debug(f"Released run lock {self.path}")

    @staticmethod
    def _read_holder(fd: int) -> LockInfo | None:
        try:
            raw = os.pread(fd, 4096, 0)
            if not raw:
                return None
            return LockInfo.from_dict(orjson.loads(raw))
        except (OSError, orjson.JSONDecodeError, KeyError, ValueError):
            return None


def try_acquire(name: str, operation: str = "run", lock_dir: Path | None = None) -> RunLock:
    """Acquire the named lock or raise LockConflictError immediately."""
    lock = RunLock(name, operation=operation, lock_dir=lock_dir)
    lock.acquire()
    return lock
