# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/system/exceptions.py

"""
pvbackup-specific exception classes.

Every fatal condition raised by the pipeline derives from PVBackupError so
that the CLI can report the message chain and exit non-zero. Recoverable
conditions (policy rejections, failed cleanup commands) are logged and
never raised.
"""


class PVBackupError(Exception):
    """Base exception for all pvbackup errors."""
    pass


class ConfigError(PVBackupError):
    """Raised when configuration loading or validation fails."""
    pass


class MissingBinaryError(PVBackupError):
    """Raised when required external programs are not on PATH."""

    def __init__(self, message: str, binaries: list[str] = None):
        self.binaries = binaries or []
        super().__init__(message)


# === COMMAND EXECUTION ===

class ExecError(PVBackupError):
    """Raised when an external command or pipeline fails."""

    def __init__(self, message: str, command: str = None, returncode: int = None,
                 stderr: str = None):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


# === BACKUP PIPELINE ===

class DiscoveryError(PVBackupError):
    """Raised when listing or parsing backend objects fails."""

    def __init__(self, message: str, provider: str = None):
        self.provider = provider
        super().__init__(message)


class NamingError(PVBackupError):
    """Raised for a malformed leaf name or archive filename."""

    def __init__(self, message: str, name: str = None):
        self.name = name
        super().__init__(message)


class CollisionError(PVBackupError):
    """Raised when two volumes share an archive name or destination path."""

    def __init__(self, message: str, key: str = None):
        self.key = key
        super().__init__(message)


class PrepareError(PVBackupError):
    """Raised when snapshot, clone, activation or device wait fails."""

    def __init__(self, message: str, object_name: str = None):
        self.object_name = object_name
        super().__init__(message)


# === RESTORE PIPELINE ===

class RoutingError(PVBackupError):
    """Raised when a restore item cannot be resolved to a destination."""

    def __init__(self, message: str, archive: str = None):
        self.archive = archive
        super().__init__(message)


class DestinationTooSmallError(RoutingError):
    """Raised when an existing destination is smaller than the archive."""

    def __init__(self, message: str, archive: str = None, device: str = None,
                 required: int = None, available: int = None):
        self.device = device
        self.required = required
        self.available = available
        super().__init__(message, archive=archive)


class RestorePointError(PVBackupError):
    """Raised when no backup-store snapshot matches the requested restore point."""
    pass


# === LOCKING ===

class LockError(PVBackupError):
    """Base exception for run lock errors."""
    pass


class LockConflictError(LockError):
    """Raised when the run lock is held by another process."""

    def __init__(self, message: str, lock_path: str = None, holder: dict = None):
        self.lock_path = lock_path
        self.holder = holder
        super().__init__(message)


def error_chain(error: BaseException) -> list[str]:
    """Return the messages of an exception and its explicit causes, outermost first."""
    messages = []
    current = error
    while current is not None:
        text = str(current) or current.__class__.__name__
        if text not in messages:
            messages.append(text)
        current = current.__cause__
    return messages
