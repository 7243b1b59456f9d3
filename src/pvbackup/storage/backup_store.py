# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/storage/backup_store.py

"""
Backup-store client adapter (proxmox-backup-client).

The repository password travels in PBS_PASSWORD as a secret environment
value, so it reaches the client but never a log line.
"""

from datetime import datetime, UTC

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from pvbackup.core import naming
from pvbackup.system.exceptions import ExecError
from pvbackup.system.execution import (
    CommandExecutor, CommandSpec, EnvValue, Pipeline, Stdio, cmd
)

PASSWORD_ENV = "PBS_PASSWORD"
BACKUP_TYPE = "host"


class StoreFile(BaseModel):
    model_config = ConfigDict(extra='ignore')

    filename: str
    size: int | None = None

    @property
    def archive(self) -> str:
        """Archive name as passed back to the client (index suffix removed)."""
        if self.filename.endswith(naming.INDEX_SUFFIX):
            return self.filename[:-len(naming.INDEX_SUFFIX)]
        return self.filename


class StoreSnapshot(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    backup_type: str = Field(default=BACKUP_TYPE, alias="backup-type")
    backup_id: str = Field(alias="backup-id")
    backup_time: int = Field(alias="backup-time")
    files: list[StoreFile] = Field(default_factory=list)

    @property
    def time_rfc3339(self) -> str:
        return datetime.fromtimestamp(self.backup_time, UTC).strftime("%Y-%m-%dT%H:%M:%SZ")

    @property
    def path(self) -> str:
        return f"{self.backup_type}/{self.backup_id}/{self.time_rfc3339}"

    def archives(self) -> list[StoreFile]:
        """Image archives only; index blobs, catalogs and logs are skipped."""
        return [f for f in self.files if naming.is_archive_name(f.filename)]

    def file(self, archive: str) -> StoreFile | None:
        for f in self.files:
            if f.archive == archive or f.filename == archive:
                return f
        return None


_snapshot_list = TypeAdapter(list[StoreSnapshot])


def parse_snapshots(out: str) -> list[StoreSnapshot]:
    try:
        return _snapshot_list.validate_json(out)
    except ValidationError as e:
        raise ExecError(f"failed to parse snapshots json: {e}") from e


class BackupStoreClient:
    """Operations against one backup-store client binary."""

    PROGRAM = "proxmox-backup-client"

    def __init__(self, executor: CommandExecutor, password: str | None = None) -> None:
        self.executor = executor
        self.password = password

    def _cmd(self, *args: str, **kwargs) -> CommandSpec:
        spec = cmd(self.PROGRAM, *args, **kwargs)
        if self.password is not None:
            spec.with_env(PASSWORD_ENV, EnvValue.hidden(self.password))
        return spec

    @staticmethod
    def _ns_args(ns: str | None) -> list[str]:
        return ["--ns", ns] if ns else []

    @staticmethod
    def _keyfile_args(keyfile) -> list[str]:
        return ["--keyfile", str(keyfile)] if keyfile else []

    def snapshots(self, repo: str, ns: str | None = None) -> list[StoreSnapshot]:
        out = self.executor.run_capture(self._cmd(
            "snapshots", "--repository", repo, "--output-format", "json", *self._ns_args(ns)))
        return parse_snapshots(out)

    def namespace_exists(self, repo: str, ns: str) -> bool:
        out = self.executor.run_capture(self._cmd("namespace", "list", "--repository", repo))
        return any(token == ns for token in out.split())

    def ensure_namespace(self, repo: str, ns: str) -> None:
        if self.namespace_exists(repo, ns):
            logger.debug(f"Namespace '{ns}' exists in {repo}")
            return
        logger.info(f"Creating namespace '{ns}' in {repo}")
        self.executor.run(self._cmd("namespace", "create", ns, "--repository", repo))
        if self.executor.dry_run:
            return
        if not self.namespace_exists(repo, ns):
            raise ExecError(f"namespace '{ns}' still missing in {repo} after create")

    def backup_cmd(self, repo: str, ns: str | None, backup_id: str, keyfile,
                   items: list[tuple[str, str]]) -> CommandSpec:
        pairs = [f"{archive}:{device}" for archive, device in items]
        return self._cmd(
            "backup", *pairs,
            "--backup-id", backup_id,
            *self._ns_args(ns),
            "--repository", repo,
            *self._keyfile_args(keyfile),
        )

    def backup(self, repo: str, ns: str | None, backup_id: str, keyfile,
               items: list[tuple[str, str]]) -> None:
        self.executor.run(self.backup_cmd(repo, ns, backup_id, keyfile, items))

    def restore_cmd(self, repo: str, ns: str | None, snapshot: StoreSnapshot, archive: str,
                    keyfile) -> CommandSpec:
        # "-" streams the archive to stdout
        return self._cmd(
            "restore", snapshot.path, archive, "-",
            *self._ns_args(ns),
            "--repository", repo,
            *self._keyfile_args(keyfile),
            stdout=Stdio.PIPE,
        )

    def restore_into(self, repo: str, ns: str | None, snapshot: StoreSnapshot, archive: str,
                     keyfile, sink: CommandSpec) -> None:
        self.executor.run(Pipeline.of(self.restore_cmd(repo, ns, snapshot, archive, keyfile), sink))

    def latest_backup_time(self, repo: str, ns: str | None, backup_id: str) -> int | None:
        times = [s.backup_time for s in self.snapshots(repo, ns) if s.backup_id == backup_id]
        return max(times) if times else None
