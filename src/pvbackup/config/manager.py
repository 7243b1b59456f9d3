# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/config/manager.py

"""
Configuration loading and validation.

The configuration is a single YAML file:

    store:
      repos: {nas: "backup@pbs@nas.local:store1"}
      default_repo: nas
      keyfile: enc.key
      password_file: pbs.token
      ns: pv
      pv_prefixes: ["vm-"]
      pv_exclude_re: "-test$"
    zfs:
      pools: [tank]
    lvmthin:
      vgs: [pve]
    restore:
      default_target: pool
      targets:
        pool: {type: zfs, root: tank/restore}
        thin: {type: lvmthin, vg: pve, thinpool: data}
      rules:
        - {provider: lvmthin, target: thin}

Relative paths are resolved against the directory holding the file.
"""

import os
import re
import socket
from functools import cached_property
from pathlib import Path

import yaml
from loguru import logger
from pydantic import (
    BaseModel, ConfigDict, Field, PrivateAttr, ValidationError,
    field_validator, model_validator
)

from pvbackup.config.targets import RestoreRule, RestoreTarget
from pvbackup.system.exceptions import ConfigError

CONFIG_ENV = "PVBACKUP_CONFIG"
DEFAULT_CONFIG_PATH = Path("/etc/pvbackup/config.yml")
REPO_NAME_RE = re.compile(r"^[A-Za-z0-9_-]{1,32}$")
REDACTED = "<redacted>"


def default_backup_id() -> str:
    return f"{socket.gethostname()}-pv"


def _dedupe(values: list[str], what: str) -> list[str]:
    seen = []
    for value in values:
        value = value.strip()
        if value and value not in seen:
            seen.append(value)
    if not seen:
        raise ValueError(f"{what} must not be empty")
    return seen


class StoreConfig(BaseModel):
    """Backup-store connection and backup policy."""
    model_config = ConfigDict(extra='forbid')

    repos: dict[str, str]
    default_repo: str | None = None
    keyfile: Path | None = None
    password_file: Path | None = None
    ns: str | None = None
    backup_id: str = Field(default_factory=default_backup_id)
    pv_prefixes: list[str] = Field(default_factory=list)
    pv_exclude_re: str | None = None

    _password: str | None = PrivateAttr(default=None)

    @model_validator(mode="after")
    def validate_store(self):
        if not self.repos:
            raise ValueError("store.repos must define at least one repository")
        for name, repo in self.repos.items():
            if not REPO_NAME_RE.match(name):
                raise ValueError(f"invalid repo name '{name}' (allowed: A-Z a-z 0-9 _ -, length 1..32)")
            if not repo.strip():
                raise ValueError(f"store.repos.{name} must not be empty")
        if self.default_repo is not None and self.default_repo not in self.repos:
            raise ValueError(f"store.default_repo '{self.default_repo}' is not defined in store.repos")
        if not self.backup_id.strip():
            raise ValueError("store.backup_id must not be empty")
        if self.ns is not None and not self.ns.strip():
            self.ns = None
        if self.pv_exclude_re is not None:
            try:
                re.compile(self.pv_exclude_re)
            except re.error as e:
                raise ValueError(f"store.pv_exclude_re is not a valid regex: {e}") from e
        return self

    @cached_property
    def exclude_pattern(self) -> re.Pattern | None:
        return re.compile(self.pv_exclude_re) if self.pv_exclude_re else None

    @property
    def password(self) -> str | None:
        return self._password

    def load_password(self) -> None:
        if self.password_file is None:
            return
        try:
            self._password = self.password_file.read_text(encoding="utf-8").rstrip("\r\n")
        except OSError as e:
            raise ConfigError(f"cannot read password file {self.password_file}: {e}") from e

    def repo(self, name: str | None = None) -> str:
        """Resolve a repository: explicit name, then default_repo, then the only one."""
        if name is not None:
            if name not in self.repos:
                raise ConfigError(f"unknown repo '{name}' (known: {', '.join(sorted(self.repos))})")
            return self.repos[name]
        if self.default_repo is not None:
            return self.repos[self.default_repo]
        if len(self.repos) == 1:
            return next(iter(self.repos.values()))
        raise ConfigError("several repos configured: pass one explicitly or set store.default_repo")

    def pv_allows(self, leaf: str) -> tuple[bool, str | None]:
        """Apply the naming policy; returns (accepted, rejection reason)."""
        if self.pv_prefixes and not any(leaf.startswith(p) for p in self.pv_prefixes):
            return False, "no configured prefix matches"
        if self.exclude_pattern is not None and self.exclude_pattern.search(leaf):
            return False, "matches pv_exclude_re"
        return True, None


class PoolSourceConfig(BaseModel):
    """Pools scanned for block volumes to back up."""
    model_config = ConfigDict(extra='forbid')

    pools: list[str]

    @field_validator("pools")
    @classmethod
    def check_pools(cls, value: list[str]) -> list[str]:
        return _dedupe(value, "zfs.pools")


class ThinSourceConfig(BaseModel):
    """Volume groups scanned for thin volumes to back up."""
    model_config = ConfigDict(extra='forbid')

    vgs: list[str]

    @field_validator("vgs")
    @classmethod
    def check_vgs(cls, value: list[str]) -> list[str]:
        return _dedupe(value, "lvmthin.vgs")


class RestoreConfig(BaseModel):
    """Restore destinations and routing rules."""
    model_config = ConfigDict(extra='forbid')

    targets: dict[str, RestoreTarget] = Field(default_factory=dict)
    rules: list[RestoreRule] = Field(default_factory=list)
    default_target: str | None = None

    @model_validator(mode="after")
    def validate_references(self):
        for rule in self.rules:
            if rule.target not in self.targets:
                raise ValueError(f"restore rule for provider '{rule.provider}' references unknown target '{rule.target}'")
        if self.default_target is not None and self.default_target not in self.targets:
            raise ValueError(f"restore.default_target '{self.default_target}' is not defined in restore.targets")
        return self


class BackupConfig(BaseModel):
    """Clone naming and device wait tuning."""
    model_config = ConfigDict(extra='forbid')

    clone_suffix: str = "pvbackup"
    device_timeout: float = Field(default=5.0, gt=0)
    device_poll_interval: float = Field(default=0.1, gt=0)

    @field_validator("clone_suffix")
    @classmethod
    def check_suffix(cls, value: str) -> str:
        if not re.match(r"^[A-Za-z0-9-]+$", value):
            raise ValueError("backup.clone_suffix may only contain letters, digits and '-'")
        return value


class LogConfig(BaseModel):
    model_config = ConfigDict(extra='forbid')

    file: Path | None = None


class Config(BaseModel):
    """Top-level pvbackup configuration."""
    model_config = ConfigDict(extra='forbid')

    store: StoreConfig
    zfs: PoolSourceConfig | None = None
    lvmthin: ThinSourceConfig | None = None
    restore: RestoreConfig = Field(default_factory=RestoreConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    log: LogConfig = Field(default_factory=LogConfig)
    binaries: dict[str, str] = Field(default_factory=dict)

    _source: Path | None = PrivateAttr(default=None)

    @property
    def source(self) -> Path | None:
        return self._source

    @classmethod
    def from_dict(cls, data: dict, base_dir: Path | None = None) -> "Config":
        try:
            config = cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(str(e)) from e
        if base_dir is not None:
            config._resolve_paths(base_dir)
        config.store.load_password()
        return config

    @classmethod
    def load(cls, config_path: Path) -> "Config":
        """Load and validate a YAML config file."""
        config_path = Path(config_path)
        try:
            with config_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"cannot read config {config_path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"config {config_path} must be a mapping")

        try:
            config = cls.from_dict(data, base_dir=config_path.parent)
        except ConfigError as e:
            raise ConfigError(f"{config_path}: {e}") from e
        config._source = config_path
        logger.debug(f"Loaded config from {config_path}")
        return config

    def _resolve_paths(self, base_dir: Path) -> None:
        def resolve(path: Path | None) -> Path | None:
            if path is None or path.is_absolute():
                return path
            return base_dir / path

        self.store.keyfile = resolve(self.store.keyfile)
        self.store.password_file = resolve(self.store.password_file)
        self.log.file = resolve(self.log.file)

    def redacted_dict(self) -> dict:
        """Effective configuration with secrets masked, for display."""
        data = self.model_dump(mode="json", exclude_none=False)
        data["store"]["password"] = REDACTED if self.store.password is not None else "<none>"
        return data

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.redacted_dict(), sort_keys=False, default_flow_style=False)


def find_config_path(explicit: Path | None = None) -> Path:
    """Resolve the config path: explicit, then $PVBACKUP_CONFIG, then /etc."""
    if explicit is not None:
        return Path(explicit)
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_config(explicit: Path | None = None) -> Config:
    return Config.load(find_config_path(explicit))
