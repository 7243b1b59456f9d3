# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/core/operations.py

"""
Backup and restore orchestration.

Backup: discover on every provider, reject duplicate archive names, then
prepare clones and export them in one backup-store call. Cleanup guards
are entered before discovery so every clone is removed on every exit path.

Restore: pick a snapshot, route its archives to the configured targets,
resolve or provision destinations, reject duplicate destinations, then
stream each archive into its device.
"""

from contextlib import ExitStack
from dataclasses import dataclass, field

from loguru import logger

from pvbackup.core import naming
from pvbackup.core.context import AppContext
from pvbackup.core.restore_point import RestorePoint, pick_snapshot
from pvbackup.core.volume import Volume, ensure_unique_archive_names, ensure_unique_targets
from pvbackup.providers.protocols import RestoreProvider, VolumeProvider
from pvbackup.providers.registry import build_backup_providers, build_restore_providers
from pvbackup.storage.backup_store import StoreSnapshot
from pvbackup.storage.blockcopy import dd_cmd
from pvbackup.system.display import format_time
from pvbackup.system.exceptions import (
    CollisionError, ConfigError, DiscoveryError, PVBackupError, RestorePointError, RoutingError
)
from pvbackup.system.locking import RunLock

# Backup and restore share one lock: both touch the same backend namespace
RUN_LOCK = "run"


@dataclass
class BackupReport:
    repo: str
    volumes: list[Volume] = field(default_factory=list)
    backup_time: int | None = None
    dry_run: bool = False


@dataclass
class RestoreReport:
    repo: str
    snapshot: StoreSnapshot
    volumes: list[Volume] = field(default_factory=list)
    dry_run: bool = False


# ---- Backup ----

def _discover(provider: VolumeProvider) -> list[Volume]:
    try:
        return provider.discover()
    except DiscoveryError:
        raise
    except PVBackupError as e:
        raise DiscoveryError(f"discovery on provider '{provider.name}' failed: {e}", provider=provider.name) from e


def _log_plan(volumes: list[Volume], verb: str) -> None:
    for volume in volumes:
        logger.info(f"{verb} {volume.storage_id}:{volume.disk_name} as {volume.archive_name} via {volume.device_path}")


def list_backup_archives(ctx: AppContext) -> list[Volume]:
    """Discovery only; nothing is created. Rejects the same collisions a backup would."""
    with RunLock(RUN_LOCK, operation="list-archives", lock_dir=ctx.lock_dir):
        volumes = []
        for provider in build_backup_providers(ctx):
            volumes.extend(_discover(provider))
        ensure_unique_archive_names(volumes)
    return volumes


def run_backup(ctx: AppContext, target: str | None = None, run_token: str | None = None) -> BackupReport:
    store_config = ctx.config.store
    store = ctx.tools.store

    with RunLock(RUN_LOCK, operation="backup", lock_dir=ctx.lock_dir):
        repo = store_config.repo(target)
        providers = build_backup_providers(ctx, run_token)
        if not providers:
            raise ConfigError("no backup sources configured: add a 'zfs' or 'lvmthin' section")
        if ctx.dry_run:
            logger.info("Dry-run: no state-changing command will be executed")

        report = BackupReport(repo=repo, dry_run=ctx.dry_run)
        with ExitStack() as stack:
            for provider in providers:
                stack.enter_context(provider.cleanup)

            # Step 1: discover everything before touching anything
            discovered = [(provider, _discover(provider)) for provider in providers]
            volumes = [v for _, found in discovered for v in found]
            if not volumes:
                logger.info("Nothing to back up: no volume passed discovery")
                return report
            ensure_unique_archive_names(volumes)
            report.volumes = volumes
            _log_plan(volumes, "Backing up")

            if store_config.ns:
                store.ensure_namespace(repo, store_config.ns)

            # Step 2: snapshots and clones, one provider at a time
            for provider, found in discovered:
                if found:
                    provider.prepare(found)

            # Step 3: single export of every archive
            store.backup(repo, store_config.ns, store_config.backup_id, store_config.keyfile,
                         [(v.archive_name, v.device_path) for v in volumes])

    if not ctx.dry_run:
        report.backup_time = _latest_backup_time(ctx, repo)
    return report


def _latest_backup_time(ctx: AppContext, repo: str) -> int | None:
    store_config = ctx.config.store
    try:
        latest = ctx.tools.store.latest_backup_time(repo, store_config.ns, store_config.backup_id)
    except PVBackupError as e:
        logger.warning(f"Backup finished, but looking up its snapshot failed: {e}")
        return None
    if latest is None:
        logger.info("Backup finished, but latest snapshot time is not visible yet.")
    else:
        logger.info(f"Backup finished: snapshot {store_config.backup_id} at {format_time(latest)}")
    return latest


# ---- Restore ----

def list_snapshots(ctx: AppContext, source: str | None = None) -> list[StoreSnapshot]:
    store_config = ctx.config.store
    repo = store_config.repo(source)
    return ctx.tools.store.snapshots(repo, store_config.ns)


def resolve_snapshot(ctx: AppContext, source: str | None, point: RestorePoint) -> tuple[str, StoreSnapshot]:
    store_config = ctx.config.store
    repo = store_config.repo(source)
    snapshots = ctx.tools.store.snapshots(repo, store_config.ns)
    if not snapshots:
        raise RestorePointError(f"no snapshots found in repo {repo}")
    snapshot = pick_snapshot(snapshots, store_config.backup_id, point)
    logger.debug(f"Using snapshot {snapshot.path}")
    return repo, snapshot


def list_restore_archives(ctx: AppContext, source: str | None = None,
                          point: RestorePoint = RestorePoint()) -> tuple[StoreSnapshot, dict[str, list[str]]]:
    _, snapshot = resolve_snapshot(ctx, source, point)
    return snapshot, {p.name: p.list_archives() for p in build_restore_providers(ctx, snapshot)}


def select_archives(available: list[str], requested: list[str], all_archives: bool) -> list[str]:
    """Exact-match the requested names against what the targets offer."""
    if all_archives:
        return list(dict.fromkeys(available))
    selected = []
    for name in requested:
        if name.endswith(naming.INDEX_SUFFIX):
            name = name[:-len(naming.INDEX_SUFFIX)]
        if name not in available:
            raise RoutingError(f"archive not available from providers: {name}", archive=name)
        if name not in selected:
            selected.append(name)
    return selected


def _check_destination_collisions(providers: list[RestoreProvider], selected: list[str]) -> None:
    # Distinct targets may share a root; keys are backend locations
    seen: dict[str, str] = {}
    for provider in providers:
        routed = set(provider.list_archives())
        for archive in selected:
            if archive not in routed:
                continue
            key = provider.destination_key(archive)
            if key in seen:
                raise CollisionError(f"target collision: '{key}' ({seen[key]}, {archive})", key=key)
            seen[key] = archive


def run_restore(ctx: AppContext, source: str | None = None, point: RestorePoint = RestorePoint(),
                archives: list[str] | None = None, all_archives: bool = False) -> RestoreReport:
    store_config = ctx.config.store

    with RunLock(RUN_LOCK, operation="restore", lock_dir=ctx.lock_dir):
        repo, snapshot = resolve_snapshot(ctx, source, point)
        providers = build_restore_providers(ctx, snapshot)
        if not providers:
            raise ConfigError("no restore targets configured: add entries under restore.targets")
        if ctx.dry_run:
            logger.info("Dry-run: no state-changing command will be executed")

        available: list[str] = []
        for provider in providers:
            for archive in provider.list_archives():
                if archive not in available:
                    available.append(archive)

        selected = select_archives(available, list(archives or []), all_archives)
        if not selected:
            raise RoutingError("nothing to restore: specify --all or at least one --archive")
        _check_destination_collisions(providers, selected)

        volumes: list[Volume] = []
        for provider in providers:
            if all_archives:
                volumes.extend(provider.collect_restore(None, True))
                continue
            for archive in selected:
                volumes.extend(provider.collect_restore(archive, False))

        report = RestoreReport(repo=repo, snapshot=snapshot, volumes=volumes, dry_run=ctx.dry_run)
        if not volumes:
            logger.info("Nothing to restore: no selected archive is routed to a target")
            return report
        ensure_unique_targets(volumes)
        _log_plan(volumes, "Restoring")

        for volume in volumes:
            logger.info(f"Streaming {volume.archive_name} into {volume.device_path}")
            ctx.tools.store.restore_into(repo, store_config.ns, snapshot, volume.archive_name,
                                         store_config.keyfile, dd_cmd(volume.device_path))
        return report
