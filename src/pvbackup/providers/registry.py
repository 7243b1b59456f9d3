# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/providers/registry.py

"""Build the active providers from configuration."""

from pvbackup.config.targets import PoolTarget, ThinTarget
from pvbackup.core import naming
from pvbackup.core.context import AppContext
from pvbackup.core.router import RestoreRouter
from pvbackup.providers.pool import PoolVolumeProvider
from pvbackup.providers.pool_restore import PoolRestoreProvider
from pvbackup.providers.protocols import RestoreProvider, VolumeProvider
from pvbackup.providers.thin import ThinVolumeProvider
from pvbackup.providers.thin_restore import ThinRestoreProvider
from pvbackup.storage.backup_store import StoreSnapshot


def build_backup_providers(ctx: AppContext, run_token: str | None = None) -> list[VolumeProvider]:
    """One provider per configured backend section, sharing a single run token."""
    token = run_token or naming.new_run_token()
    providers: list[VolumeProvider] = []
    if ctx.config.zfs is not None:
        providers.append(PoolVolumeProvider(ctx.config, ctx.tools, token))
    if ctx.config.lvmthin is not None:
        providers.append(ThinVolumeProvider(ctx.config, ctx.tools, token))
    return providers


def build_restore_providers(ctx: AppContext, snapshot: StoreSnapshot | None) -> list[RestoreProvider]:
    """One provider per configured restore target, in declaration order."""
    router = RestoreRouter.from_config(ctx.config.restore)
    providers: list[RestoreProvider] = []
    for name, target in ctx.config.restore.targets.items():
        if isinstance(target, PoolTarget):
            providers.append(PoolRestoreProvider(name, target, ctx.tools, router, snapshot))
        elif isinstance(target, ThinTarget):
            providers.append(ThinRestoreProvider(name, target, ctx.tools, router, snapshot))
    return providers
