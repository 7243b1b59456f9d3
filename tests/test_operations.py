# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/test_operations.py

from unittest.mock import patch

import pytest

from pvbackup.config.manager import Config
from pvbackup.core.operations import (
    RUN_LOCK, list_backup_archives, list_restore_archives, run_backup, run_restore, select_archives
)
from pvbackup.core.restore_point import RestorePoint, parse_restore_point, pick_snapshot
from pvbackup.storage.backup_store import BackupStoreClient, parse_snapshots
from pvbackup.storage.blockcopy import dd_cmd
from pvbackup.system.exceptions import (
    CollisionError, ConfigError, ExecError, LockConflictError, RestorePointError, RoutingError
)
from pvbackup.system.locking import RunLock
from tests.conftest import REPO, snapshots_json, store_snapshot

TOKEN = "1700000000-abcd"
POOL_ARCHIVE = "zfs_vm-1_raw_85a081ee.img"
THIN_ARCHIVE = "lvmthin_vm-3-disk-0_noext_abcdef12.img"


@pytest.fixture
def pool_only(config_data):
    del config_data["lvmthin"]
    return Config.from_dict(config_data)


@pytest.fixture
def restorable(fake_system):
    """Backend holding one snapshot with one archive per backend."""
    fake_system.respond(("proxmox-backup-client", "snapshots"), snapshots_json(
        store_snapshot(1700000000, [(POOL_ARCHIVE + ".fidx", 1048576), (THIN_ARCHIVE + ".fidx", 2097152)]),
        store_snapshot(1690000000, [(POOL_ARCHIVE + ".fidx", 1048576)]),
        store_snapshot(1800000000, [], backup_id="otherhost-pv"),
    ))
    fake_system.fail(("zfs", "list", "-H", "-o", "name"), stderr="dataset does not exist")
    fake_system.fail(("lvs", "--noheadings"), stderr="Failed to find logical volume")
    return fake_system


class TestBackup:
    def test_list_archives_discovers_both_backends(self, config, fake_system, make_context):
        names = sorted(v.archive_name for v in list_backup_archives(make_context(config)))
        assert names == [THIN_ARCHIVE, POOL_ARCHIVE, "zfs_vm-2_noext_deadbeef.img"]
        assert fake_system.state_changing() == []

    def test_list_archives_rejects_collisions(self, pool_only, fake_system, make_context):
        fake_system.respond(("zfs", "list", "-H", "-t", "volume"), "tank/vm-1.raw\t-\ntank/sub/vm-1.raw\t-\n")
        fake_system.respond(("zfs", "get", "-H", "-o", "name,value", "guid"),
                            f"tank/vm-1.raw\t{0x85a081ee00000000000000000000001}\n"
                            f"tank/sub/vm-1.raw\t{0x85a081ee00000000000000000000777}\n")
        with pytest.raises(CollisionError, match="archive name collision"):
            list_backup_archives(make_context(pool_only))

    def test_list_archives_respects_run_lock(self, pool_only, fake_system, make_context, tmp_path):
        with RunLock(RUN_LOCK, operation="backup", lock_dir=tmp_path / "locks"):
            with pytest.raises(LockConflictError):
                list_backup_archives(make_context(pool_only))
        assert fake_system.calls == []

    def test_pool_backup_command_sequence(self, pool_only, fake_system, make_context, devices_present):
        report = run_backup(make_context(pool_only), run_token=TOKEN)

        assert report.repo == REPO
        assert len(report.volumes) == 2
        snap1, clone1 = f"tank/vm-1.raw@pvbackup-{TOKEN}", f"tank/vm-1.raw-pvbackup-{TOKEN}"
        snap2, clone2 = f"tank/vm-2@pvbackup-{TOKEN}", f"tank/vm-2-pvbackup-{TOKEN}"
        assert fake_system.state_changing() == [
            ["zfs", "snapshot", snap1],
            ["zfs", "clone", "-o", "readonly=on", "-o", "volmode=dev", snap1, clone1],
            ["zfs", "snapshot", snap2],
            ["zfs", "clone", "-o", "readonly=on", "-o", "volmode=dev", snap2, clone2],
            ["proxmox-backup-client", "backup",
             f"{POOL_ARCHIVE}:/dev/zvol/{clone1}",
             f"zfs_vm-2_noext_deadbeef.img:/dev/zvol/{clone2}",
             "--backup-id", "host1-pv", "--ns", "pv", "--repository", REPO],
            ["zfs", "destroy", "-r", clone2],
            ["zfs", "destroy", "-r", snap2],
            ["zfs", "destroy", "-r", clone1],
            ["zfs", "destroy", "-r", snap1],
        ]

    def test_latest_backup_time_reported(self, pool_only, fake_system, make_context, devices_present):
        fake_system.respond(("proxmox-backup-client", "snapshots"), snapshots_json(
            store_snapshot(1700000100, [(POOL_ARCHIVE + ".fidx", 1)]),
            store_snapshot(1600000000, [(POOL_ARCHIVE + ".fidx", 1)]),
        ))
        report = run_backup(make_context(pool_only), run_token=TOKEN)
        assert report.backup_time == 1700000100

    def test_invisible_snapshot_is_not_an_error(self, pool_only, fake_system, make_context, devices_present,
                                                log_messages):
        report = run_backup(make_context(pool_only), run_token=TOKEN)
        assert report.backup_time is None
        assert "Backup finished, but latest snapshot time is not visible yet." in log_messages

    def test_failed_export_still_cleans_up(self, pool_only, fake_system, make_context, devices_present):
        fake_system.fail(("proxmox-backup-client", "backup"), stderr="connection refused")
        with pytest.raises(ExecError, match="connection refused"):
            run_backup(make_context(pool_only), run_token=TOKEN)
        destroyed = [c[-1] for c in fake_system.commands("zfs", "destroy")]
        assert destroyed == [f"tank/vm-2-pvbackup-{TOKEN}", f"tank/vm-2@pvbackup-{TOKEN}",
                             f"tank/vm-1.raw-pvbackup-{TOKEN}", f"tank/vm-1.raw@pvbackup-{TOKEN}"]

    def test_collision_aborts_before_any_change(self, pool_only, fake_system, make_context):
        fake_system.respond(("zfs", "list", "-H", "-t", "volume"), "tank/vm-1.raw\t-\ntank/sub/vm-1.raw\t-\n")
        fake_system.respond(("zfs", "get", "-H", "-o", "name,value", "guid"),
                            f"tank/vm-1.raw\t{0x85a081ee00000000000000000000001}\n"
                            f"tank/sub/vm-1.raw\t{0x85a081ee00000000000000000000777}\n")
        with pytest.raises(CollisionError, match="archive name collision"):
            run_backup(make_context(pool_only), run_token=TOKEN)
        assert fake_system.state_changing() == []

    def test_dry_run_changes_nothing(self, config, fake_system, make_context, log_messages):
        report = run_backup(make_context(config, dry_run=True), run_token=TOKEN)

        assert report.dry_run is True
        assert len(report.volumes) == 3
        assert fake_system.state_changing() == []
        assert f"[dry-run] zfs snapshot tank/vm-1.raw@pvbackup-{TOKEN}" in log_messages
        assert any(m.startswith("[dry-run] proxmox-backup-client backup") for m in log_messages)
        assert any(m.startswith("[dry-run] zfs destroy -r") for m in log_messages)

    def test_dry_run_plan_matches_real_run(self, pool_only, fake_system, make_context, devices_present,
                                           log_messages):
        run_backup(make_context(pool_only, dry_run=True), run_token=TOKEN)
        planned = [m for m in log_messages if m.startswith("Backing up")]
        log_messages.clear()
        run_backup(make_context(pool_only), run_token=TOKEN)
        assert planned and planned == [m for m in log_messages if m.startswith("Backing up")]

    def test_nothing_to_back_up(self, pool_only, fake_system, make_context):
        fake_system.respond(("zfs", "list", "-H", "-t", "volume"), "")
        report = run_backup(make_context(pool_only), run_token=TOKEN)
        assert report.volumes == []
        assert fake_system.commands("proxmox-backup-client", "backup") == []

    def test_missing_namespace_is_created(self, pool_only, fake_system, make_context, devices_present):
        fake_system.respond(("proxmox-backup-client", "namespace", "list"), "other\n")
        with pytest.raises(ExecError, match="still missing"):
            run_backup(make_context(pool_only), run_token=TOKEN)
        assert fake_system.commands("proxmox-backup-client", "namespace", "create") == [
            ["proxmox-backup-client", "namespace", "create", "pv", "--repository", REPO]]
        assert fake_system.commands("zfs", "snapshot") == []

    def test_no_sources_configured(self, config_data, fake_system, make_context):
        del config_data["zfs"]
        del config_data["lvmthin"]
        with pytest.raises(ConfigError, match="no backup sources"):
            run_backup(make_context(Config.from_dict(config_data)))

    def test_unknown_target_repo(self, config, fake_system, make_context):
        with pytest.raises(ConfigError):
            run_backup(make_context(config), target="offsite")

    def test_concurrent_run_refused(self, pool_only, fake_system, make_context, tmp_path):
        with RunLock(RUN_LOCK, operation="restore", lock_dir=tmp_path / "locks"):
            with pytest.raises(LockConflictError, match="another run holds lock"):
                run_backup(make_context(pool_only), run_token=TOKEN)
        assert fake_system.calls == []


class TestSelection:
    def test_select_requested(self):
        available = [POOL_ARCHIVE, THIN_ARCHIVE]
        assert select_archives(available, [THIN_ARCHIVE + ".fidx", THIN_ARCHIVE], False) == [THIN_ARCHIVE]

    def test_select_all(self):
        assert select_archives([POOL_ARCHIVE, THIN_ARCHIVE], [], True) == [POOL_ARCHIVE, THIN_ARCHIVE]

    def test_unknown_archive(self):
        with pytest.raises(RoutingError, match="archive not available from providers: nope"):
            select_archives([POOL_ARCHIVE], ["nope"], False)


class TestRestorePoint:
    @pytest.mark.parametrize("text,expected", [
        (None, None),
        ("latest", None),
        ("1700000000", 1700000000),
        ("2023-11-14T22:13:20Z", 1700000000),
        ("2023-11-15T00:13:20+02:00", 1700000000),
    ])
    def test_parse(self, text, expected):
        assert parse_restore_point(text).at == expected

    @pytest.mark.parametrize("text", ["yesterday", "2023-11-14T22:13:20"])
    def test_parse_rejects(self, text):
        with pytest.raises(RestorePointError):
            parse_restore_point(text)

    def test_pick(self):
        snapshots = parse_snapshots(snapshots_json(
            store_snapshot(100, []), store_snapshot(300, []), store_snapshot(200, []),
            store_snapshot(999, [], backup_id="someone-else"),
        ))
        assert pick_snapshot(snapshots, "host1-pv", RestorePoint()).backup_time == 300
        assert pick_snapshot(snapshots, "host1-pv", RestorePoint(250)).backup_time == 200
        with pytest.raises(RestorePointError, match="before given time"):
            pick_snapshot(snapshots, "host1-pv", RestorePoint(50))
        with pytest.raises(RestorePointError, match="no snapshots found for backup-id 'ghost'"):
            pick_snapshot(snapshots, "ghost", RestorePoint())


class TestRestore:
    def test_list_archives_per_target(self, config, restorable, make_context):
        snapshot, by_target = list_restore_archives(make_context(config))
        assert snapshot.backup_time == 1700000000
        assert by_target == {"pool": [POOL_ARCHIVE], "lvm-pve": [THIN_ARCHIVE]}

    def test_list_archives_at_point(self, config, restorable, make_context):
        snapshot, by_target = list_restore_archives(make_context(config), point=RestorePoint(1695000000))
        assert snapshot.backup_time == 1690000000
        assert by_target == {"pool": [POOL_ARCHIVE], "lvm-pve": []}

    def test_empty_repo(self, config, fake_system, make_context):
        with pytest.raises(RestorePointError, match=f"no snapshots found in repo {REPO}"):
            run_restore(make_context(config), all_archives=True)

    def test_nothing_selected(self, config, restorable, make_context):
        with pytest.raises(RoutingError, match="nothing to restore"):
            run_restore(make_context(config))
        assert restorable.state_changing() == []

    def test_restore_all(self, config, restorable, make_context, devices_present):
        with patch.object(BackupStoreClient, "restore_into") as restore_into:
            report = run_restore(make_context(config), all_archives=True)

        devices = sorted(v.device_path for v in report.volumes)
        assert devices == ["/dev/pve/vm-3-disk-0", "/dev/zvol/tank/restore/vm-1.raw"]
        streamed = {c.args[3]: c.args[5] for c in restore_into.call_args_list}
        assert streamed == {
            POOL_ARCHIVE: dd_cmd("/dev/zvol/tank/restore/vm-1.raw"),
            THIN_ARCHIVE: dd_cmd("/dev/pve/vm-3-disk-0"),
        }
        assert all(c.args[2].path == "host/host1-pv/2023-11-14T22:13:20Z" for c in restore_into.call_args_list)

    def test_restore_one_archive(self, config, restorable, make_context, devices_present):
        with patch.object(BackupStoreClient, "restore_into") as restore_into:
            report = run_restore(make_context(config), archives=[THIN_ARCHIVE + ".fidx"])

        assert [v.archive_name for v in report.volumes] == [THIN_ARCHIVE]
        assert restore_into.call_count == 1
        assert restorable.commands("zfs", "create") == []
        assert restorable.commands("lvcreate") == [
            ["lvcreate", "-T", "pve/data", "-n", "vm-3-disk-0", "-V", "2097152B"]]

    def test_dry_run_restore(self, config, restorable, make_context, log_messages):
        report = run_restore(make_context(config, dry_run=True), all_archives=True)

        assert len(report.volumes) == 2
        assert restorable.state_changing() == []
        pipelines = [m for m in log_messages if m.startswith("[dry-run] proxmox-backup-client restore")]
        assert len(pipelines) == 2
        assert any("| dd of=/dev/zvol/tank/restore/vm-1.raw bs=4M" in m for m in pipelines)

    def test_same_leaf_twice_on_one_target(self, config, restorable, make_context):
        restorable.respond(("proxmox-backup-client", "snapshots"), snapshots_json(store_snapshot(1700000000, [
            ("zfs_vm-1_raw_aaaa0000.img.fidx", 1024), ("zfs_vm-1_raw_bbbb0000.img.fidx", 1024)])))
        with pytest.raises(CollisionError, match="zfs:tank/restore/vm-1.raw"):
            run_restore(make_context(config), all_archives=True)
        assert restorable.state_changing() == []

    def test_targets_sharing_a_root_collide_before_provisioning(self, config_data, restorable, make_context):
        restore = config_data["restore"]
        restore["targets"]["a"] = {"type": "zfs", "root": "tank/restore"}
        restore["targets"]["b"] = {"type": "zfs", "root": "tank/restore/"}
        restore["rules"] = [
            {"provider": "zfs", "regex": "aaaa0000", "target": "a"},
            {"provider": "zfs", "regex": "bbbb0000", "target": "b"},
        ] + restore["rules"]
        restorable.respond(("proxmox-backup-client", "snapshots"), snapshots_json(store_snapshot(1700000000, [
            ("zfs_vm-1_raw_aaaa0000.img.fidx", 1024), ("zfs_vm-1_raw_bbbb0000.img.fidx", 1024)])))

        with pytest.raises(CollisionError, match="target collision: 'zfs:tank/restore/vm-1.raw'"):
            run_restore(make_context(Config.from_dict(config_data)), all_archives=True)
        assert restorable.commands("zfs", "create") == []
        assert restorable.state_changing() == []
