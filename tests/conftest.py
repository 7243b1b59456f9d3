# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/conftest.py

"""
Shared test fixtures for the pvbackup test suite.
"""

import copy
from unittest.mock import patch

import orjson
import pytest
from loguru import logger

from pvbackup.config.manager import Config
from pvbackup.core.context import AppContext
from tests.fixtures.fake_system import FakeSystem

REPO = "backup@pbs@nas.local:store1"
BACKUP_ID = "host1-pv"

BASE_CONFIG = {
    "store": {
        "repos": {"nas": REPO},
        "default_repo": "nas",
        "ns": "pv",
        "backup_id": BACKUP_ID,
    },
    "zfs": {"pools": ["tank"]},
    "lvmthin": {"vgs": ["pve"]},
    "restore": {
        "targets": {
            "pool": {"type": "zfs", "root": "tank/restore"},
            "lvm-pve": {"type": "lvmthin", "vg": "pve", "thinpool": "data"},
        },
        "rules": [
            {"provider": "lvmthin", "target": "lvm-pve"},
            {"provider": "zfs", "target": "pool"},
        ],
    },
}

STORAGE_JSON = orjson.dumps([
    {"storage": "local-zfs", "type": "zfspool", "pool": "tank"},
    {"storage": "local-lvm", "type": "lvmthin", "vgname": "pve", "thinpool": "data"},
    {"storage": "local", "type": "dir", "path": "/var/lib/vz"},
]).decode()

ZFS_VOLUMES = "\n".join([
    "tank/vm-1.raw\t-",
    "tank/vm-2\t-",
    "tank/vm-1.raw-pvbackup-1600000000-0000\ttank/vm-1.raw@pvbackup-1600000000-0000",
    "",
])

ZFS_GUIDS = "\n".join([
    "tank\t1111",
    f"tank/vm-1.raw\t{0x85a081ee00000000000000000000001}",
    f"tank/vm-2\t{0xdeadbeef00000000000000000000002}",
    f"tank/vm-1.raw-pvbackup-1600000000-0000\t{0x1234567800000000000000000000003}",
    "",
])

LVS_JSON = orjson.dumps({"report": [{"lv": [
    {"lv_name": "data", "vg_name": "pve", "segtype": "thin-pool", "lv_uuid": "aaaaaaaa-bbbb", "lv_size": "107374182400B", "origin": ""},
    {"lv_name": "vm-3-disk-0", "vg_name": "pve", "segtype": "thin", "lv_uuid": "AbCdEf-1234-5678-9abc", "lv_size": "1073741824B", "origin": ""},
    {"lv_name": "vm-4-disk-0", "vg_name": "other", "segtype": "thin", "lv_uuid": "cafe0000-1111", "lv_size": "1073741824B", "origin": ""},
    {"lv_name": "root", "vg_name": "pve", "segtype": "linear", "lv_uuid": "0000ffff-2222", "lv_size": "8589934592B", "origin": ""},
]}]}).decode()


def snapshots_json(*snapshots: dict) -> str:
    return orjson.dumps(list(snapshots)).decode()


def store_snapshot(backup_time: int, files: list[tuple[str, int]], backup_id: str = BACKUP_ID) -> dict:
    return {
        "backup-type": "host",
        "backup-id": backup_id,
        "backup-time": backup_time,
        "files": [{"filename": name, "size": size} for name, size in files]
        + [{"filename": "index.json.blob", "size": 512}],
    }


@pytest.fixture
def config_data():
    """Deep copy of the base configuration mapping."""
    return copy.deepcopy(BASE_CONFIG)


@pytest.fixture
def config(config_data):
    return Config.from_dict(config_data)


@pytest.fixture
def fake_system():
    """Patch subprocess so every command is recorded and answered from canned output."""
    fake = FakeSystem()
    fake.respond(("pvesh", "get", "/storage"), STORAGE_JSON)
    fake.respond(("zfs", "list", "-H", "-t", "volume"), ZFS_VOLUMES)
    fake.respond(("zfs", "get", "-H", "-o", "name,value", "guid"), ZFS_GUIDS)
    fake.respond(("lvs", "--reportformat", "json"), LVS_JSON)
    fake.respond(("proxmox-backup-client", "namespace", "list"), "pv\nother\n")
    fake.respond(("proxmox-backup-client", "snapshots"), snapshots_json())
    with patch("subprocess.run", side_effect=fake.run), \
         patch("subprocess.Popen", side_effect=AssertionError("unexpected pipeline")):
        yield fake


@pytest.fixture
def devices_present():
    """Every device node exists immediately."""
    with patch("pvbackup.storage.devices.Path") as mock_path:
        mock_path.return_value.exists.return_value = True
        yield mock_path


@pytest.fixture
def make_context(tmp_path):
    """Build an AppContext whose run lock lives in tmp_path."""
    def _make(config: Config, dry_run: bool = False) -> AppContext:
        return AppContext.create(config, dry_run=dry_run, lock_dir=tmp_path / "locks")
    return _make


@pytest.fixture
def log_messages():
    """Collect loguru messages (TRACE and above) emitted during a test."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="TRACE")
    yield messages
    logger.remove(handler_id)
