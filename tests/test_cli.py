# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/test_cli.py

import sys
from unittest.mock import patch

import pytest
import yaml
from loguru import logger
from typer.testing import CliRunner

from pvbackup.cli.main import app
from tests.conftest import snapshots_json, store_snapshot

# Setup test runner
runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_default_logger():
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def config_file(tmp_path, config_data):
    path = tmp_path / "config.yml"
    path.write_text(yaml.safe_dump(config_data))
    return path


@pytest.fixture
def binaries_present():
    with patch("pvbackup.storage.binaries.shutil.which", return_value="/usr/bin/true"):
        yield


def invoke(config_file, tmp_path, *args):
    return runner.invoke(app, ["--config", str(config_file), "--lock-dir", str(tmp_path / "locks"), *args])


def test_help_lists_command_groups():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for group in ("backup", "restore", "config"):
        assert group in result.output


def test_config_check(config_file, tmp_path):
    result = invoke(config_file, tmp_path, "config", "check")
    assert result.exit_code == 0
    assert "Configuration OK" in result.output
    assert "zfs pools: tank" in result.output


def test_config_check_invalid(tmp_path, config_data):
    config_data["restore"]["default_target"] = "ghost"
    path = tmp_path / "config.yml"
    path.write_text(yaml.safe_dump(config_data))
    result = invoke(path, tmp_path, "config", "check")
    assert result.exit_code == 1
    assert "Configuration error" in result.output


def test_config_from_environment(config_file, monkeypatch):
    monkeypatch.setenv("PVBACKUP_CONFIG", str(config_file))
    result = runner.invoke(app, ["config", "check"])
    assert result.exit_code == 0
    assert "Configuration OK" in result.output


def test_config_show_redacts(tmp_path, config_data):
    (tmp_path / "pbs.token").write_text("s3cret")
    config_data["store"]["password_file"] = "pbs.token"
    path = tmp_path / "config.yml"
    path.write_text(yaml.safe_dump(config_data))
    result = invoke(path, tmp_path, "config", "show")
    assert result.exit_code == 0
    assert "s3cret" not in result.output
    assert "<redacted>" in result.output


def test_missing_programs_fail_early(config_file, tmp_path, fake_system):
    with patch("pvbackup.storage.binaries.shutil.which", return_value=None):
        result = invoke(config_file, tmp_path, "backup", "run")
    assert result.exit_code == 1
    assert "required programs not found" in result.output
    assert fake_system.calls == []


def test_backup_dry_run(config_file, tmp_path, fake_system, binaries_present):
    result = invoke(config_file, tmp_path, "backup", "run", "--dry-run")
    assert result.exit_code == 0, result.output
    assert "3 volume(s) would be exported" in result.output
    assert fake_system.state_changing() == []


def test_backup_list_archives(config_file, tmp_path, fake_system, binaries_present):
    result = invoke(config_file, tmp_path, "backup", "list-archives")
    assert result.exit_code == 0, result.output
    assert "Volumes eligible for backup" in result.output


def test_backup_unknown_target(config_file, tmp_path, fake_system, binaries_present):
    result = invoke(config_file, tmp_path, "backup", "run", "--target", "ghost")
    assert result.exit_code == 1
    assert "unknown repo 'ghost'" in result.output


def test_restore_list_snapshots(config_file, tmp_path, fake_system):
    fake_system.respond(("proxmox-backup-client", "snapshots"), snapshots_json(
        store_snapshot(1700000000, [("zfs_vm-2_noext_deadbeef.img.fidx", 1024)])))
    result = invoke(config_file, tmp_path, "restore", "list-snapshots")
    assert result.exit_code == 0, result.output
    assert "host1-pv" in result.output


def test_restore_bad_snapshot_argument(config_file, tmp_path, fake_system):
    result = invoke(config_file, tmp_path, "restore", "list-archives", "--snapshot", "yesterday")
    assert result.exit_code == 1
    assert "invalid restore point" in result.output


def test_restore_requires_selection(config_file, tmp_path, fake_system, binaries_present):
    fake_system.respond(("proxmox-backup-client", "snapshots"), snapshots_json(
        store_snapshot(1700000000, [("zfs_vm-2_noext_deadbeef.img.fidx", 1024)])))
    result = invoke(config_file, tmp_path, "restore", "run")
    assert result.exit_code == 1
    assert "nothing to restore" in result.output
