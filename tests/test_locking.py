# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/test_locking.py

"""
Tests for the exclusive run lock.
"""

import orjson
import pytest

from pvbackup.system.exceptions import LockConflictError
from pvbackup.system.locking import LockInfo, RunLock, sanitize_lock_name, try_acquire


def test_sanitize_lock_name():
    assert sanitize_lock_name("run") == "pvbackup_run"
    assert sanitize_lock_name("a/b c") == "pvbackup_a_b_c"


def test_lock_writes_holder_info(tmp_path):
    with RunLock("run", operation="backup", lock_dir=tmp_path) as lock:
        assert lock.held
        info = LockInfo.from_dict(orjson.loads(lock.path.read_bytes()))
        assert info.operation == "backup"
    assert not lock.held
    assert lock.path.read_bytes() == b""


def test_second_holder_is_refused(tmp_path):
    with RunLock("run", operation="backup", lock_dir=tmp_path):
        with pytest.raises(LockConflictError, match="another run holds lock") as exc_info:
            try_acquire("run", operation="restore", lock_dir=tmp_path)
        assert exc_info.value.holder["operation"] == "backup"


def test_lock_reusable_after_release(tmp_path):
    with RunLock("run", lock_dir=tmp_path):
        pass
    lock = try_acquire("run", lock_dir=tmp_path)
    assert lock.held
    lock.release()


def test_distinct_names_do_not_conflict(tmp_path):
    with RunLock("run", lock_dir=tmp_path), RunLock("other", lock_dir=tmp_path):
        pass


def test_lock_dir_created(tmp_path):
    lock_dir = tmp_path / "nested" / "locks"
    with RunLock("run", lock_dir=lock_dir) as lock:
        assert lock.path.parent == lock_dir
