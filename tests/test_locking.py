"""Tests for the per-target lock file."""

import json
import os

import pytest

from phpbuild.errors import LockContentionError
from phpbuild.locking import TargetLock


@pytest.fixture
def lock_file(tmp_path):
    return tmp_path / "state" / "5.4.0.lock"


class TestTargetLock:
    def test_acquire_writes_payload(self, lock_file):
        with TargetLock(lock_file, "run-1"):
            payload = json.loads(lock_file.read_text())
            assert payload["pid"] == os.getpid()
            assert payload["run_id"] == "run-1"
            assert set(payload) == {"pid", "host", "user", "run_id", "acquired_at_utc"}
        assert not lock_file.exists()

    def test_live_holder_blocks(self, lock_file):
        lock_file.parent.mkdir(parents=True)
        lock_file.write_text(json.dumps({"pid": os.getppid(), "run_id": "other"}))
        with pytest.raises(LockContentionError, match="Another build holds"):
            TargetLock(lock_file, "run-2").acquire()

    def test_dead_holder_is_replaced(self, lock_file):
        lock_file.parent.mkdir(parents=True)
        lock_file.write_text(json.dumps({"pid": 0, "run_id": "dead"}))
        payload = TargetLock(lock_file, "run-3").acquire()
        assert payload.run_id == "run-3"

    def test_garbage_lock_is_replaced(self, lock_file):
        lock_file.parent.mkdir(parents=True)
        lock_file.write_text("not json")
        TargetLock(lock_file, "run-4").acquire()
        assert json.loads(lock_file.read_text())["run_id"] == "run-4"

    def test_release_keeps_foreign_lock(self, lock_file):
        lock = TargetLock(lock_file, "mine")
        lock.acquire()
        lock_file.write_text(json.dumps({"pid": 1, "run_id": "theirs"}))
        lock.release()
        assert lock_file.exists()

    def test_losing_stale_takeover_race_is_contention(self, lock_file, monkeypatch):
        lock_file.parent.mkdir(parents=True)
        lock_file.write_text(json.dumps({"pid": 0, "run_id": "dead"}))

        def taken_by_other(path):
            path.write_text(json.dumps({"pid": os.getppid(), "run_id": "other"}))

        monkeypatch.setattr("phpbuild.locking._remove_stale", taken_by_other)

        with pytest.raises(LockContentionError):
            TargetLock(lock_file, "run-5").acquire()
        assert json.loads(lock_file.read_text())["run_id"] == "other"

