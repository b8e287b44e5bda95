"""Tests for FeatureLock."""

import os

import pytest

from gba.core.feature_lock import FeatureLock
from gba.exceptions import LockHeldError


@pytest.fixture
def lock_path(tmp_path):
    return tmp_path / "features" / "0007" / "state.lock"


class TestFeatureLock:

    def test_acquire_and_release(self, lock_path):
        lock = FeatureLock(lock_path, "0007")

        assert lock.acquire()
        assert lock.held
        assert lock.get_holder_pid() == os.getpid()

        lock.release()
        assert not lock.held
        assert lock.get_holder_pid() is None

    def test_second_holder_is_refused(self, lock_path):
        first = FeatureLock(lock_path, "0007")
        second = FeatureLock(lock_path, "0007")

        with first:
            with pytest.raises(LockHeldError) as exc_info:
                with second:
                    pytest.fail("lock acquired twice")

        assert exc_info.value.feature_id == "0007"
        assert exc_info.value.holder_pid == os.getpid()
        assert "already running" in str(exc_info.value)

    def test_released_after_exception(self, lock_path):
        lock = FeatureLock(lock_path, "0007")

        with pytest.raises(RuntimeError):
            with lock:
                raise RuntimeError("boom")

        assert not lock.held
        with FeatureLock(lock_path, "0007") as again:
            assert again.held

    def test_release_when_not_held(self, lock_path):
        FeatureLock(lock_path, "0007").release()

    def test_acquire_is_reentrant_for_same_instance(self, lock_path):
        lock = FeatureLock(lock_path, "0007")
        assert lock.acquire()
        assert lock.acquire()
        lock.release()

    def test_stale_lock_file_does_not_block(self, lock_path):
        lock_path.parent.mkdir(parents=True)
        lock_path.write_text("99999")

        with FeatureLock(lock_path, "0007") as lock:
            assert lock.get_holder_pid() == os.getpid()
