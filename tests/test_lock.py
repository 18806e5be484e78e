"""Tests for the cross-process lock manager."""

import os
import subprocess
import sys
import threading
import time
from pathlib import Path

import pytest

from gitwt.errors import ExitCode, LockTimeout
from gitwt.lock import LockManager, LockRecord, pid_alive


@pytest.fixture
def meta_dir(tmp_path: Path) -> Path:
    return tmp_path / "git-wt"


def dead_pid() -> int:
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait()
    return proc.pid


def write_record(manager: LockManager, pid: int, acquired_at: float) -> None:
    manager.metadata_dir.mkdir(parents=True, exist_ok=True)
    manager.lock_path.write_text(LockRecord(pid, acquired_at).render())


class TestPidAlive:
    def test_current_process(self):
        assert pid_alive(os.getpid())

    def test_invalid_pid(self):
        assert not pid_alive(0)
        assert not pid_alive(-5)

    def test_reaped_child(self):
        assert not pid_alive(dead_pid())


class TestLockRecord:
    def test_file_format(self):
        assert LockRecord(42, 1700000000.5).render() == "42\n1700000000.5\n"

    def test_parse_rejects_garbage(self):
        with pytest.raises(ValueError):
            LockRecord.parse("not a lock")


class TestAcquire:
    def test_creates_lock_file_with_owner(self, meta_dir):
        manager = LockManager(meta_dir)
        handle = manager.acquire(timeout=1)

        assert manager.lock_path == meta_dir / "lock"
        record = manager.read_record()
        assert record.pid == os.getpid()
        assert record == handle.record

    def test_second_attempt_fails_while_held(self, meta_dir):
        manager = LockManager(meta_dir)
        assert manager.try_acquire() is not None
        assert manager.try_acquire() is None

    def test_timeout_is_bounded(self, meta_dir):
        holder = LockManager(meta_dir)
        holder.acquire(timeout=1)
        waiter = LockManager(meta_dir, retry_interval=0.02)

        start = time.monotonic()
        with pytest.raises(LockTimeout) as exc_info:
            waiter.acquire(timeout=0.1)
        elapsed = time.monotonic() - start

        assert 0.09 <= elapsed < 1.0
        assert exc_info.value.exit_code == ExitCode.LOCK_TIMEOUT
        assert str(meta_dir / "lock") in exc_info.value.hint

    def test_dead_owner_is_reclaimed_regardless_of_age(self, meta_dir):
        manager = LockManager(meta_dir)
        write_record(manager, dead_pid(), time.time())

        handle = manager.acquire(timeout=0)

        assert handle.record.pid == os.getpid()
        assert not list(meta_dir.glob("lock.stale.*"))

    def test_old_lock_of_live_process_is_reclaimed(self, meta_dir):
        manager = LockManager(meta_dir, stale_after=1)
        write_record(manager, os.getpid(), time.time() - 10)
        assert manager.try_acquire() is not None

    def test_fresh_unreadable_lock_is_respected(self, meta_dir):
        manager = LockManager(meta_dir)
        meta_dir.mkdir(parents=True)
        manager.lock_path.write_text("")
        assert manager.try_acquire() is None

    def test_old_unreadable_lock_is_reclaimed(self, meta_dir):
        manager = LockManager(meta_dir)
        meta_dir.mkdir(parents=True)
        manager.lock_path.write_text("garbage")
        old = time.time() - 60
        os.utime(manager.lock_path, (old, old))
        assert manager.try_acquire() is not None

    def test_reclaim_is_logged_at_debug(self, meta_dir, caplog):
        manager = LockManager(meta_dir)
        write_record(manager, dead_pid(), time.time())
        with caplog.at_level("DEBUG", logger="gitwt.lock"):
            manager.acquire(timeout=0)
        assert "Reclaimed stale lock" in caplog.text


class ReplacedOnRead(LockManager):
    """Installs a new owner's not-yet-written lock file right after the chosen read."""

    def __init__(self, metadata_dir: Path, replace_on_read: int):
        super().__init__(metadata_dir)
        self.replace_on_read = replace_on_read
        self.reads = 0

    def read_record(self):
        record = super().read_record()
        self.reads += 1
        if self.reads == self.replace_on_read:
            incoming = self.lock_path.with_name("incoming")
            incoming.write_text("")
            os.replace(incoming, self.lock_path)
        return record


class TestReclaimRaces:
    @pytest.mark.parametrize("replace_on_read", [1, 2])
    def test_new_owner_survives_reclaim(self, meta_dir, replace_on_read):
        manager = ReplacedOnRead(meta_dir, replace_on_read)
        write_record(manager, dead_pid(), time.time())

        assert manager.try_acquire() is None

        assert manager.lock_path.read_text() == ""
        assert not list(meta_dir.glob("lock.stale.*"))
        assert not manager.reclaim_path.exists()

    def test_failed_restore_keeps_displaced_file(self, meta_dir, monkeypatch):
        manager = ReplacedOnRead(meta_dir, replace_on_read=2)
        write_record(manager, dead_pid(), time.time())

        def no_link(src, dst):
            raise FileExistsError(dst)

        monkeypatch.setattr("gitwt.lock.os.link", no_link)

        assert manager.try_acquire() is None
        displaced = list(meta_dir.glob("lock.stale.*"))
        assert len(displaced) == 1
        assert displaced[0].read_text() == ""

    def test_waits_while_another_reclaim_is_running(self, meta_dir):
        manager = LockManager(meta_dir)
        write_record(manager, dead_pid(), time.time())
        manager.reclaim_path.write_text("")

        assert manager.try_acquire() is None
        assert manager.read_record() is not None
        assert manager.reclaim_path.exists()

    def test_abandoned_reclaim_marker_is_cleared(self, meta_dir):
        manager = LockManager(meta_dir)
        write_record(manager, dead_pid(), time.time())
        manager.reclaim_path.write_text("")
        old = time.time() - 60
        os.utime(manager.reclaim_path, (old, old))

        assert manager.try_acquire() is None
        assert not manager.reclaim_path.exists()
        assert manager.try_acquire() is not None


class TestRelease:
    def test_release_removes_file(self, meta_dir):
        manager = LockManager(meta_dir)
        handle = manager.acquire(timeout=1)
        assert handle.release() is True
        assert not manager.lock_path.exists()

    def test_release_is_idempotent(self, meta_dir):
        manager = LockManager(meta_dir)
        handle = manager.acquire(timeout=1)
        handle.release()
        assert handle.release() is False

    def test_does_not_remove_lock_owned_by_someone_else(self, meta_dir):
        manager = LockManager(meta_dir)
        handle = manager.acquire(timeout=1)
        # Reclaimed as stale and re-acquired elsewhere
        write_record(manager, os.getpid(), handle.record.acquired_at + 1)

        assert handle.release() is False
        assert manager.lock_path.exists()

    def test_context_manager_releases(self, meta_dir):
        manager = LockManager(meta_dir)
        with manager.acquire(timeout=1):
            assert manager.lock_path.exists()
        assert not manager.lock_path.exists()


class TestContention:
    def test_exactly_one_immediate_winner(self, meta_dir):
        barrier = threading.Barrier(2)
        results = []

        def attempt():
            manager = LockManager(meta_dir)
            barrier.wait()
            results.append(manager.try_acquire())

        threads = [threading.Thread(target=attempt) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(r is not None for r in results) == 1

    def test_waiter_succeeds_only_after_release(self, meta_dir):
        intervals = []

        def worker():
            manager = LockManager(meta_dir, retry_interval=0.01)
            with manager.acquire(timeout=5):
                start = time.monotonic()
                time.sleep(0.15)
                intervals.append((start, time.monotonic()))

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(intervals) == 2
        first, second = sorted(intervals)
        assert second[0] >= first[1]
