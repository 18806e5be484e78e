"""Cross-process repository lock.

The lock is a small text file created with O_CREAT | O_EXCL, so exactly one
process wins the create. It records the owner's pid and the acquisition time:

    <pid>\\n<timestamp>\\n

A lock is valid while its owner is alive and younger than the staleness
window. Stale locks are reclaimed by renaming them aside first. Reclaimers
take turns through a second O_EXCL file, lock.reclaim, and the renamed file
must still be the one judged stale; otherwise it is linked back in place.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path

from gitwt.errors import LockTimeout

logger = logging.getLogger("gitwt.lock")

LOCK_FILENAME = "lock"
DEFAULT_LOCK_TIMEOUT = 30.0
STALE_LOCK_SECONDS = 600.0
RETRY_INTERVAL = 0.1
# An unparsable record may belong to an owner that has created but not yet
# written the file; only treat it as abandoned after this long.
UNREADABLE_GRACE_SECONDS = 5.0


def pid_alive(pid: int) -> bool:
    """Liveness probe via signal 0."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by another user
        return True
    except OSError:
        return False
    return True


@dataclass(frozen=True)
class LockRecord:
    pid: int
    acquired_at: float

    @classmethod
    def parse(cls, text: str) -> "LockRecord":
        """Parse file contents. Raises ValueError on malformed input."""
        lines = text.split()
        if len(lines) < 2:
            raise ValueError(f"Malformed lock record: {text!r}")
        return cls(pid=int(lines[0]), acquired_at=float(lines[1]))

    def render(self) -> str:
        return f"{self.pid}\n{self.acquired_at!r}\n"

    def age(self, now: float | None = None) -> float:
        return (now if now is not None else time.time()) - self.acquired_at


@dataclass
class LockHandle:
    """Proof of ownership returned by acquire. Usable as a context manager."""

    path: Path
    record: LockRecord
    manager: "LockManager" = field(repr=False)
    released: bool = False

    def release(self) -> bool:
        return self.manager.release(self)

    def __enter__(self) -> "LockHandle":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


class LockManager:
    """Mutual exclusion for mutating operations on one repository."""

    def __init__(
        self,
        metadata_dir: Path,
        *,
        stale_after: float = STALE_LOCK_SECONDS,
        retry_interval: float = RETRY_INTERVAL,
    ):
        self.metadata_dir = Path(metadata_dir)
        self.stale_after = stale_after
        self.retry_interval = retry_interval

    @property
    def lock_path(self) -> Path:
        return self.metadata_dir / LOCK_FILENAME

    def try_acquire(self) -> LockHandle | None:
        """Single attempt. Returns None if a valid lock is held elsewhere."""
        self.metadata_dir.mkdir(parents=True, exist_ok=True)
        record = LockRecord(pid=os.getpid(), acquired_at=time.time())
        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            if self._reclaim_if_stale():
                return self.try_acquire()
            return None
        try:
            os.write(fd, record.render().encode())
        finally:
            os.close(fd)
        logger.debug("Acquired %s (pid %d)", self.lock_path, record.pid)
        return LockHandle(path=self.lock_path, record=record, manager=self)

    def acquire(self, timeout: float = DEFAULT_LOCK_TIMEOUT) -> LockHandle:
        """Block until the lock is ours or timeout seconds elapse.

        Raises LockTimeout.
        """
        deadline = time.monotonic() + max(0.0, timeout)
        while True:
            handle = self.try_acquire()
            if handle is not None:
                return handle
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise LockTimeout(str(self.lock_path), timeout)
            time.sleep(min(self.retry_interval, remaining))

    def release(self, handle: LockHandle) -> bool:
        """Remove the lock file if it still names this handle's owner."""
        if handle.released:
            return False
        handle.released = True
        current = self.read_record()
        if current != handle.record:
            logger.warning(
                "Lock %s is no longer ours (reclaimed as stale?); leaving it in place",
                handle.path,
            )
            return False
        try:
            handle.path.unlink()
        except FileNotFoundError:
            return False
        logger.debug("Released %s", handle.path)
        return True

    def read_record(self) -> LockRecord | None:
        try:
            text = self.lock_path.read_text()
        except FileNotFoundError:
            return None
        try:
            return LockRecord.parse(text)
        except ValueError:
            return None

    def is_stale(self, record: LockRecord, now: float | None = None) -> bool:
        if not pid_alive(record.pid):
            return True
        return record.age(now) > self.stale_after

    @property
    def reclaim_path(self) -> Path:
        return self.metadata_dir / f"{LOCK_FILENAME}.reclaim"

    def _reclaim_if_stale(self) -> bool:
        """Remove an abandoned lock file. True means the caller should retry the create."""
        if self._abandoned() is None:
            return not self.lock_path.exists()
        if not self._enter_reclaim():
            return False
        try:
            # Judge again now that no other contender can be reclaiming
            found = self._abandoned()
            if found is None:
                return not self.lock_path.exists()
            return self._move_aside(*found)
        finally:
            self._exit_reclaim()

    def _abandoned(self) -> tuple[tuple[int, int], LockRecord | None, str] | None:
        """(file identity, record, reason) if the lock file on disk is stale."""
        try:
            st = os.stat(self.lock_path)
        except FileNotFoundError:
            return None
        identity = (st.st_ino, st.st_mtime_ns)
        record = self.read_record()
        if record is None:
            if time.time() - st.st_mtime <= min(self.stale_after, UNREADABLE_GRACE_SECONDS):
                return None
            return identity, None, "unreadable record"
        if not self.is_stale(record):
            return None
        if pid_alive(record.pid):
            return identity, record, f"pid {record.pid} held it for {record.age():.0f}s"
        return identity, record, f"pid {record.pid} is gone"

    def _move_aside(self, identity: tuple[int, int], record: LockRecord | None, reason: str) -> bool:
        aside = self.lock_path.with_name(f"{LOCK_FILENAME}.stale.{time.time_ns()}")
        try:
            os.rename(self.lock_path, aside)
        except FileNotFoundError:
            return True

        st = os.stat(aside)
        replaced = (st.st_ino, st.st_mtime_ns) != identity
        if record is not None and not replaced:
            try:
                replaced = LockRecord.parse(aside.read_text()) != record
            except (OSError, ValueError):
                replaced = True
        if replaced:
            # A new owner created the file after it was judged stale; put it back
            try:
                os.link(aside, self.lock_path)
            except OSError as exc:
                logger.warning("Could not restore lock %s, left at %s: %s", self.lock_path, aside, exc)
                return False
            aside.unlink()
            return False

        try:
            aside.unlink()
        except OSError as exc:
            logger.warning("Could not delete reclaimed lock %s: %s", aside, exc)
        logger.debug("Reclaimed stale lock %s (%s)", self.lock_path, reason)
        return True

    def _enter_reclaim(self) -> bool:
        try:
            fd = os.open(self.reclaim_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            # A reclaimer that died mid-way leaves the marker behind
            try:
                age = time.time() - self.reclaim_path.stat().st_mtime
            except FileNotFoundError:
                return False
            if age > UNREADABLE_GRACE_SECONDS:
                logger.debug("Removing abandoned reclaim marker %s", self.reclaim_path)
                self.reclaim_path.unlink(missing_ok=True)
            return False
        os.close(fd)
        return True

    def _exit_reclaim(self) -> None:
        self.reclaim_path.unlink(missing_ok=True)
