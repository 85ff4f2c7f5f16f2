"""
Process Lock
============

An advisory ``flock`` on a small file in a lock directory. ``sync`` and
``watch`` take one per RSS configuration so two processes never run a cycle
for the same feed at once; ``status`` reads the holder's PID from the file.
"""

import fcntl
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from .exceptions import ProcessLockError

logger = logging.getLogger(__name__)


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class ProcessLock:
    """Non-blocking exclusive lock on ``<lock_dir>/<lock_name>.lock``.

    The holder writes its PID into the file and removes the file on release.
    Used as a context manager it raises ``ProcessLockError`` when the lock is
    taken.
    """

    def __init__(self, lock_name: str, lock_dir: Optional[str] = None):
        self.lock_name = lock_name
        self.lock_file = Path(lock_dir or tempfile.gettempdir()) / f"{lock_name}.lock"
        self._fd: Optional[int] = None

    @property
    def acquired(self) -> bool:
        return self._fd is not None

    def acquire(self) -> bool:
        """Take the lock if it is free. Returns False when someone else holds it."""
        if self.acquired:
            return True

        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.lock_file, os.O_CREAT | os.O_RDWR, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            holder = self.get_holder_pid()
            logger.warning(
                f"{self.lock_name} is held by "
                + (f"PID {holder}" if holder else "another process")
            )
            return False

        # the PID is written only after the flock succeeds
        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        os.fsync(fd)
        self._fd = fd
        logger.debug(f"Acquired {self.lock_file}")
        return True

    def release(self) -> None:
        if not self.acquired:
            return
        fd, self._fd = self._fd, None
        try:
            self.lock_file.unlink(missing_ok=True)
            fcntl.flock(fd, fcntl.LOCK_UN)
        except OSError as e:
            logger.warning(f"Releasing {self.lock_file} failed: {e}")
        finally:
            os.close(fd)
        logger.debug(f"Released {self.lock_file}")

    def get_holder_pid(self) -> Optional[int]:
        """PID recorded in the lock file, if that process is still alive."""
        try:
            pid = int(self.lock_file.read_text().strip())
        except (OSError, ValueError):
            return None
        return pid if _pid_alive(pid) else None

    def __enter__(self) -> "ProcessLock":
        if not self.acquire():
            raise ProcessLockError(self.lock_name, self.get_holder_pid())
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


def sync_lock_for(config_id: str, lock_dir: Optional[str] = None) -> ProcessLock:
    return ProcessLock(f"zenbridge-sync-{config_id}", lock_dir=lock_dir)
