"""Advisory lock for feature task execution.

Prevents two gba processes from deciding on and executing the same feature
record at the same time. The lock is an exclusive ``flock`` on a file next to
the state record; the holder's PID is written into it for diagnostics.
"""

import fcntl
import logging
import os
from pathlib import Path
from types import TracebackType
from typing import Optional

from ..exceptions import LockHeldError

logger = logging.getLogger(__name__)


class FeatureLock:
    """Exclusive, non-blocking lock bound to one decide-and-execute cycle.

    Usage:
        with FeatureLock(store.lock_path(feature_id), feature_id):
            # load, decide, execute - lock is held
            ...
        # Lock is released, also when the body raised

    Attributes:
        lock_path: Path to the lock file
        feature_id: Feature the lock protects
    """

    def __init__(self, lock_path: Path, feature_id: str) -> None:
        self.lock_path = lock_path
        self.feature_id = feature_id
        self._fd: Optional[int] = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> bool:
        """Try to acquire the lock without waiting.

        Returns:
            True if lock acquired, False if another open file holds it
        """
        if self._fd is not None:
            return True

        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(self.lock_path), os.O_CREAT | os.O_RDWR, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            return False

        os.ftruncate(fd, 0)
        os.write(fd, str(os.getpid()).encode())
        self._fd = fd
        logger.debug(f"Acquired lock {self.lock_path}")
        return True

    def release(self) -> None:
        """Release the lock. Safe to call when not held."""
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            os.ftruncate(fd, 0)
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
        logger.debug(f"Released lock {self.lock_path}")

    def get_holder_pid(self) -> Optional[int]:
        """Get PID recorded by the current holder, if readable."""
        try:
            content = self.lock_path.read_text().strip()
            return int(content)
        except (OSError, ValueError):
            return None

    def __enter__(self) -> "FeatureLock":
        """Acquire lock on context entry.

        Raises:
            LockHeldError: If the lock is held by another process or handle
        """
        if not self.acquire():
            raise LockHeldError(self.feature_id, self.get_holder_pid())
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        """Release lock on context exit."""
        self.release()
