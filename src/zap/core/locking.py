"""Exclusive advisory lock around mutating operations.

One lock file per config root. The lock is re-entrant within a process so
that a mutating operation can call other mutating helpers.
"""

import fcntl
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from zap.core.exceptions import ConfigBusy


class ConfigLock:
    """Non-blocking exclusive flock on ``<config-root>/.lock``."""

    def __init__(self, lock_path: Path) -> None:
        self.lock_path = lock_path
        self._fd: Optional[int] = None
        self._depth = 0

    @property
    def held(self) -> bool:
        return self._depth > 0

    @contextmanager
    def hold(self) -> Generator[None, None, None]:
        """Hold the lock for the duration of the block.

        Raises:
            ConfigBusy: If another process holds the lock
        """
        if self._depth == 0:
            self._acquire()
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1
            if self._depth == 0:
                self._release()

    def _acquire(self) -> None:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o600)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            raise ConfigBusy(
                f"Configuration is locked by another zap process ({self.lock_path})",
                hint="Wait for the other command to finish and retry",
            )
        self._fd = fd

    def _release(self) -> None:
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
