from __future__ import annotations

import logging
import os
import time
from pathlib import Path

log = logging.getLogger(__name__)


DEFAULT_LOCK_PATH = "/tmp/watch_face_power_monitor.lock"


class RunLock:
    """Single-instance guard: the lock is held while the file exists.

    A process killed outright (power loss, SIGKILL) leaves the file behind and
    every later run skips. With ``stale_after_s`` unset that is left for an
    operator to clear; when set, a lock file older than the threshold is
    logged and taken over.
    """

    def __init__(self, path: str | Path = DEFAULT_LOCK_PATH, stale_after_s: float | None = None) -> None:
        self.path = Path(path)
        self.stale_after_s = stale_after_s
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def age_s(self) -> float | None:
        try:
            return time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return None

    def is_stale(self) -> bool:
        if self.stale_after_s is None:
            return False
        age = self.age_s()
        return age is not None and age > self.stale_after_s

    def _create(self) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(f"{os.getpid()} {int(time.time())}\n")
        return True

    def acquire(self) -> bool:
        if self._create():
            self._held = True
            return True
        if self.is_stale():
            log.warning("Lock %s is stale (%.0fs old), taking it over", self.path, self.age_s() or 0.0)
            self.path.unlink(missing_ok=True)
            if self._create():
                self._held = True
                return True
        return False

    def release(self) -> None:
        if self._held:
            self.path.unlink(missing_ok=True)
            self._held = False

    def __enter__(self) -> "RunLock":
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()
