"""Single-run guard for an output directory.

A publish run holds ``{output_dir}/.packrelay.lock`` for its whole duration.
The lock file is created with ``O_EXCL``, so a second run against the same
directory fails fast with ``RunLockedError`` instead of racing the first.
A lock left behind by a crashed run must be removed by hand.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from types import TracebackType

from packrelay.core.errors import PackrelayError

logger = logging.getLogger(__name__)

LOCK_FILENAME = ".packrelay.lock"


class RunLockedError(PackrelayError):
    """Raised when another run already holds the lock."""


class RunLock:
    """Exclusive lock file guarding one publish run.

    Parameters
    ----------
    directory:
        Directory the lock file lives in (created if missing).
    """

    def __init__(self, directory: Path, filename: str = LOCK_FILENAME) -> None:
        self.path = Path(directory) / filename
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as exc:
            try:
                owner = self.path.read_text(encoding="utf-8").strip()
            except OSError:
                owner = "unknown"
            raise RunLockedError(
                f"Another run holds {self.path} ({owner or 'unknown'})"
            ) from exc
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(f"pid={os.getpid()} since={datetime.now(timezone.utc).isoformat()}\n")
        self._held = True
        logger.debug("Acquired run lock %s", self.path)

    def release(self) -> None:
        if not self._held:
            return
        self.path.unlink(missing_ok=True)
        self._held = False
        logger.debug("Released run lock %s", self.path)

    def __enter__(self) -> RunLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
