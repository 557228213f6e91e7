"""Per-slug mutual exclusion shared by threads and processes."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout

from spa_hosting.models.errors import LockTimeout

logger = logging.getLogger(__name__)

LOCK_DIR_NAME = ".locks"


class SlugLocks:
    """Hands out exclusive, timeout-bounded locks keyed by slug.

    Each lock is a file under ``<root>/.locks``. Lock files are left in place
    after release; removing them would let two holders lock different inodes.
    """

    def __init__(self, storage_root: Path, timeout_seconds: float) -> None:
        self.lock_dir = storage_root / LOCK_DIR_NAME
        self.timeout_seconds = timeout_seconds

    def lock_path(self, slug: str) -> Path:
        return self.lock_dir / f"{slug}.lock"

    @contextmanager
    def hold(self, slug: str, timeout_seconds: float | None = None) -> Iterator[None]:
        """Hold the lock for *slug* for the duration of the block.

        Raises:
            LockTimeout: If the lock is not acquired within the timeout.
        """
        timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        lock = FileLock(self.lock_path(slug), timeout=timeout)
        try:
            lock.acquire()
        except Timeout as exc:
            logger.warning("Timed out after %.1fs waiting for the lock on %s", timeout, slug)
            raise LockTimeout(f"Project '{slug}' is busy; try again shortly.") from exc
        try:
            yield
        finally:
            lock.release()
