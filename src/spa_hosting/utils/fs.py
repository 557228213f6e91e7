"""Filesystem helpers shared by the extractor and the project store."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def remove_tree(path: Path) -> bool:
    """Delete *path* and everything below it.

    Returns:
        True when nothing remains at *path* afterwards.
    """
    if not path.exists() and not path.is_symlink():
        return True
    if path.is_symlink() or path.is_file():
        path.unlink(missing_ok=True)
    else:
        shutil.rmtree(path, ignore_errors=True)
    if path.exists():
        logger.warning("Could not fully remove %s", path)
        return False
    return True


def atomic_rename(source: Path, destination: Path) -> None:
    """Move directory *source* to *destination* in a single rename.

    Both paths must be on the same filesystem; *destination* must not exist.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    os.rename(source, destination)


def fsync_directory(path: Path) -> None:
    """Flush a directory entry so a preceding rename survives a crash."""
    if os.name != "posix":
        return
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)
