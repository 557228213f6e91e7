from __future__ import annotations

from collections.abc import Iterable

# Folders and files added by archivers rather than by the application build.
ARCHIVE_JUNK_PATTERNS: tuple[str, ...] = ("__MACOSX", ".DS_Store", "Thumbs.db", "desktop.ini")


def get_default_ignore_patterns() -> list[str]:
    """Return path segments that are skipped when reading an archive."""

    return list(ARCHIVE_JUNK_PATTERNS)


def is_ignored(segments: Iterable[str], ignore_patterns: Iterable[str] | None = None) -> bool:
    """Check if any segment in the path matches ignore patterns."""

    patterns = set(ignore_patterns) if ignore_patterns is not None else set(ARCHIVE_JUNK_PATTERNS)
    return any(part in patterns for part in segments)
