"""Utility functions and helpers"""

from spa_hosting.utils.file_patterns import detect_build_tool, file_type, normalize_path
from spa_hosting.utils.fs import atomic_rename, fsync_directory, remove_tree
from spa_hosting.utils.ignore_patterns import get_default_ignore_patterns, is_ignored

__all__ = [
    "atomic_rename",
    "detect_build_tool",
    "file_type",
    "fsync_directory",
    "get_default_ignore_patterns",
    "is_ignored",
    "normalize_path",
    "remove_tree",
]
