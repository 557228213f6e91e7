"""File pattern helpers for classifying the contents of an application build."""

from __future__ import annotations

from collections.abc import Iterable
from fnmatch import fnmatch
from pathlib import PurePosixPath

FILE_TYPE_EXTENSIONS: dict[str, tuple[str, ...]] = {
    "html": (".html", ".htm"),
    "javascript": (".js", ".mjs", ".cjs", ".jsx"),
    "typescript": (".ts", ".tsx"),
    "stylesheet": (".css",),
    "json": (".json", ".webmanifest"),
    "sourcemap": (".map",),
    "image": (".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".ico", ".avif", ".bmp"),
    "font": (".woff", ".woff2", ".ttf", ".otf", ".eot"),
    "media": (".mp3", ".mp4", ".webm", ".wav", ".ogg"),
    "text": (".txt", ".md", ".xml"),
    "wasm": (".wasm",),
}

_EXTENSION_TO_TYPE: dict[str, str] = {
    ext: file_kind for file_kind, extensions in FILE_TYPE_EXTENSIONS.items() for ext in extensions
}

SCRIPT_EXTENSIONS: set[str] = {".js", ".mjs"}
STYLESHEET_EXTENSIONS: set[str] = {".css"}

# Checked in order; the first tool with a matching path wins.
BUILD_TOOL_PATTERNS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("vite", (".vite/manifest.json", "*vite*")),
    ("create-react-app", ("asset-manifest.json", "static/js/main.*.js")),
    ("webpack", ("*webpack*",)),
    ("parcel", ("*parcel*",)),
)


def normalize_path(path: str) -> str:
    """Normalize file path to POSIX-style for consistent pattern matching."""
    return path.replace("\\", "/").strip()


def file_type(path: str) -> str:
    """Return the file type bucket a path falls into, or ``"other"``."""
    suffix = PurePosixPath(normalize_path(path)).suffix.lower()
    return _EXTENSION_TO_TYPE.get(suffix, "other")


def is_script(path: str) -> bool:
    """Return True if a path is a script the browser loads directly."""
    suffix = PurePosixPath(normalize_path(path)).suffix.lower()
    return suffix in SCRIPT_EXTENSIONS


def is_stylesheet(path: str) -> bool:
    """Return True if a path is a stylesheet."""
    suffix = PurePosixPath(normalize_path(path)).suffix.lower()
    return suffix in STYLESHEET_EXTENSIONS


def detect_build_tool(paths: Iterable[str]) -> str:
    """Guess which bundler produced a build from its file names."""
    normalized = [normalize_path(path) for path in paths]
    for tool, patterns in BUILD_TOOL_PATTERNS:
        for path in normalized:
            filename = PurePosixPath(path).name
            if any(fnmatch(path, pattern) or fnmatch(filename, pattern) for pattern in patterns):
                return tool
    return "unknown"
