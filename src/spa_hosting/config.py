"""Runtime configuration for the package ingestion pipeline.

Settings are read from environment variables. A ``.env`` file in the working
directory is loaded first so local deployments can keep their limits next to
the code. Invalid numeric values fall back to the defaults below.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_MAX_UPLOAD_SIZE_BYTES = 50 * 1024 * 1024
DEFAULT_MAX_UNCOMPRESSED_RATIO = 100
DEFAULT_MAX_FILE_COUNT = 1000
DEFAULT_MAX_PATH_DEPTH = 10
DEFAULT_RETAIN_VERSIONS = 3
DEFAULT_LOCK_TIMEOUT_MS = 10_000
DEFAULT_ENTRY_POINT = "index.html"
DEFAULT_BLOCKED_EXTENSIONS = (".php", ".exe", ".bat", ".sh", ".py", ".rb")
DEFAULT_ALLOWED_EXTENSIONS = (
    ".js", ".jsx", ".ts", ".tsx", ".css", ".scss", ".sass", ".less",
    ".html", ".htm", ".json", ".map", ".txt", ".md", ".svg", ".png",
    ".jpg", ".jpeg", ".gif", ".webp", ".ico", ".woff", ".woff2",
    ".ttf", ".eot", ".otf", ".mp4", ".webm", ".ogg", ".mp3", ".wav",
)  # fmt: skip
DEFAULT_MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024
DEFAULT_STAGING_MAX_AGE_SECONDS = 24 * 60 * 60
DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://localhost:5173", "http://127.0.0.1:3000")


def get_default_storage_root() -> Path:
    """Return the storage root used when ``SPA_HOSTING_ROOT`` is unset."""
    project_root = Path(__file__).resolve().parents[2]
    return project_root / ".spa_projects"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def _env_csv(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.getenv(name)
    if value is None:
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _env_extensions(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.getenv(name)
    if value is None:
        return default
    extensions = []
    for raw in value.split(","):
        ext = raw.strip().lower()
        if not ext:
            continue
        extensions.append(ext if ext.startswith(".") else f".{ext}")
    return tuple(extensions)


@dataclass(frozen=True, slots=True)
class Settings:
    """Limits and policies applied to uploads, extraction and retention.

    Attributes:
        storage_root: Directory holding ``<slug>/<version>`` trees, staging
            directories and lock files.
        max_upload_size_bytes: Ceiling for both the uploaded archive and the
            total uncompressed size of its entries.
        max_uncompressed_ratio: Highest accepted uncompressed:compressed ratio.
        max_file_count: Highest accepted number of file entries.
        max_file_size_bytes: Highest accepted uncompressed size of a single
            entry.
        max_path_depth: Highest accepted number of directory separators in an
            entry name.
        retain_versions: Prior versions kept per slug after a promotion.
            Negative values keep every version.
        lock_timeout_ms: How long an operation waits for the per-slug lock.
        entry_point_filename: File a project must expose at its root.
        blocked_extensions: File extensions refused inside an archive.
        strict_extensions: Only accept files whose extension is listed in
            ``allowed_extensions``.
        allowed_extensions: Extensions accepted when ``strict_extensions`` is on.
        scan_content: Reject text files containing server-side code or
            script injection patterns.
        delete_grace_seconds: Delay between hiding a project from readers and
            removing its files.
        staging_max_age_seconds: Age after which abandoned staging
            directories are swept.
        cors_origins: Browser origins allowed to call the HTTP API.
    """

    storage_root: Path = field(default_factory=get_default_storage_root)
    max_upload_size_bytes: int = DEFAULT_MAX_UPLOAD_SIZE_BYTES
    max_uncompressed_ratio: float = DEFAULT_MAX_UNCOMPRESSED_RATIO
    max_file_count: int = DEFAULT_MAX_FILE_COUNT
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES
    max_path_depth: int = DEFAULT_MAX_PATH_DEPTH
    retain_versions: int = DEFAULT_RETAIN_VERSIONS
    lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS
    entry_point_filename: str = DEFAULT_ENTRY_POINT
    blocked_extensions: tuple[str, ...] = DEFAULT_BLOCKED_EXTENSIONS
    strict_extensions: bool = True
    allowed_extensions: tuple[str, ...] = DEFAULT_ALLOWED_EXTENSIONS
    scan_content: bool = True
    delete_grace_seconds: float = 0.0
    staging_max_age_seconds: int = DEFAULT_STAGING_MAX_AGE_SECONDS
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS

    @property
    def lock_timeout_seconds(self) -> float:
        return self.lock_timeout_ms / 1000

    def with_overrides(self, **changes: object) -> Settings:
        """Return a copy of these settings with *changes* applied."""
        return replace(self, **changes)


def load_settings() -> Settings:
    """Build :class:`Settings` from the environment."""
    load_dotenv()

    env_root = os.getenv("SPA_HOSTING_ROOT")
    storage_root = (
        Path(env_root).expanduser().resolve() if env_root else get_default_storage_root()
    )

    return Settings(
        storage_root=storage_root,
        max_upload_size_bytes=_env_int(
            "SPA_HOSTING_MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_SIZE_BYTES
        ),
        max_uncompressed_ratio=_env_float("SPA_HOSTING_MAX_RATIO", DEFAULT_MAX_UNCOMPRESSED_RATIO),
        max_file_count=_env_int("SPA_HOSTING_MAX_FILES", DEFAULT_MAX_FILE_COUNT),
        max_file_size_bytes=_env_int("SPA_HOSTING_MAX_FILE_BYTES", DEFAULT_MAX_FILE_SIZE_BYTES),
        max_path_depth=_env_int("SPA_HOSTING_MAX_PATH_DEPTH", DEFAULT_MAX_PATH_DEPTH),
        retain_versions=_env_int("SPA_HOSTING_RETAIN_VERSIONS", DEFAULT_RETAIN_VERSIONS),
        lock_timeout_ms=_env_int("SPA_HOSTING_LOCK_TIMEOUT_MS", DEFAULT_LOCK_TIMEOUT_MS),
        entry_point_filename=os.getenv("SPA_HOSTING_ENTRY_POINT") or DEFAULT_ENTRY_POINT,
        blocked_extensions=_env_extensions(
            "SPA_HOSTING_BLOCKED_EXTENSIONS", DEFAULT_BLOCKED_EXTENSIONS
        ),
        strict_extensions=_env_bool("SPA_HOSTING_STRICT_EXTENSIONS", True),
        allowed_extensions=_env_extensions(
            "SPA_HOSTING_ALLOWED_EXTENSIONS", DEFAULT_ALLOWED_EXTENSIONS
        ),
        scan_content=_env_bool("SPA_HOSTING_SCAN_CONTENT", True),
        delete_grace_seconds=_env_float("SPA_HOSTING_DELETE_GRACE_SECONDS", 0.0),
        staging_max_age_seconds=_env_int(
            "SPA_HOSTING_STAGING_MAX_AGE", DEFAULT_STAGING_MAX_AGE_SECONDS
        ),
        cors_origins=_env_csv("SPA_HOSTING_CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
    )
