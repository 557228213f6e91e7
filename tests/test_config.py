from __future__ import annotations

from pathlib import Path

import pytest

from spa_hosting.config import (
    DEFAULT_ALLOWED_EXTENSIONS,
    DEFAULT_BLOCKED_EXTENSIONS,
    DEFAULT_CORS_ORIGINS,
    DEFAULT_MAX_FILE_SIZE_BYTES,
    DEFAULT_MAX_UPLOAD_SIZE_BYTES,
    Settings,
    load_settings,
)
from spa_hosting.models.errors import (
    ConcurrentModification,
    ExtractionError,
    LockTimeout,
    PathTraversal,
    QuotaExceeded,
    SlugNotFound,
    StoreError,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "SPA_HOSTING_MAX_UPLOAD_BYTES",
        "SPA_HOSTING_MAX_RATIO",
        "SPA_HOSTING_RETAIN_VERSIONS",
        "SPA_HOSTING_LOCK_TIMEOUT_MS",
        "SPA_HOSTING_BLOCKED_EXTENSIONS",
        "SPA_HOSTING_ENTRY_POINT",
        "SPA_HOSTING_MAX_FILE_BYTES",
        "SPA_HOSTING_STRICT_EXTENSIONS",
        "SPA_HOSTING_ALLOWED_EXTENSIONS",
        "SPA_HOSTING_SCAN_CONTENT",
        "SPA_HOSTING_CORS_ORIGINS",
    ):
        monkeypatch.delenv(name, raising=False)


def test_load_settings_defaults(storage_root: Path) -> None:
    settings = load_settings()

    assert settings.storage_root == storage_root.resolve()
    assert settings.max_upload_size_bytes == DEFAULT_MAX_UPLOAD_SIZE_BYTES
    assert settings.entry_point_filename == "index.html"
    assert settings.blocked_extensions == DEFAULT_BLOCKED_EXTENSIONS
    assert settings.lock_timeout_seconds == 10.0
    assert settings.max_file_size_bytes == DEFAULT_MAX_FILE_SIZE_BYTES
    assert settings.strict_extensions is True
    assert settings.allowed_extensions == DEFAULT_ALLOWED_EXTENSIONS
    assert settings.scan_content is True
    assert settings.cors_origins == DEFAULT_CORS_ORIGINS


def test_load_settings_reads_environment(
    monkeypatch: pytest.MonkeyPatch, storage_root: Path
) -> None:
    monkeypatch.setenv("SPA_HOSTING_MAX_UPLOAD_BYTES", "1024")
    monkeypatch.setenv("SPA_HOSTING_MAX_RATIO", "12.5")
    monkeypatch.setenv("SPA_HOSTING_RETAIN_VERSIONS", "-1")
    monkeypatch.setenv("SPA_HOSTING_LOCK_TIMEOUT_MS", "250")
    monkeypatch.setenv("SPA_HOSTING_BLOCKED_EXTENSIONS", "PHP, .cgi,,")
    monkeypatch.setenv("SPA_HOSTING_ENTRY_POINT", "main.html")

    settings = load_settings()

    assert settings.max_upload_size_bytes == 1024
    assert settings.max_uncompressed_ratio == 12.5
    assert settings.retain_versions == -1
    assert settings.lock_timeout_seconds == 0.25
    assert settings.blocked_extensions == (".php", ".cgi")
    assert settings.entry_point_filename == "main.html"


def test_load_settings_reads_content_policy(
    monkeypatch: pytest.MonkeyPatch, storage_root: Path
) -> None:
    monkeypatch.setenv("SPA_HOSTING_MAX_FILE_BYTES", "2048")
    monkeypatch.setenv("SPA_HOSTING_STRICT_EXTENSIONS", "off")
    monkeypatch.setenv("SPA_HOSTING_ALLOWED_EXTENSIONS", "html, JS")
    monkeypatch.setenv("SPA_HOSTING_SCAN_CONTENT", "0")
    monkeypatch.setenv("SPA_HOSTING_CORS_ORIGINS", "https://admin.example.com, ")

    settings = load_settings()

    assert settings.max_file_size_bytes == 2048
    assert settings.strict_extensions is False
    assert settings.allowed_extensions == (".html", ".js")
    assert settings.scan_content is False
    assert settings.cors_origins == ("https://admin.example.com",)


def test_invalid_numbers_fall_back(monkeypatch: pytest.MonkeyPatch, storage_root: Path) -> None:
    monkeypatch.setenv("SPA_HOSTING_MAX_UPLOAD_BYTES", "lots")

    assert load_settings().max_upload_size_bytes == DEFAULT_MAX_UPLOAD_SIZE_BYTES


def test_with_overrides_copies(tmp_path: Path) -> None:
    settings = Settings(storage_root=tmp_path)

    changed = settings.with_overrides(retain_versions=0)

    assert changed.retain_versions == 0
    assert settings.retain_versions == 3
    assert changed.storage_root == tmp_path


@pytest.mark.parametrize(
    ("error", "retryable"),
    [
        (PathTraversal, False),
        (ExtractionError, True),
        (QuotaExceeded, False),
        (StoreError, True),
        (ConcurrentModification, True),
        (SlugNotFound, False),
        (LockTimeout, True),
    ],
)
def test_retryable_flags(error: type[Exception], retryable: bool) -> None:
    assert error.retryable is retryable
