from __future__ import annotations

import io
import os
import stat
import time
from pathlib import Path
from zipfile import ZIP_DEFLATED, ZipFile, ZipInfo

import pytest

from spa_hosting.config import Settings
from spa_hosting.models.errors import QuotaExceeded, TraversalAttempt
from spa_hosting.models.package import ArchiveEntry, ValidatedArchive, ValidationResult
from spa_hosting.services.archive_validator import ArchiveValidator
from spa_hosting.services.safe_extractor import SafeExtractor, get_staging_root

INDEX_HTML = b"<!doctype html><html><body><div id='root'></div></body></html>\n"
APP_JS = b"document.getElementById('root').textContent = 'hello';\n"
APP_CSS = b"#root { font-family: sans-serif; }\n"


def _create_zip_bytes(entries: list[tuple[str, bytes]]) -> bytes:
    buffer = io.BytesIO()
    with ZipFile(buffer, "w", ZIP_DEFLATED) as archive:
        for name, data in entries:
            archive.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture
def validator(settings: Settings) -> ArchiveValidator:
    return ArchiveValidator(settings)


@pytest.fixture
def extractor(settings: Settings) -> SafeExtractor:
    return SafeExtractor(settings)


def test_extract_writes_flattened_tree(
    validator: ArchiveValidator, extractor: SafeExtractor, storage_root: Path
) -> None:
    data = _create_zip_bytes(
        [
            ("dist/index.html", INDEX_HTML),
            ("dist/assets/app.js", APP_JS),
            ("dist/assets/app.css", APP_CSS),
        ]
    )

    with validator.open(data) as validated:
        location = extractor.extract(validated)

    assert location.path.parent == get_staging_root(storage_root)
    assert (location.path / "index.html").read_bytes() == INDEX_HTML
    assert (location.path / "assets" / "app.js").read_bytes() == APP_JS
    assert not (location.path / "dist").exists()
    assert location.file_count == 3
    assert location.size_bytes == len(INDEX_HTML) + len(APP_JS) + len(APP_CSS)
    assert location.file_types["html"] == {"count": 1, "size": len(INDEX_HTML)}
    assert location.file_types["javascript"]["count"] == 1
    assert location.file_types["stylesheet"]["count"] == 1


def test_extract_detects_build_tool(validator: ArchiveValidator, extractor: SafeExtractor) -> None:
    data = _create_zip_bytes(
        [
            ("index.html", INDEX_HTML),
            (".vite/manifest.json", b'{"index.html": {"file": "assets/index.js"}}'),
            ("assets/index.js", APP_JS),
        ]
    )

    with validator.open(data) as validated:
        location = extractor.extract(validated)

    assert location.build_tool == "vite"


def test_extract_quota_removes_staging(
    validator: ArchiveValidator, extractor: SafeExtractor, storage_root: Path
) -> None:
    data = _create_zip_bytes([("index.html", INDEX_HTML), ("assets/app.js", APP_JS)])

    with validator.open(data) as validated, pytest.raises(QuotaExceeded):
        extractor.extract(validated, max_bytes=len(INDEX_HTML) + 1)

    assert list(get_staging_root(storage_root).iterdir()) == []


def test_extract_rejects_entry_outside_staging(
    validator: ArchiveValidator, extractor: SafeExtractor, storage_root: Path
) -> None:
    data = _create_zip_bytes([("index.html", INDEX_HTML)])
    forged = ArchiveEntry(
        name="index.html", path="../escaped.html", size=len(INDEX_HTML), compressed_size=1
    )

    with validator.open(data) as validated:
        tampered = ValidatedArchive(
            source=validated.source,
            result=ValidationResult(
                content_hash=validated.result.content_hash,
                archive_size=validated.result.archive_size,
                total_uncompressed=len(INDEX_HTML),
                file_count=1,
                root_prefix="",
                entry_point="index.html",
                entries=[forged],
            ),
        )
        with pytest.raises(TraversalAttempt):
            extractor.extract(tampered)

    staging_root = get_staging_root(storage_root)
    assert list(staging_root.iterdir()) == []
    assert not (staging_root / "escaped.html").exists()


def test_extract_creates_internal_symlink(
    validator: ArchiveValidator, extractor: SafeExtractor
) -> None:
    buffer = io.BytesIO()
    with ZipFile(buffer, "w", ZIP_DEFLATED) as archive:
        archive.writestr("index.html", INDEX_HTML)
        info = ZipInfo("assets/home.html")
        info.external_attr = (stat.S_IFLNK | 0o777) << 16
        archive.writestr(info, "../index.html")

    with validator.open(buffer.getvalue()) as validated:
        location = extractor.extract(validated)

    link = location.path / "assets" / "home.html"
    assert link.is_symlink()
    assert link.read_bytes() == INDEX_HTML


def test_extract_rejects_link_chain_leaving_staging(
    extractor: SafeExtractor, storage_root: Path
) -> None:
    buffer = io.BytesIO()
    with ZipFile(buffer, "w", ZIP_DEFLATED) as archive:
        archive.writestr("index.html", INDEX_HTML)
        for name, target in (("z", "y/.."), ("y", ".")):
            info = ZipInfo(name)
            info.external_attr = (stat.S_IFLNK | 0o777) << 16
            archive.writestr(info, target)
    data = buffer.getvalue()
    entries = [
        ArchiveEntry(name="index.html", path="index.html", size=len(INDEX_HTML), compressed_size=1),
        ArchiveEntry(name="z", path="z", size=4, compressed_size=4, link_target="y/.."),
        ArchiveEntry(name="y", path="y", size=1, compressed_size=1, link_target="."),
    ]
    unchecked = ValidatedArchive(
        source=io.BytesIO(data),
        result=ValidationResult(
            content_hash="0" * 64,
            archive_size=len(data),
            total_uncompressed=len(INDEX_HTML),
            file_count=3,
            root_prefix="",
            entry_point="index.html",
            entries=entries,
        ),
    )

    with pytest.raises(TraversalAttempt):
        extractor.extract(unchecked)

    assert list(get_staging_root(storage_root).iterdir()) == []


def test_extract_enforces_per_file_limit(
    validator: ArchiveValidator, settings: Settings, storage_root: Path
) -> None:
    extractor = SafeExtractor(settings.with_overrides(max_file_size_bytes=len(APP_JS)))
    data = _create_zip_bytes([("index.html", INDEX_HTML), ("assets/app.js", APP_JS)])

    with validator.open(data) as validated, pytest.raises(QuotaExceeded, match="per-file"):
        extractor.extract(validated)

    assert list(get_staging_root(storage_root).iterdir()) == []


def test_sweep_stale_removes_only_old_directories(
    extractor: SafeExtractor, storage_root: Path
) -> None:
    staging_root = get_staging_root(storage_root)
    old = staging_root / "old"
    fresh = staging_root / "fresh"
    (old / "assets").mkdir(parents=True)
    fresh.mkdir()
    past = time.time() - 7200
    os.utime(old, (past, past))

    removed = extractor.sweep_stale(max_age_seconds=3600)

    assert removed == 1
    assert not old.exists()
    assert fresh.exists()


def test_sweep_stale_without_staging_directory(extractor: SafeExtractor) -> None:
    assert extractor.sweep_stale() == 0
