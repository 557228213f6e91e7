"""Extraction of validated archives into isolated staging directories."""

from __future__ import annotations

import logging
import os
import time
import uuid
from pathlib import Path
from zipfile import BadZipFile, ZipFile

from spa_hosting.config import Settings, load_settings
from spa_hosting.models.errors import ExtractionError, QuotaExceeded, TraversalAttempt
from spa_hosting.models.package import ArchiveEntry, ExtractedLocation, ValidatedArchive
from spa_hosting.utils.file_patterns import detect_build_tool, file_type
from spa_hosting.utils.fs import remove_tree

logger = logging.getLogger(__name__)

STAGING_DIR_NAME = ".staging"
_STREAM_CHUNK_SIZE = 1024 * 1024


def get_staging_root(storage_root: Path) -> Path:
    """Return the directory that holds in-progress extractions."""
    return storage_root / STAGING_DIR_NAME


class SafeExtractor:
    """Writes validated archives into ``<root>/.staging/<uuid>``.

    A staging directory is either returned fully written or removed before
    the error propagates.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or load_settings()

    def extract(
        self,
        archive: ValidatedArchive,
        destination_root: Path | None = None,
        max_bytes: int | None = None,
    ) -> ExtractedLocation:
        """Extract *archive* into a fresh staging directory.

        Args:
            archive: Archive returned by ``ArchiveValidator.open``.
            destination_root: Storage root; defaults to ``settings.storage_root``.
            max_bytes: Ceiling on decompressed bytes; defaults to
                ``settings.max_upload_size_bytes``.

        Returns:
            ExtractedLocation describing the written staging directory.

        Raises:
            QuotaExceeded: More bytes decompressed than allowed.
            TraversalAttempt: An output path resolved outside the staging root.
            ExtractionError: Any I/O or archive read failure.
        """
        root = destination_root or self.settings.storage_root
        ceiling = max_bytes if max_bytes is not None else self.settings.max_upload_size_bytes

        staging_parent = get_staging_root(root)
        try:
            staging_parent.mkdir(parents=True, exist_ok=True)
            staging = staging_parent / uuid.uuid4().hex
            staging.mkdir()
        except OSError as exc:
            raise ExtractionError(f"Could not create a staging directory: {exc}") from exc

        try:
            try:
                location = self._write_entries(archive, staging, ceiling)
            except (OSError, BadZipFile) as exc:
                raise ExtractionError(f"Extraction failed: {exc}") from exc
        except BaseException:
            remove_tree(staging)
            raise

        logger.debug(
            "Extracted %d files (%d bytes) into %s",
            location.file_count,
            location.size_bytes,
            location.path,
        )
        return location

    def _write_entries(
        self, archive: ValidatedArchive, staging: Path, ceiling: int
    ) -> ExtractedLocation:
        staging_root = staging.resolve()
        written = 0
        file_count = 0
        file_types: dict[str, dict[str, int]] = {}

        per_file = self.settings.max_file_size_bytes
        files = [entry for entry in archive.result.entries if not entry.is_symlink]
        links = [entry for entry in archive.result.entries if entry.is_symlink]

        archive.source.seek(0)
        with ZipFile(archive.source) as zf:
            for entry in files:
                target = self._target_path(staging_root, entry)
                target.parent.mkdir(parents=True, exist_ok=True)

                size = 0
                with zf.open(entry.name) as source, open(target, "wb") as destination:
                    for chunk in iter(lambda: source.read(_STREAM_CHUNK_SIZE), b""):
                        written += len(chunk)
                        size += len(chunk)
                        if written > ceiling:
                            raise QuotaExceeded(f"Extraction exceeded the {ceiling} byte limit.")
                        if size > per_file:
                            raise QuotaExceeded(
                                f"{entry.path} exceeded the {per_file} byte per-file limit."
                            )
                        destination.write(chunk)
                    destination.flush()
                    os.fsync(destination.fileno())

                file_count += 1
                bucket = file_types.setdefault(file_type(entry.path), {"count": 0, "size": 0})
                bucket["count"] += 1
                bucket["size"] += size

        # Links are created only after every regular file is written.
        link_paths: list[Path] = []
        for entry in links:
            target = self._target_path(staging_root, entry)
            target.parent.mkdir(parents=True, exist_ok=True)
            self._write_symlink(staging_root, target, entry)
            link_paths.append(target)
            file_count += 1
            bucket = file_types.setdefault(file_type(entry.path), {"count": 0, "size": 0})
            bucket["count"] += 1
        for link in link_paths:
            if not Path(os.path.realpath(link)).is_relative_to(staging_root):
                raise TraversalAttempt(f"Link {link.name} resolves outside the staging directory.")

        entry_point = staging_root / archive.result.entry_point
        if not entry_point.is_file():
            raise ExtractionError(f"{archive.result.entry_point} is missing after extraction.")

        return ExtractedLocation(
            path=staging,
            size_bytes=written,
            file_count=file_count,
            file_types=file_types,
            build_tool=detect_build_tool(entry.path for entry in archive.result.entries),
        )

    @staticmethod
    def _target_path(staging_root: Path, entry: ArchiveEntry) -> Path:
        target = staging_root.joinpath(*entry.path.split("/"))
        resolved_parent = target.parent.resolve()
        if not resolved_parent.is_relative_to(staging_root) or target.name in {"", ".", ".."}:
            raise TraversalAttempt(f"Entry {entry.name} resolves outside the staging directory.")
        return resolved_parent / target.name

    @staticmethod
    def _write_symlink(staging_root: Path, link: Path, entry: ArchiveEntry) -> None:
        link_target = entry.link_target or ""
        if not (link.parent / link_target).resolve().is_relative_to(staging_root):
            raise TraversalAttempt(f"Link {entry.name} resolves outside the staging directory.")
        if link.is_symlink() or link.exists():
            link.unlink()
        os.symlink(link_target, link)

    def discard(self, location: ExtractedLocation) -> None:
        """Remove a staging directory that will not be promoted."""
        remove_tree(location.path)

    def sweep_stale(
        self, max_age_seconds: int | None = None, destination_root: Path | None = None
    ) -> int:
        """Remove staging directories left behind by interrupted uploads.

        Returns:
            Number of directories removed.
        """
        max_age = (
            max_age_seconds if max_age_seconds is not None else self.settings.staging_max_age_seconds
        )
        staging_parent = get_staging_root(destination_root or self.settings.storage_root)
        if not staging_parent.is_dir():
            return 0

        cutoff = time.time() - max_age
        removed = 0
        for candidate in staging_parent.iterdir():
            try:
                modified = candidate.stat().st_mtime
            except FileNotFoundError:
                continue
            if modified > cutoff:
                continue
            if remove_tree(candidate):
                removed += 1
        if removed:
            logger.info("Removed %d stale staging directories from %s", removed, staging_parent)
        return removed
