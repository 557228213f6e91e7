"""Inspection of uploaded application archives.

The validator never writes to the extraction target. It spools the upload
into a temporary file while hashing and counting it, then reads the ZIP
central directory, and the text entries when content scanning is on, to
decide whether the archive is safe to extract.
"""

from __future__ import annotations

import hashlib
import io
import logging
import re
import stat
import tempfile
from pathlib import PurePosixPath
from typing import BinaryIO
from zipfile import BadZipFile, LargeZipFile, ZipFile, ZipInfo

from spa_hosting.config import Settings, load_settings
from spa_hosting.models.errors import (
    DisallowedFile,
    EmptyArchive,
    MissingEntryPoint,
    NotAZip,
    PathTraversal,
    SuspiciousContent,
    TooLarge,
    ValidationError,
)
from spa_hosting.models.package import ArchiveEntry, ValidatedArchive, ValidationResult
from spa_hosting.utils.ignore_patterns import get_default_ignore_patterns, is_ignored

logger = logging.getLogger(__name__)

_STREAM_CHUNK_SIZE = 1024 * 1024
_SPOOL_IN_MEMORY_BYTES = 8 * 1024 * 1024
_MAX_COMPONENT_LENGTH = 255
_DRIVE_LETTER = re.compile(r"^[A-Za-z]:")
_TEXT_EXTENSIONS = frozenset(
    {".js", ".jsx", ".ts", ".tsx", ".css", ".scss", ".sass", ".less", ".html", ".htm",
     ".json", ".txt", ".md", ".xml", ".svg"}
)  # fmt: skip
_SUSPICIOUS_PATTERNS = (
    re.compile(r"<\?php", re.IGNORECASE),
    re.compile(r"<script[^>]*?src\s*=\s*[\"']?https?://(?!localhost)", re.IGNORECASE),
    re.compile(r"\beval\s*\(", re.IGNORECASE),
    re.compile(r"document\.write\s*\(", re.IGNORECASE),
    re.compile(r"innerHTML\s*=[^;]*?<script", re.IGNORECASE),
)


def _spool_stream(source: BinaryIO, limit: int) -> tuple[BinaryIO, str, int]:
    """Copy *source* into a spooled temporary file, hashing as it goes.

    Raises:
        TooLarge: As soon as more than *limit* bytes have been read.
    """
    spool = tempfile.SpooledTemporaryFile(max_size=_SPOOL_IN_MEMORY_BYTES)
    hasher = hashlib.sha256()
    size = 0
    try:
        for chunk in iter(lambda: source.read(_STREAM_CHUNK_SIZE), b""):
            size += len(chunk)
            if size > limit:
                raise TooLarge(f"Archive exceeds the {limit} byte upload limit.")
            hasher.update(chunk)
            spool.write(chunk)
    except BaseException:
        spool.close()
        raise
    spool.seek(0)
    return spool, hasher.hexdigest(), size


def split_entry_path(name: str) -> list[str]:
    """Split an archive entry name into safe path segments.

    Backslashes are treated as separators and ``.`` segments are dropped.

    Raises:
        PathTraversal: If the name is absolute, carries a drive letter or NUL
            byte, or contains a ``..`` segment.
    """
    if "\x00" in name:
        raise PathTraversal(f"Entry name contains a NUL byte: {name!r}")
    normalized = name.replace("\\", "/")
    if normalized.startswith("/") or _DRIVE_LETTER.match(normalized):
        raise PathTraversal(f"Absolute entry path is not allowed: {name}")

    segments: list[str] = []
    for part in PurePosixPath(normalized).parts:
        if part in {"", "."}:
            continue
        if part == "..":
            raise PathTraversal(f"Entry path escapes the extraction root: {name}")
        segments.append(part)
    return segments


def _symlink_target(archive: ZipFile, info: ZipInfo) -> str | None:
    mode = info.external_attr >> 16
    if not stat.S_ISLNK(mode):
        return None
    try:
        return archive.read(info).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise PathTraversal(f"Symbolic link {info.filename} has an unreadable target.") from exc


def _check_symlink(entry: ArchiveEntry, link_paths: set[str]) -> None:
    """Walk the link target one segment at a time.

    Targets may not leave the project or pass through another link of the
    same archive.
    """
    target = (entry.link_target or "").replace("\\", "/")
    if not target or target.startswith("/") or _DRIVE_LETTER.match(target):
        raise PathTraversal(f"Symbolic link {entry.name} points outside the project.")

    resolved = entry.path.split("/")[:-1]
    for part in target.split("/"):
        if part in {"", "."}:
            continue
        if part == "..":
            if not resolved:
                raise PathTraversal(f"Symbolic link {entry.name} points outside the project.")
            resolved.pop()
            continue
        resolved.append(part)
        if "/".join(resolved) in link_paths:
            raise PathTraversal(f"Symbolic link {entry.name} points through another link.")


def _check_link_parents(entry: ArchiveEntry, link_paths: set[str]) -> None:
    parts = entry.path.split("/")
    for depth in range(1, len(parts)):
        if "/".join(parts[:depth]) in link_paths:
            raise PathTraversal(f"Entry {entry.name} is nested under a symbolic link.")


class ArchiveValidator:
    """Validates uploaded ZIP archives against the configured limits."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or load_settings()
        self._ignore_patterns = set(get_default_ignore_patterns())

    def validate(
        self, source: BinaryIO | bytes, max_size_bytes: int | None = None
    ) -> ValidationResult:
        """Inspect *source* and describe the archive it holds.

        Args:
            source: Binary stream or bytes of the uploaded archive.
            max_size_bytes: Overrides ``settings.max_upload_size_bytes``.

        Returns:
            ValidationResult with sizes, entry list and version hash.

        Raises:
            ValidationError: One of its subclasses describing the rejection.
        """
        with self.open(source, max_size_bytes) as validated:
            return validated.result

    def open(
        self, source: BinaryIO | bytes, max_size_bytes: int | None = None
    ) -> ValidatedArchive:
        """Validate *source* and keep its spooled bytes for extraction.

        The caller owns the returned archive and must close it.
        """
        limit = max_size_bytes if max_size_bytes is not None else self.settings.max_upload_size_bytes
        stream = io.BytesIO(source) if isinstance(source, bytes | bytearray) else source

        try:
            spool, content_hash, archive_size = _spool_stream(stream, limit)
            try:
                result = self._inspect(spool, content_hash, archive_size, limit)
            except BaseException:
                spool.close()
                raise
        except ValidationError as exc:
            logger.warning("Rejected archive: %s", exc)
            raise

        spool.seek(0)
        return ValidatedArchive(source=spool, result=result)

    def _inspect(
        self, spool: BinaryIO, content_hash: str, archive_size: int, limit: int
    ) -> ValidationResult:
        if archive_size == 0:
            raise NotAZip("The uploaded file is empty.")
        try:
            with ZipFile(spool) as archive:
                entries, compressed_total = self._collect_entries(archive, limit)
                if not entries:
                    raise EmptyArchive("The archive does not contain any files.")

                total_uncompressed = sum(entry.size for entry in entries)
                self._check_ratio(total_uncompressed, compressed_total)
                if self.settings.scan_content:
                    self._scan_contents(archive, entries)
        except (BadZipFile, LargeZipFile) as exc:
            raise NotAZip("The uploaded file is not a valid ZIP archive.") from exc

        root_prefix = self._find_root_prefix(entries)
        for entry in entries:
            entry.path = entry.path[len(root_prefix) :]

        link_paths = {entry.path for entry in entries if entry.is_symlink}
        if link_paths:
            for entry in entries:
                _check_link_parents(entry, link_paths)
                if entry.is_symlink:
                    _check_symlink(entry, link_paths)

        return ValidationResult(
            content_hash=content_hash,
            archive_size=archive_size,
            total_uncompressed=total_uncompressed,
            file_count=len(entries),
            root_prefix=root_prefix,
            entry_point=self.settings.entry_point_filename,
            entries=entries,
        )

    def _collect_entries(self, archive: ZipFile, limit: int) -> tuple[list[ArchiveEntry], int]:
        accepted: dict[str, ArchiveEntry] = {}
        total_uncompressed = 0
        compressed_total = 0

        for info in archive.infolist():
            segments = split_entry_path(info.filename)
            if not segments or info.is_dir():
                continue
            if is_ignored(segments, self._ignore_patterns):
                continue

            self._check_shape(info.filename, segments)
            path = "/".join(segments)
            if path in accepted:
                raise ValidationError(f"Archive contains {path} more than once.")
            self._check_extension(path)
            if info.file_size > self.settings.max_file_size_bytes:
                raise TooLarge(
                    f"{path} exceeds the {self.settings.max_file_size_bytes} byte per-file limit."
                )

            total_uncompressed += info.file_size
            if total_uncompressed > limit:
                raise TooLarge(f"Archive expands beyond the {limit} byte limit.")
            compressed_total += info.compress_size

            accepted[path] = ArchiveEntry(
                name=info.filename,
                path=path,
                size=info.file_size,
                compressed_size=info.compress_size,
                link_target=_symlink_target(archive, info),
            )
            if len(accepted) > self.settings.max_file_count:
                raise TooLarge(
                    f"Archive contains more than {self.settings.max_file_count} files."
                )

        return list(accepted.values()), compressed_total

    def _check_shape(self, name: str, segments: list[str]) -> None:
        if len(segments) - 1 > self.settings.max_path_depth:
            raise ValidationError(f"Entry path is nested too deeply: {name}")
        if any(len(segment) > _MAX_COMPONENT_LENGTH for segment in segments):
            raise ValidationError(f"Entry name is too long: {name}")

    def _check_extension(self, path: str) -> None:
        suffix = PurePosixPath(path).suffix.lower()
        if suffix in self.settings.blocked_extensions:
            raise DisallowedFile(f"Files of type '{suffix}' may not be uploaded: {path}")
        if self.settings.strict_extensions and suffix not in self.settings.allowed_extensions:
            raise DisallowedFile(f"File extension '{suffix or '(none)'}' is not allowed: {path}")

    def _scan_contents(self, archive: ZipFile, entries: list[ArchiveEntry]) -> None:
        """Reject text files carrying server-side code or injected scripts.

        Files that do not decode as UTF-8 are treated as binary and skipped.
        """
        cap = self.settings.max_file_size_bytes
        for entry in entries:
            if entry.is_symlink or PurePosixPath(entry.path).suffix.lower() not in _TEXT_EXTENSIONS:
                continue
            with archive.open(entry.name) as source:
                data = source.read(cap + 1)
            if len(data) > cap:
                raise TooLarge(f"{entry.path} exceeds the {cap} byte per-file limit.")
            try:
                text = data.decode("utf-8")
            except UnicodeDecodeError:
                continue
            if any(pattern.search(text) for pattern in _SUSPICIOUS_PATTERNS):
                raise SuspiciousContent(f"Suspicious content detected in {entry.path}.")

    def _check_ratio(self, total_uncompressed: int, compressed_total: int) -> None:
        if total_uncompressed == 0:
            return
        if compressed_total == 0:
            raise TooLarge("Archive entries report no compressed data.")
        ratio = total_uncompressed / compressed_total
        if ratio > self.settings.max_uncompressed_ratio:
            raise TooLarge(
                f"Compression ratio {ratio:.0f}:1 exceeds the "
                f"{self.settings.max_uncompressed_ratio:g}:1 limit."
            )

    def _find_root_prefix(self, entries: list[ArchiveEntry]) -> str:
        """Locate the entry point at the root or under one wrapping folder."""
        entry_point = self.settings.entry_point_filename
        paths = {entry.path for entry in entries}
        if entry_point in paths:
            return ""

        top_level = {entry.path.split("/", 1)[0] for entry in entries}
        if len(top_level) == 1 and all("/" in entry.path for entry in entries):
            folder = next(iter(top_level))
            if f"{folder}/{entry_point}" in paths:
                return f"{folder}/"

        raise MissingEntryPoint(
            f"The archive must contain {entry_point} at its root or inside a single top folder."
        )
