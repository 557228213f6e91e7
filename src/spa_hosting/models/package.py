"""Data models for uploaded application packages and their hosted projects."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import BinaryIO


class ProjectStatus(str, Enum):
    """Lifecycle state of a hosted project."""

    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"
    DELETING = "deleting"


# Statuses an operator may set directly.
OPERATOR_STATUSES = frozenset({ProjectStatus.ACTIVE, ProjectStatus.INACTIVE, ProjectStatus.ERROR})


class UnavailableReason(str, Enum):
    """Why a slug cannot be embedded."""

    NOT_FOUND = "not_found"
    INACTIVE = "inactive"


@dataclass(slots=True)
class ArchiveEntry:
    """A file entry accepted by the validator.

    Attributes:
        name: Entry name as stored in the archive.
        path: Normalized path relative to the project root, with any single
            wrapping folder removed.
        size: Uncompressed size announced by the archive header.
        compressed_size: Compressed size announced by the archive header.
        link_target: Target of a symbolic link entry, ``None`` for files.
    """

    name: str
    path: str
    size: int
    compressed_size: int
    link_target: str | None = None

    @property
    def is_symlink(self) -> bool:
        return self.link_target is not None


@dataclass(slots=True)
class ValidationResult:
    """Outcome of inspecting an archive.

    Attributes:
        content_hash: SHA-256 of the archive bytes, used as the version id.
        archive_size: Size of the uploaded archive in bytes.
        total_uncompressed: Sum of the announced uncompressed entry sizes.
        file_count: Number of file entries that will be extracted.
        root_prefix: Wrapping folder stripped from entry names ("" when the
            entry point sits at the archive root).
        entry_point: Entry point path relative to the project root.
        entries: Accepted entries in archive order.
    """

    content_hash: str
    archive_size: int
    total_uncompressed: int
    file_count: int
    root_prefix: str
    entry_point: str
    entries: list[ArchiveEntry] = field(default_factory=list)

    @property
    def version_id(self) -> str:
        return self.content_hash


@dataclass(slots=True)
class ValidatedArchive:
    """A validated archive together with the spooled bytes it was read from.

    The extractor reads entries from ``source``; callers close it once the
    extraction has finished.
    """

    source: BinaryIO
    result: ValidationResult

    def close(self) -> None:
        self.source.close()

    def __enter__(self) -> ValidatedArchive:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


@dataclass(slots=True)
class ExtractedLocation:
    """A fully written staging directory.

    Attributes:
        path: Staging directory holding the extracted files.
        size_bytes: Bytes actually written.
        file_count: Files actually written.
        file_types: Per file type ``{"count": n, "size": bytes}`` summary.
        build_tool: Bundler guessed from the file names, or ``"unknown"``.
    """

    path: Path
    size_bytes: int
    file_count: int
    file_types: dict[str, dict[str, int]] = field(default_factory=dict)
    build_tool: str = "unknown"


@dataclass(slots=True)
class SlotHandle:
    """Metadata row reserved for a slug."""

    slug: str
    project_id: int
    created: bool
    current_version: str | None
    status: ProjectStatus


@dataclass(slots=True)
class VersionRecord:
    """A version retained on disk for a project."""

    version_id: str
    storage_path: Path
    entry_point: str
    size_bytes: int
    file_count: int
    file_types: dict[str, dict[str, int]]
    build_tool: str
    created_at: datetime
    last_promoted_at: datetime


@dataclass(slots=True)
class HistoryEntry:
    """A version that was replaced by a promotion.

    Attributes:
        version_id: Version served before the promotion.
        replaced_by: Version promoted in its place.
        replaced_at: When the promotion committed.
        storage_path: Directory of ``version_id`` while it is retained,
            ``None`` once it has been pruned.
    """

    version_id: str
    replaced_by: str
    replaced_at: datetime
    storage_path: Path | None = None

    @property
    def is_retained(self) -> bool:
        return self.storage_path is not None


@dataclass(slots=True)
class ProjectRecord:
    """Snapshot of a project's metadata.

    Attributes:
        slug: Stable identifier of the project.
        display_name: Human readable label.
        current_version: Version currently served, ``None`` before the first
            promotion.
        status: Lifecycle state.
        storage_path: Directory of the current version.
        entry_point: Entry point path relative to ``storage_path``.
        size_bytes: Extracted size of the current version.
        file_count: File count of the current version.
        created_at: When the slug was registered.
        updated_at: When the record last changed.
        history: One entry per promotion that replaced a version, oldest
            first. Entries are never rewritten or removed by pruning.
        retained: Prior versions still on disk, most recently promoted
            first.
    """

    slug: str
    display_name: str
    current_version: str | None
    status: ProjectStatus
    storage_path: Path | None
    entry_point: str
    size_bytes: int
    file_count: int
    created_at: datetime
    updated_at: datetime
    history: list[HistoryEntry] = field(default_factory=list)
    retained: list[VersionRecord] = field(default_factory=list)

    @property
    def is_servable(self) -> bool:
        return (
            self.status is ProjectStatus.ACTIVE
            and self.current_version is not None
            and self.storage_path is not None
        )


@dataclass(slots=True)
class ResolvedProject:
    """Everything the rendering layer needs to serve a project."""

    slug: str
    display_name: str
    version_id: str
    storage_path: Path
    entry_point: str

    @property
    def entry_point_path(self) -> Path:
        return self.storage_path / self.entry_point


@dataclass(slots=True)
class ProjectUnavailable:
    """A slug that cannot currently be embedded."""

    slug: str
    reason: UnavailableReason

    @property
    def message(self) -> str:
        if self.reason is UnavailableReason.INACTIVE:
            return f"Project '{self.slug}' is not active."
        return f"Project '{self.slug}' was not found."


@dataclass(slots=True)
class ProjectAssets:
    """Script and stylesheet paths of a project, relative to its storage path."""

    scripts: list[str] = field(default_factory=list)
    stylesheets: list[str] = field(default_factory=list)


@dataclass(slots=True)
class StoreStatistics:
    """Aggregate figures across all registered projects."""

    total_projects: int
    by_status: dict[str, int]
    active_size_bytes: int
    retained_versions: int
