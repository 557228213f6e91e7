"""Pydantic schemas for project API requests and responses."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from spa_hosting.api.schemas.common import PaginationMeta
from spa_hosting.models.package import (
    HistoryEntry,
    ProjectRecord,
    ProjectStatus,
    ResolvedProject,
    StoreStatistics,
    VersionRecord,
)


class VersionSummary(BaseModel):
    """A retained version of a project."""

    version_id: str
    entry_point: str
    size_bytes: int
    file_count: int
    file_types: dict[str, dict[str, int]]
    build_tool: str
    created_at: datetime
    last_promoted_at: datetime

    @classmethod
    def from_record(cls, version: VersionRecord) -> VersionSummary:
        return cls(
            version_id=version.version_id,
            entry_point=version.entry_point,
            size_bytes=version.size_bytes,
            file_count=version.file_count,
            file_types=version.file_types,
            build_tool=version.build_tool,
            created_at=version.created_at,
            last_promoted_at=version.last_promoted_at,
        )


class HistoryEntrySummary(BaseModel):
    """One promotion that replaced a version."""

    version_id: str
    replaced_by: str
    replaced_at: datetime
    retained: bool

    @classmethod
    def from_entry(cls, entry: HistoryEntry) -> HistoryEntrySummary:
        return cls(
            version_id=entry.version_id,
            replaced_by=entry.replaced_by,
            replaced_at=entry.replaced_at,
            retained=entry.is_retained,
        )


class ProjectSummary(BaseModel):
    """Public-facing project summary for API responses."""

    slug: str
    display_name: str
    status: ProjectStatus
    current_version: str | None
    entry_point: str
    size_bytes: int
    file_count: int
    created_at: datetime
    updated_at: datetime
    history: list[HistoryEntrySummary] = Field(default_factory=list)
    retained: list[VersionSummary] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: ProjectRecord) -> ProjectSummary:
        return cls(
            slug=record.slug,
            display_name=record.display_name,
            status=record.status,
            current_version=record.current_version,
            entry_point=record.entry_point,
            size_bytes=record.size_bytes,
            file_count=record.file_count,
            created_at=record.created_at,
            updated_at=record.updated_at,
            history=[HistoryEntrySummary.from_entry(entry) for entry in record.history],
            retained=[VersionSummary.from_record(version) for version in record.retained],
        )


class ProjectListResponse(BaseModel):
    """Paginated list of projects."""

    items: list[ProjectSummary]
    pagination: PaginationMeta


class ProjectUpdateRequest(BaseModel):
    """Fields allowed to be updated for a project."""

    model_config = ConfigDict(extra="forbid")

    display_name: str | None = Field(default=None, min_length=1, max_length=255)
    status: Literal["active", "inactive", "error"] | None = None


class ResolveResponse(BaseModel):
    """Where the active version of a project is served from."""

    slug: str
    display_name: str
    version_id: str
    storage_path: str
    entry_point: str
    entry_point_path: str

    @classmethod
    def from_resolved(cls, resolved: ResolvedProject) -> ResolveResponse:
        return cls(
            slug=resolved.slug,
            display_name=resolved.display_name,
            version_id=resolved.version_id,
            storage_path=str(resolved.storage_path),
            entry_point=resolved.entry_point,
            entry_point_path=str(resolved.entry_point_path),
        )


class AssetsResponse(BaseModel):
    """Scripts and stylesheets of the active version, relative to its root."""

    slug: str
    scripts: list[str]
    stylesheets: list[str]


class RollbackRequest(BaseModel):
    """Version to serve again."""

    model_config = ConfigDict(extra="forbid")

    version_id: str = Field(min_length=1, max_length=64)


class PruneRequest(BaseModel):
    """How many prior versions to keep; the configured default when omitted."""

    model_config = ConfigDict(extra="forbid")

    retain: int | None = Field(default=None, ge=0)


class PruneResponse(BaseModel):
    """Versions removed by a prune."""

    slug: str
    removed: list[str]


class StatisticsResponse(BaseModel):
    """Aggregate figures across all projects."""

    total_projects: int
    by_status: dict[str, int]
    active_size_bytes: int
    retained_versions: int

    @classmethod
    def from_statistics(cls, stats: StoreStatistics) -> StatisticsResponse:
        return cls(
            total_projects=stats.total_projects,
            by_status=stats.by_status,
            active_size_bytes=stats.active_size_bytes,
            retained_versions=stats.retained_versions,
        )
