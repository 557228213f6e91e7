"""Durable registry of hosted projects and their retained versions.

The ``spa_projects`` row is the single authority on which version of a slug
is served. Only :meth:`ProjectStore.promote`, :meth:`ProjectStore.set_status`
and :meth:`ProjectStore.delete` change what readers see; directory existence
is never consulted to decide whether a project is live.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from spa_hosting.config import Settings, load_settings
from spa_hosting.data.db import get_session
from spa_hosting.data.models import SpaProject, SpaProjectPromotion, SpaProjectVersion
from spa_hosting.models.errors import (
    ConcurrentModification,
    InvalidSlug,
    SlugConflict,
    SlugNotFound,
    SpaHostingError,
    StoreError,
)
from spa_hosting.models.package import (
    OPERATOR_STATUSES,
    HistoryEntry,
    ProjectRecord,
    ProjectStatus,
    SlotHandle,
    StoreStatistics,
    VersionRecord,
)
from spa_hosting.utils.fs import remove_tree

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")
MAX_SLUG_LENGTH = 100

# Marker for "do not check the previous version" in promote().
ANY_VERSION: Any = object()


def validate_slug(slug: str) -> str:
    """Return *slug* unchanged if it is a valid project identifier.

    Raises:
        InvalidSlug: If the slug is empty, too long or not ``[a-z0-9-]+``.
    """
    if not isinstance(slug, str) or not slug or len(slug) > MAX_SLUG_LENGTH:
        raise InvalidSlug(f"Slug must be 1-{MAX_SLUG_LENGTH} characters long.")
    if not SLUG_PATTERN.fullmatch(slug):
        raise InvalidSlug(f"Slug '{slug}' may only contain a-z, 0-9 and '-'.")
    return slug


def _to_version_record(version: SpaProjectVersion) -> VersionRecord:
    return VersionRecord(
        version_id=version.version_id,
        storage_path=Path(version.storage_path),
        entry_point=version.entry_point,
        size_bytes=version.size_bytes,
        file_count=version.file_count,
        file_types=dict(version.file_types or {}),
        build_tool=version.build_tool,
        created_at=version.created_at,
        last_promoted_at=version.last_promoted_at,
    )


def _load_versions(session: Session, project_id: int) -> list[SpaProjectVersion]:
    return list(
        session.scalars(
            select(SpaProjectVersion)
            .where(SpaProjectVersion.project_id == project_id)
            .order_by(SpaProjectVersion.last_promoted_at.desc(), SpaProjectVersion.id.desc())
        )
    )


def _load_history(
    session: Session, project_id: int, versions: list[SpaProjectVersion]
) -> list[HistoryEntry]:
    paths = {version.version_id: Path(version.storage_path) for version in versions}
    promotions = session.scalars(
        select(SpaProjectPromotion)
        .where(
            SpaProjectPromotion.project_id == project_id,
            SpaProjectPromotion.previous_version.is_not(None),
        )
        .order_by(SpaProjectPromotion.id)
    )
    return [
        HistoryEntry(
            version_id=promotion.previous_version,
            replaced_by=promotion.version_id,
            replaced_at=promotion.promoted_at,
            storage_path=paths.get(promotion.previous_version),
        )
        for promotion in promotions
    ]


def _to_record(session: Session, project: SpaProject) -> ProjectRecord:
    versions = _load_versions(session, project.id)
    retained = [
        _to_version_record(version)
        for version in versions
        if version.version_id != project.current_version
    ]
    return ProjectRecord(
        slug=project.slug,
        display_name=project.display_name,
        current_version=project.current_version,
        status=ProjectStatus(project.status),
        storage_path=Path(project.storage_path) if project.storage_path else None,
        entry_point=project.entry_point,
        size_bytes=project.size_bytes,
        file_count=project.file_count,
        created_at=project.created_at,
        updated_at=project.updated_at,
        history=_load_history(session, project.id, versions),
        retained=retained,
    )


def _find(session: Session, slug: str) -> SpaProject | None:
    return session.scalars(select(SpaProject).where(SpaProject.slug == slug)).one_or_none()


class ProjectStore:
    """Transactional access to project metadata and version directories."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or load_settings()

    @property
    def storage_root(self) -> Path:
        return self.settings.storage_root

    def project_dir(self, slug: str) -> Path:
        """Return ``<root>/<slug>``, the parent of every version of *slug*."""
        return self.storage_root / validate_slug(slug)

    def version_dir(self, slug: str, version_id: str) -> Path:
        """Return ``<root>/<slug>/<version_id>``."""
        return self.project_dir(slug) / version_id

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with get_session() as session:
                yield session
        except SpaHostingError:
            raise
        except SQLAlchemyError as exc:
            logger.exception("Metadata store operation failed")
            raise StoreError(f"Metadata store operation failed: {exc}") from exc

    # -- slots -----------------------------------------------------------------

    def create_slot(self, slug: str, display_name: str | None = None) -> SlotHandle:
        """Register a new slug in the ``pending`` state.

        Raises:
            InvalidSlug: If the slug is malformed.
            SlugConflict: If the slug is already registered.
        """
        validate_slug(slug)
        try:
            with get_session() as session:
                project = SpaProject(
                    slug=slug,
                    display_name=display_name or slug,
                    status=ProjectStatus.PENDING.value,
                    entry_point=self.settings.entry_point_filename,
                )
                session.add(project)
                session.flush()
                return SlotHandle(
                    slug=slug,
                    project_id=project.id,
                    created=True,
                    current_version=None,
                    status=ProjectStatus.PENDING,
                )
        except IntegrityError as exc:
            raise SlugConflict(f"A project with slug '{slug}' already exists.") from exc
        except SQLAlchemyError as exc:
            logger.exception("Could not register slug %s", slug)
            raise StoreError(f"Could not register slug '{slug}': {exc}") from exc

    def create_or_get_slot(self, slug: str, display_name: str | None = None) -> SlotHandle:
        """Return the slot for *slug*, creating a pending one if it is new.

        Raises:
            InvalidSlug: If the slug is malformed.
            SlugConflict: If the slug is in the middle of being deleted.
        """
        validate_slug(slug)
        existing = self._get_slot(slug)
        if existing is None:
            try:
                return self.create_slot(slug, display_name)
            except SlugConflict:
                existing = self._get_slot(slug)
                if existing is None:
                    raise
        if existing.status is ProjectStatus.DELETING:
            raise SlugConflict(f"Project '{slug}' is being deleted.")
        return existing

    def _get_slot(self, slug: str) -> SlotHandle | None:
        with self._session() as session:
            project = _find(session, slug)
            if project is None:
                return None
            return SlotHandle(
                slug=slug,
                project_id=project.id,
                created=False,
                current_version=project.current_version,
                status=ProjectStatus(project.status),
            )

    def release_slot(self, slug: str) -> bool:
        """Drop a pending slot that never received a version.

        Returns:
            True if a pending row was removed.
        """
        with self._session() as session:
            project = _find(session, slug)
            if (
                project is None
                or project.status != ProjectStatus.PENDING.value
                or project.current_version is not None
            ):
                return False
            session.delete(project)
            return True

    # -- promotion -------------------------------------------------------------

    def promote(
        self,
        slug: str,
        new_version: str,
        new_storage_path: Path,
        size_bytes: int,
        file_count: int,
        *,
        expected_version: str | None = ANY_VERSION,
        entry_point: str | None = None,
        file_types: dict[str, dict[str, int]] | None = None,
        build_tool: str | None = None,
        display_name: str | None = None,
    ) -> ProjectRecord:
        """Make *new_version* the version served for *slug*.

        The previous version stays retained and every promotion appends one
        entry to the promotion log that ``history`` is read from.
        Promoting the version that is already current changes nothing.

        Args:
            slug: Project identifier.
            new_version: Version id being promoted.
            new_storage_path: Fully written directory of the version.
            size_bytes: Extracted size of the version.
            file_count: Number of files in the version.
            expected_version: Version the caller believes is current; the
                promotion fails if another writer changed it in between.
            entry_point: Entry point relative to ``new_storage_path``.
            file_types: Extraction report stored with the version.
            build_tool: Bundler detected for the version.
            display_name: New display name, if it should change.

        Raises:
            SlugNotFound: If the slug is not registered or is being deleted.
            ConcurrentModification: If the current version is not
                ``expected_version``.
        """
        entry_point = entry_point or self.settings.entry_point_filename
        with self._session() as session:
            project = _find(session, slug)
            if project is None or project.status == ProjectStatus.DELETING.value:
                raise SlugNotFound(f"No project registered under slug '{slug}'.")

            previous = project.current_version
            if expected_version is not ANY_VERSION and previous != expected_version:
                raise ConcurrentModification(
                    f"Project '{slug}' moved from version {expected_version} to {previous}."
                )

            if previous == new_version and project.storage_path == str(new_storage_path):
                if display_name and display_name != project.display_name:
                    project.display_name = display_name
                    session.flush()
                return _to_record(session, project)

            now = datetime.now(UTC)
            version = session.scalars(
                select(SpaProjectVersion).where(
                    SpaProjectVersion.project_id == project.id,
                    SpaProjectVersion.version_id == new_version,
                )
            ).one_or_none()
            if version is None:
                version = SpaProjectVersion(
                    project_id=project.id,
                    version_id=new_version,
                    storage_path=str(new_storage_path),
                    entry_point=entry_point,
                    size_bytes=size_bytes,
                    file_count=file_count,
                    file_types=file_types or {},
                    build_tool=build_tool or "unknown",
                    created_at=now,
                )
                session.add(version)
            else:
                version.storage_path = str(new_storage_path)
                version.entry_point = entry_point
                version.size_bytes = size_bytes
                version.file_count = file_count
                if file_types is not None:
                    version.file_types = file_types
                if build_tool is not None:
                    version.build_tool = build_tool
            version.last_promoted_at = now

            status = project.status
            if status in {ProjectStatus.PENDING.value, ProjectStatus.ERROR.value}:
                status = ProjectStatus.ACTIVE.value

            values: dict[str, Any] = {
                "current_version": new_version,
                "storage_path": str(new_storage_path),
                "entry_point": entry_point,
                "size_bytes": size_bytes,
                "file_count": file_count,
                "status": status,
                "updated_at": now,
            }
            if display_name:
                values["display_name"] = display_name

            result = session.execute(
                update(SpaProject)
                .where(
                    SpaProject.id == project.id,
                    SpaProject.current_version.is_not_distinct_from(previous),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConcurrentModification(f"Project '{slug}' changed during promotion.")

            session.add(
                SpaProjectPromotion(
                    project_id=project.id,
                    previous_version=previous,
                    version_id=new_version,
                    promoted_at=now,
                )
            )
            session.flush()
            session.refresh(project)
            record = _to_record(session, project)

        logger.info("Promoted %s to version %s (previous: %s)", slug, new_version, previous)
        return record

    # -- reads -----------------------------------------------------------------

    def get(self, slug: str) -> ProjectRecord | None:
        """Return the record for *slug* in any state, or ``None``."""
        with self._session() as session:
            project = _find(session, slug)
            return _to_record(session, project) if project is not None else None

    def get_active(self, slug: str) -> ProjectRecord | None:
        """Return the last promoted state of *slug*.

        Slugs that never completed a promotion read as ``None``.
        """
        with self._session() as session:
            project = _find(session, slug)
            if project is None or project.current_version is None:
                return None
            return _to_record(session, project)

    def get_version(self, slug: str, version_id: str) -> VersionRecord | None:
        """Return a retained version of *slug*, or ``None``."""
        with self._session() as session:
            version = session.scalars(
                select(SpaProjectVersion)
                .join(SpaProject)
                .where(SpaProject.slug == slug, SpaProjectVersion.version_id == version_id)
            ).one_or_none()
            return _to_version_record(version) if version is not None else None

    def list_projects(
        self,
        status: ProjectStatus | None = None,
        order_by: str = "name",
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ProjectRecord]:
        """List projects, optionally filtered by status.

        Args:
            status: Only return projects in this state.
            order_by: ``"name"`` (display name, then slug) or ``"date"``
                (most recently updated first).
            limit: Maximum number of records.
            offset: Number of records to skip.
        """
        query = select(SpaProject)
        if status is not None:
            query = query.where(SpaProject.status == ProjectStatus(status).value)
        if order_by == "date":
            query = query.order_by(SpaProject.updated_at.desc(), SpaProject.slug)
        elif order_by == "name":
            query = query.order_by(func.lower(SpaProject.display_name), SpaProject.slug)
        else:
            raise ValueError(f"Unsupported ordering: {order_by}")
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)

        with self._session() as session:
            return [_to_record(session, project) for project in session.scalars(query)]

    def count(self, status: ProjectStatus | None = None) -> int:
        """Count projects, optionally filtered by status."""
        query = select(func.count(SpaProject.id))
        if status is not None:
            query = query.where(SpaProject.status == ProjectStatus(status).value)
        with self._session() as session:
            return int(session.scalar(query) or 0)

    def statistics(self) -> StoreStatistics:
        """Return aggregate counts and sizes across all projects."""
        with self._session() as session:
            by_status = {
                status: int(total)
                for status, total in session.execute(
                    select(SpaProject.status, func.count(SpaProject.id)).group_by(
                        SpaProject.status
                    )
                )
            }
            active_size = session.scalar(
                select(func.coalesce(func.sum(SpaProject.size_bytes), 0)).where(
                    SpaProject.status == ProjectStatus.ACTIVE.value
                )
            )
            retained = session.scalar(select(func.count(SpaProjectVersion.id)))

        return StoreStatistics(
            total_projects=sum(by_status.values()),
            by_status=by_status,
            active_size_bytes=int(active_size or 0),
            retained_versions=int(retained or 0),
        )

    # -- mutations -------------------------------------------------------------

    def set_status(self, slug: str, status: ProjectStatus) -> ProjectRecord:
        """Change the operator-visible status of *slug*.

        Raises:
            SlugNotFound: If the slug is unknown, pending or being deleted.
            ValueError: If *status* is not active, inactive or error.
        """
        status = ProjectStatus(status)
        if status not in OPERATOR_STATUSES:
            raise ValueError(f"Status '{status.value}' cannot be set directly.")

        with self._session() as session:
            project = _find(session, slug)
            if project is None or project.status in {
                ProjectStatus.PENDING.value,
                ProjectStatus.DELETING.value,
            }:
                raise SlugNotFound(f"No project registered under slug '{slug}'.")
            previous = project.status
            if previous != status.value:
                project.status = status.value
                project.updated_at = datetime.now(UTC)
                session.flush()
            record = _to_record(session, project)

        if previous != status.value:
            logger.info("Changed status of %s from %s to %s", slug, previous, status.value)
        return record

    def rename(self, slug: str, display_name: str) -> ProjectRecord:
        """Change the display name of *slug*.

        Raises:
            SlugNotFound: If the slug is unknown or being deleted.
            ValueError: If the display name is blank.
        """
        display_name = display_name.strip()
        if not display_name:
            raise ValueError("Display name must not be empty.")
        with self._session() as session:
            project = _find(session, slug)
            if project is None or project.status == ProjectStatus.DELETING.value:
                raise SlugNotFound(f"No project registered under slug '{slug}'.")
            project.display_name = display_name
            project.updated_at = datetime.now(UTC)
            session.flush()
            return _to_record(session, project)

    def delete(self, slug: str, grace_seconds: float | None = None) -> None:
        """Remove *slug*, its metadata and every retained version.

        The record is marked ``deleting`` first so readers stop resolving it,
        then the files go, then the row. When some files cannot be removed
        the record stays in ``deleting``: rows of versions whose trees are
        already gone are dropped, and the slug refuses uploads, rollbacks
        and status changes until the delete is retried successfully.

        Raises:
            SlugNotFound: If the slug is not registered.
            StoreError: If the version directories could not be removed.
        """
        grace = self.settings.delete_grace_seconds if grace_seconds is None else grace_seconds
        with self._session() as session:
            project = _find(session, slug)
            if project is None:
                raise SlugNotFound(f"No project registered under slug '{slug}'.")
            project.status = ProjectStatus.DELETING.value
            project.updated_at = datetime.now(UTC)
            paths = {
                version.version_id: Path(version.storage_path)
                for version in _load_versions(session, project.id)
            }

        if grace > 0:
            time.sleep(grace)

        gone = [version_id for version_id, path in paths.items() if remove_tree(path)]
        if len(gone) < len(paths) or not remove_tree(self.project_dir(slug)):
            self._forget_versions(slug, gone)
            raise StoreError(f"Files of project '{slug}' could not be removed; retry the delete.")

        with self._session() as session:
            project = _find(session, slug)
            if project is not None:
                session.delete(project)

        logger.info("Deleted project %s and %d retained versions", slug, len(paths))

    def _forget_versions(self, slug: str, version_ids: list[str]) -> None:
        """Drop the rows of versions whose directories no longer exist."""
        with self._session() as session:
            project = _find(session, slug)
            if project is None:
                return
            for version in _load_versions(session, project.id):
                if version.version_id in version_ids:
                    session.delete(version)
            if project.current_version in version_ids:
                project.current_version = None
                project.storage_path = None
                project.size_bytes = 0
                project.file_count = 0
            project.updated_at = datetime.now(UTC)
        logger.warning(
            "Delete of %s was incomplete; %d version directories removed", slug, len(version_ids)
        )

    def prune(self, slug: str, retain: int) -> list[str]:
        """Drop retained versions beyond the newest *retain* prior versions.

        The current version is never pruned. Rows are removed before their
        directories so no record ever points at a missing tree.

        Returns:
            Version ids that were removed.

        Raises:
            SlugNotFound: If the slug is unknown or being deleted.
        """
        if retain < 0:
            return []

        with self._session() as session:
            project = _find(session, slug)
            if project is None or project.status == ProjectStatus.DELETING.value:
                raise SlugNotFound(f"No project registered under slug '{slug}'.")
            prior = [
                version
                for version in _load_versions(session, project.id)
                if version.version_id != project.current_version
            ]
            doomed = prior[retain:]
            doomed_paths = [(version.version_id, Path(version.storage_path)) for version in doomed]
            for version in doomed:
                session.delete(version)

        for version_id, path in doomed_paths:
            remove_tree(path)
            logger.info("Pruned version %s of %s", version_id, slug)
        return [version_id for version_id, _ in doomed_paths]
