"""Orchestration of uploads and other writes to a project's files.

Every write to ``<root>/<slug>`` happens while holding that slug's lock:
validate, extract into staging, rename into ``<root>/<slug>/<version>``,
then promote in the store. Anything created before a failure is removed
before the error reaches the caller.
"""

from __future__ import annotations

import logging
from typing import BinaryIO

from spa_hosting.config import Settings, load_settings
from spa_hosting.models.errors import (
    ExtractionError,
    SlugNotFound,
    SpaHostingError,
    VersionNotFound,
)
from spa_hosting.models.package import ProjectRecord, ProjectStatus, ValidatedArchive
from spa_hosting.services.archive_validator import ArchiveValidator
from spa_hosting.services.project_store import ProjectStore, validate_slug
from spa_hosting.services.safe_extractor import SafeExtractor
from spa_hosting.services.slug_lock import SlugLocks
from spa_hosting.utils.fs import atomic_rename, fsync_directory, remove_tree

logger = logging.getLogger(__name__)


class UploadCoordinator:
    """Serializes writes per slug and keeps disk and metadata consistent."""

    def __init__(
        self,
        settings: Settings | None = None,
        store: ProjectStore | None = None,
        validator: ArchiveValidator | None = None,
        extractor: SafeExtractor | None = None,
        locks: SlugLocks | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.store = store or ProjectStore(self.settings)
        self.validator = validator or ArchiveValidator(self.settings)
        self.extractor = extractor or SafeExtractor(self.settings)
        self.locks = locks or SlugLocks(
            self.settings.storage_root, self.settings.lock_timeout_seconds
        )

    def upload(
        self,
        slug: str,
        archive: BinaryIO | bytes,
        display_name: str | None = None,
        *,
        max_size_bytes: int | None = None,
        create_only: bool = False,
    ) -> ProjectRecord:
        """Publish *archive* as the current version of *slug*.

        Args:
            slug: Project identifier; a new project is registered if unknown.
            archive: ZIP archive as a binary stream or bytes.
            display_name: Label for the project; keeps the existing one if
                omitted.
            max_size_bytes: Overrides ``settings.max_upload_size_bytes``.
            create_only: Fail with ``SlugConflict`` instead of re-uploading
                when the slug already exists.

        Returns:
            The project record after promotion.

        Raises:
            ValidationError: The archive or slug was rejected.
            ExtractionError: Writing the files failed.
            StoreError: The metadata store failed or changed concurrently.
            SlugConflict: ``create_only`` was set and the slug exists.
            LockTimeout: Another write to the slug did not finish in time.
        """
        validate_slug(slug)
        with self.locks.hold(slug):
            if create_only:
                slot = self.store.create_slot(slug, display_name)
            else:
                slot = self.store.create_or_get_slot(slug, display_name)

            try:
                with self.validator.open(archive, max_size_bytes) as validated:
                    record = self._publish(
                        slug, validated, slot.current_version, display_name, max_size_bytes
                    )
            except BaseException:
                if slot.created:
                    self._release_slot(slug)
                raise

            return self._apply_retention(slug, record)

    def _publish(
        self,
        slug: str,
        validated: ValidatedArchive,
        expected_version: str | None,
        display_name: str | None,
        max_size_bytes: int | None,
    ) -> ProjectRecord:
        result = validated.result
        version_id = result.version_id

        if expected_version == version_id:
            logger.info("Archive for %s matches current version %s", slug, version_id)
            current = self.store.get(slug)
            if current is None:
                raise SlugNotFound(f"No project registered under slug '{slug}'.")
            if display_name and display_name != current.display_name:
                return self.store.rename(slug, display_name)
            return current

        retained = self.store.get_version(slug, version_id)
        if retained is not None and retained.storage_path.is_dir():
            return self.store.promote(
                slug,
                version_id,
                retained.storage_path,
                retained.size_bytes,
                retained.file_count,
                expected_version=expected_version,
                entry_point=retained.entry_point,
                display_name=display_name,
            )

        final_dir = self.store.version_dir(slug, version_id)
        location = self.extractor.extract(validated, self.settings.storage_root, max_size_bytes)
        moved = False
        try:
            # Not referenced by any record, so left over from an interrupted run.
            if final_dir.exists() or final_dir.is_symlink():
                logger.warning("Replacing unreferenced directory %s", final_dir)
                if not remove_tree(final_dir):
                    raise ExtractionError(f"Could not replace stale directory {final_dir}.")
            try:
                atomic_rename(location.path, final_dir)
                moved = True
                fsync_directory(final_dir.parent)
            except OSError as exc:
                raise ExtractionError(f"Could not move extracted files into place: {exc}") from exc

            return self.store.promote(
                slug,
                version_id,
                final_dir,
                location.size_bytes,
                location.file_count,
                expected_version=expected_version,
                entry_point=result.entry_point,
                file_types=location.file_types,
                build_tool=location.build_tool,
                display_name=display_name,
            )
        except BaseException:
            if moved:
                remove_tree(final_dir)
            else:
                self.extractor.discard(location)
            raise

    def _release_slot(self, slug: str) -> None:
        try:
            self.store.release_slot(slug)
        except SpaHostingError:
            logger.exception("Could not release the pending slot for %s", slug)

    def _apply_retention(self, slug: str, record: ProjectRecord) -> ProjectRecord:
        retain = self.settings.retain_versions
        if retain < 0 or len(record.retained) <= retain:
            return record
        try:
            self.store.prune(slug, retain)
        except SpaHostingError:
            logger.exception("Retention pass failed for %s; old versions kept", slug)
            return record
        return self.store.get(slug) or record

    def delete(self, slug: str) -> None:
        """Remove *slug* with all of its versions.

        Raises:
            SlugNotFound: If the slug is not registered.
            StoreError: If files could not be removed.
            LockTimeout: If a write to the slug is still running.
        """
        validate_slug(slug)
        with self.locks.hold(slug):
            self.store.delete(slug, self.settings.delete_grace_seconds)

    def set_status(self, slug: str, status: ProjectStatus | str) -> ProjectRecord:
        """Activate or deactivate *slug*."""
        validate_slug(slug)
        return self.store.set_status(slug, ProjectStatus(status))

    def rename(self, slug: str, display_name: str) -> ProjectRecord:
        """Change the display name of *slug*."""
        validate_slug(slug)
        return self.store.rename(slug, display_name)

    def rollback(self, slug: str, version_id: str) -> ProjectRecord:
        """Serve a retained earlier version of *slug* again.

        Raises:
            SlugNotFound: If the slug is not registered.
            VersionNotFound: If *version_id* is not retained.
        """
        validate_slug(slug)
        with self.locks.hold(slug):
            current = self.store.get_active(slug)
            if current is None or current.status is ProjectStatus.DELETING:
                raise SlugNotFound(f"No project registered under slug '{slug}'.")
            if current.current_version == version_id:
                return current
            version = self.store.get_version(slug, version_id)
            if version is None or not version.storage_path.is_dir():
                raise VersionNotFound(f"Version {version_id} of '{slug}' is not retained.")
            record = self.store.promote(
                slug,
                version_id,
                version.storage_path,
                version.size_bytes,
                version.file_count,
                expected_version=current.current_version,
                entry_point=version.entry_point,
            )
        logger.info("Rolled %s back to version %s", slug, version_id)
        return record

    def prune(self, slug: str, retain: int | None = None) -> list[str]:
        """Drop retained versions of *slug* beyond the newest *retain*."""
        validate_slug(slug)
        keep = self.settings.retain_versions if retain is None else retain
        with self.locks.hold(slug):
            return self.store.prune(slug, keep)

    def sweep_staging(self, max_age_seconds: int | None = None) -> int:
        """Remove staging directories abandoned by interrupted uploads."""
        return self.extractor.sweep_stale(max_age_seconds, self.settings.storage_root)
