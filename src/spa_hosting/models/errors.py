"""Typed failures raised by the ingestion pipeline.

``retryable`` tells callers whether re-invoking the same operation can
succeed without the user changing anything.
"""

from __future__ import annotations


class SpaHostingError(Exception):
    """Base class for every failure surfaced by the pipeline."""

    retryable = False


class ValidationError(SpaHostingError):
    """The uploaded archive or request is malformed or unsafe."""


class TooLarge(ValidationError):
    """The archive, or what it decompresses to, exceeds the configured limits."""


class NotAZip(ValidationError):
    """The upload is not a readable ZIP archive."""


class PathTraversal(ValidationError):
    """An entry would be written outside the extraction root."""


class MissingEntryPoint(ValidationError):
    """No entry point file at the archive root or under a single wrapping folder."""


class EmptyArchive(ValidationError):
    """The archive holds no extractable files."""


class DisallowedFile(ValidationError):
    """The archive contains a file type that may not be hosted."""


class SuspiciousContent(DisallowedFile):
    """A text file contains server-side code or script injection patterns."""


class InvalidSlug(ValidationError):
    """The slug does not match ``[a-z0-9-]+``."""


class ExtractionError(SpaHostingError):
    """Writing the archive contents to disk failed."""

    retryable = True


class QuotaExceeded(ExtractionError):
    """More bytes were decompressed than the archive headers announced."""

    retryable = False


class TraversalAttempt(ExtractionError):
    """A resolved output path left the staging directory."""

    retryable = False


class StoreError(SpaHostingError):
    """The metadata store rejected or failed an operation."""

    retryable = True


class SlugNotFound(StoreError):
    """No project is registered under the slug."""

    retryable = False


class VersionNotFound(StoreError):
    """The requested version is not retained for the project."""

    retryable = False


class ConcurrentModification(StoreError):
    """The project changed between reading and writing its current version."""


class SlugConflict(SpaHostingError):
    """A project already exists under the slug."""


class LockTimeout(SpaHostingError):
    """The per-slug lock could not be acquired in time."""

    retryable = True
