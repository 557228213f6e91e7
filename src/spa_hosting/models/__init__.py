"""Data models and type definitions"""

from spa_hosting.models.errors import (
    ConcurrentModification,
    DisallowedFile,
    EmptyArchive,
    ExtractionError,
    InvalidSlug,
    LockTimeout,
    MissingEntryPoint,
    NotAZip,
    PathTraversal,
    QuotaExceeded,
    SlugConflict,
    SlugNotFound,
    SpaHostingError,
    StoreError,
    SuspiciousContent,
    TooLarge,
    TraversalAttempt,
    ValidationError,
    VersionNotFound,
)
from spa_hosting.models.package import (
    ArchiveEntry,
    ExtractedLocation,
    HistoryEntry,
    ProjectAssets,
    ProjectRecord,
    ProjectStatus,
    ProjectUnavailable,
    ResolvedProject,
    SlotHandle,
    StoreStatistics,
    UnavailableReason,
    ValidatedArchive,
    ValidationResult,
    VersionRecord,
)

__all__ = [
    "ArchiveEntry",
    "ConcurrentModification",
    "DisallowedFile",
    "EmptyArchive",
    "ExtractedLocation",
    "ExtractionError",
    "HistoryEntry",
    "InvalidSlug",
    "LockTimeout",
    "MissingEntryPoint",
    "NotAZip",
    "PathTraversal",
    "ProjectAssets",
    "ProjectRecord",
    "ProjectStatus",
    "ProjectUnavailable",
    "QuotaExceeded",
    "ResolvedProject",
    "SlotHandle",
    "SlugConflict",
    "SlugNotFound",
    "SpaHostingError",
    "StoreError",
    "StoreStatistics",
    "SuspiciousContent",
    "TooLarge",
    "TraversalAttempt",
    "UnavailableReason",
    "ValidatedArchive",
    "ValidationError",
    "ValidationResult",
    "VersionNotFound",
    "VersionRecord",
]
