"""Services"""

from spa_hosting.services.archive_validator import ArchiveValidator
from spa_hosting.services.operations import (
    DeleteOperation,
    PruneOperation,
    ResolveOperation,
    RollbackOperation,
    SetStatusOperation,
    UploadOperation,
    dispatch,
)
from spa_hosting.services.project_resolver import ProjectResolver
from spa_hosting.services.project_store import ProjectStore, validate_slug
from spa_hosting.services.safe_extractor import SafeExtractor
from spa_hosting.services.slug_lock import SlugLocks
from spa_hosting.services.upload_coordinator import UploadCoordinator

__all__ = [
    "ArchiveValidator",
    "DeleteOperation",
    "ProjectResolver",
    "ProjectStore",
    "PruneOperation",
    "ResolveOperation",
    "RollbackOperation",
    "SafeExtractor",
    "SetStatusOperation",
    "SlugLocks",
    "UploadCoordinator",
    "UploadOperation",
    "dispatch",
    "validate_slug",
]
