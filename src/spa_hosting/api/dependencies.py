"""Shared dependencies for API routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, status

from spa_hosting.config import Settings, load_settings
from spa_hosting.models.errors import (
    ConcurrentModification,
    LockTimeout,
    SlugConflict,
    SlugNotFound,
    SpaHostingError,
    StoreError,
    TooLarge,
    ValidationError,
    VersionNotFound,
)
from spa_hosting.services.project_resolver import ProjectResolver
from spa_hosting.services.upload_coordinator import UploadCoordinator

# Seconds a client is asked to wait after a lock timeout.
RETRY_AFTER_SECONDS = 5


def get_settings() -> Settings:
    """Read settings from the environment for each request."""
    return load_settings()


def get_coordinator(settings: Annotated[Settings, Depends(get_settings)]) -> UploadCoordinator:
    return UploadCoordinator(settings)


def get_resolver(
    coordinator: Annotated[UploadCoordinator, Depends(get_coordinator)],
) -> ProjectResolver:
    return ProjectResolver(coordinator.settings, coordinator.store)


def to_http_exception(exc: SpaHostingError) -> HTTPException:
    """Map a pipeline failure to the HTTP error reported to the client.

    Args:
        exc: Failure raised by a service.

    Returns:
        HTTPException: Exception carrying the status code and message.
    """
    detail = str(exc) or type(exc).__name__
    if isinstance(exc, TooLarge):
        return HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=detail)
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
    if isinstance(exc, SlugNotFound | VersionNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
    if isinstance(exc, SlugConflict | ConcurrentModification):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)
    if isinstance(exc, LockTimeout):
        return HTTPException(
            status_code=status.HTTP_423_LOCKED,
            detail=detail,
            headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
        )
    if isinstance(exc, StoreError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
