"""Typed operations accepted from transport layers.

Each operation is a frozen dataclass; :func:`dispatch` routes it to the
component that owns it.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import singledispatch
from typing import Any, BinaryIO

from spa_hosting.models.package import ProjectStatus
from spa_hosting.services.project_resolver import ProjectResolver
from spa_hosting.services.upload_coordinator import UploadCoordinator


@dataclass(frozen=True, slots=True)
class UploadOperation:
    slug: str
    archive: BinaryIO | bytes
    display_name: str | None = None
    max_size_bytes: int | None = None
    create_only: bool = False


@dataclass(frozen=True, slots=True)
class DeleteOperation:
    slug: str


@dataclass(frozen=True, slots=True)
class SetStatusOperation:
    slug: str
    status: ProjectStatus


@dataclass(frozen=True, slots=True)
class ResolveOperation:
    slug: str


@dataclass(frozen=True, slots=True)
class RollbackOperation:
    slug: str
    version_id: str


@dataclass(frozen=True, slots=True)
class PruneOperation:
    slug: str
    retain: int | None = None


Operation = (
    UploadOperation
    | DeleteOperation
    | SetStatusOperation
    | ResolveOperation
    | RollbackOperation
    | PruneOperation
)


@singledispatch
def _handle(operation: Any, coordinator: UploadCoordinator, resolver: ProjectResolver) -> Any:
    raise TypeError(f"Unsupported operation: {type(operation).__name__}")


@_handle.register
def _(operation: UploadOperation, coordinator: UploadCoordinator, resolver: ProjectResolver):
    return coordinator.upload(
        operation.slug,
        operation.archive,
        operation.display_name,
        max_size_bytes=operation.max_size_bytes,
        create_only=operation.create_only,
    )


@_handle.register
def _(operation: DeleteOperation, coordinator: UploadCoordinator, resolver: ProjectResolver):
    coordinator.delete(operation.slug)


@_handle.register
def _(operation: SetStatusOperation, coordinator: UploadCoordinator, resolver: ProjectResolver):
    return coordinator.set_status(operation.slug, operation.status)


@_handle.register
def _(operation: ResolveOperation, coordinator: UploadCoordinator, resolver: ProjectResolver):
    return resolver.resolve(operation.slug)


@_handle.register
def _(operation: RollbackOperation, coordinator: UploadCoordinator, resolver: ProjectResolver):
    return coordinator.rollback(operation.slug, operation.version_id)


@_handle.register
def _(operation: PruneOperation, coordinator: UploadCoordinator, resolver: ProjectResolver):
    return coordinator.prune(operation.slug, operation.retain)


def dispatch(
    operation: Operation,
    coordinator: UploadCoordinator,
    resolver: ProjectResolver | None = None,
) -> Any:
    """Run *operation* against the owning component and return its result.

    Upload and rollback return a ``ProjectRecord``, resolve returns a
    ``ResolvedProject`` or ``ProjectUnavailable``, prune returns the removed
    version ids and delete returns ``None``.
    """
    resolver = resolver or ProjectResolver(coordinator.settings, coordinator.store)
    return _handle(operation, coordinator, resolver)
