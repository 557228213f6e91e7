from __future__ import annotations

import io
from zipfile import ZIP_DEFLATED, ZipFile

import pytest

from spa_hosting.models.errors import SlugNotFound
from spa_hosting.models.package import (
    ProjectRecord,
    ProjectStatus,
    ProjectUnavailable,
    ResolvedProject,
)
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
from spa_hosting.services.upload_coordinator import UploadCoordinator


def _spa_zip(marker: str) -> bytes:
    buffer = io.BytesIO()
    with ZipFile(buffer, "w", ZIP_DEFLATED) as archive:
        archive.writestr("index.html", f"<html><body>{marker}</body></html>\n")
    return buffer.getvalue()


def test_dispatch_routes_each_operation(
    coordinator: UploadCoordinator, resolver: ProjectResolver
) -> None:
    first = dispatch(UploadOperation("demo", _spa_zip("v1"), "Demo"), coordinator, resolver)
    assert isinstance(first, ProjectRecord)
    second = dispatch(UploadOperation("demo", _spa_zip("v2")), coordinator, resolver)

    resolved = dispatch(ResolveOperation("demo"), coordinator, resolver)
    assert isinstance(resolved, ResolvedProject)
    assert resolved.version_id == second.current_version

    rolled = dispatch(RollbackOperation("demo", first.current_version), coordinator, resolver)
    assert rolled.current_version == first.current_version

    assert dispatch(PruneOperation("demo", retain=0), coordinator, resolver) == [
        second.current_version
    ]

    inactive = dispatch(
        SetStatusOperation("demo", ProjectStatus.INACTIVE), coordinator, resolver
    )
    assert inactive.status is ProjectStatus.INACTIVE

    assert dispatch(DeleteOperation("demo"), coordinator, resolver) is None
    assert isinstance(dispatch(ResolveOperation("demo"), coordinator, resolver), ProjectUnavailable)


def test_dispatch_builds_resolver_when_omitted(coordinator: UploadCoordinator) -> None:
    outcome = dispatch(ResolveOperation("ghost"), coordinator)

    assert isinstance(outcome, ProjectUnavailable)


def test_dispatch_propagates_typed_errors(coordinator: UploadCoordinator) -> None:
    with pytest.raises(SlugNotFound):
        dispatch(DeleteOperation("ghost"), coordinator)


def test_dispatch_rejects_unknown_operation(coordinator: UploadCoordinator) -> None:
    with pytest.raises(TypeError):
        dispatch("upload demo", coordinator)  # type: ignore[arg-type]
