"""Project routes for the API."""

from __future__ import annotations

from typing import Annotated, Literal

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Response,
    UploadFile,
    status,
)

from spa_hosting.api.dependencies import get_coordinator, get_resolver, to_http_exception
from spa_hosting.api.schemas.common import DEFAULT_LIMIT, MAX_LIMIT, PaginationMeta
from spa_hosting.api.schemas.projects import (
    AssetsResponse,
    ProjectListResponse,
    ProjectSummary,
    ProjectUpdateRequest,
    PruneRequest,
    PruneResponse,
    ResolveResponse,
    RollbackRequest,
)
from spa_hosting.models.errors import SpaHostingError
from spa_hosting.models.package import ProjectStatus, ProjectUnavailable, UnavailableReason
from spa_hosting.services.project_resolver import ProjectResolver
from spa_hosting.services.upload_coordinator import UploadCoordinator

router = APIRouter(prefix="/projects", tags=["projects"])

Coordinator = Annotated[UploadCoordinator, Depends(get_coordinator)]
Resolver = Annotated[ProjectResolver, Depends(get_resolver)]


def _unavailable_to_http(outcome: ProjectUnavailable) -> HTTPException:
    if outcome.reason is UnavailableReason.INACTIVE:
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=outcome.message)
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=outcome.message)


@router.post(
    "/upload",
    response_model=ProjectSummary,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a project bundle",
    description="Validate a ZIP bundle and publish it as the current version of a slug.",
    responses={
        400: {"description": "Archive or slug rejected"},
        409: {"description": "Slug exists or changed concurrently"},
        413: {"description": "Archive too large"},
        423: {"description": "Another upload to the slug is in progress"},
    },
)
def upload_project(
    coordinator: Coordinator,
    slug: Annotated[str, Form()],
    file: Annotated[UploadFile, File()],
    display_name: Annotated[str | None, Form()] = None,
    create_only: Annotated[bool, Form()] = False,
) -> ProjectSummary:
    try:
        record = coordinator.upload(
            slug, file.file, display_name or None, create_only=create_only
        )
    except SpaHostingError as exc:
        raise to_http_exception(exc) from exc
    finally:
        file.file.close()
    return ProjectSummary.from_record(record)


@router.get(
    "/",
    response_model=ProjectListResponse,
    summary="List projects",
    description="Return registered projects, optionally filtered by status.",
)
def list_projects(
    coordinator: Coordinator,
    status_filter: Annotated[ProjectStatus | None, Query(alias="status")] = None,
    order_by: Literal["name", "date"] = "name",
    limit: Annotated[int, Query(ge=1, le=MAX_LIMIT)] = DEFAULT_LIMIT,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> ProjectListResponse:
    try:
        total = coordinator.store.count(status_filter)
        records = coordinator.store.list_projects(
            status=status_filter, order_by=order_by, limit=limit, offset=offset
        )
    except SpaHostingError as exc:
        raise to_http_exception(exc) from exc
    return ProjectListResponse(
        items=[ProjectSummary.from_record(record) for record in records],
        pagination=PaginationMeta.for_page(total, limit, offset, len(records)),
    )


@router.get(
    "/{slug}",
    response_model=ProjectSummary,
    summary="Get a project",
    description="Return a project and its retained versions.",
    responses={404: {"description": "Project not found"}},
)
def get_project(slug: str, coordinator: Coordinator) -> ProjectSummary:
    try:
        record = coordinator.store.get(slug)
    except SpaHostingError as exc:
        raise to_http_exception(exc) from exc
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No project registered under slug '{slug}'.",
        )
    return ProjectSummary.from_record(record)


@router.get(
    "/{slug}/resolve",
    response_model=ResolveResponse,
    summary="Resolve a project",
    description="Return where the active version of a project is served from.",
    responses={
        404: {"description": "Project not found"},
        409: {"description": "Project is not active"},
    },
)
def resolve_project(slug: str, resolver: Resolver) -> ResolveResponse:
    try:
        outcome = resolver.resolve(slug)
    except SpaHostingError as exc:
        raise to_http_exception(exc) from exc
    if isinstance(outcome, ProjectUnavailable):
        raise _unavailable_to_http(outcome)
    return ResolveResponse.from_resolved(outcome)


@router.get(
    "/{slug}/assets",
    response_model=AssetsResponse,
    summary="List project assets",
    description="Return the scripts and stylesheets loaded by the active version.",
    responses={
        404: {"description": "Project not found"},
        409: {"description": "Project is not active"},
    },
)
def list_project_assets(slug: str, resolver: Resolver) -> AssetsResponse:
    try:
        outcome = resolver.list_assets(slug)
    except SpaHostingError as exc:
        raise to_http_exception(exc) from exc
    if isinstance(outcome, ProjectUnavailable):
        raise _unavailable_to_http(outcome)
    return AssetsResponse(slug=slug, scripts=outcome.scripts, stylesheets=outcome.stylesheets)


@router.patch(
    "/{slug}",
    response_model=ProjectSummary,
    summary="Update a project",
    description="Change the display name or status of a project.",
    responses={404: {"description": "Project not found"}},
)
def update_project(
    slug: str, payload: ProjectUpdateRequest, coordinator: Coordinator
) -> ProjectSummary:
    if payload.display_name is None and payload.status is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide display_name or status.",
        )
    try:
        record = None
        if payload.display_name is not None:
            record = coordinator.rename(slug, payload.display_name)
        if payload.status is not None:
            record = coordinator.set_status(slug, payload.status)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except SpaHostingError as exc:
        raise to_http_exception(exc) from exc
    return ProjectSummary.from_record(record)


@router.post(
    "/{slug}/rollback",
    response_model=ProjectSummary,
    summary="Roll back a project",
    description="Serve a retained earlier version of a project again.",
    responses={404: {"description": "Project or version not found"}},
)
def rollback_project(
    slug: str, payload: RollbackRequest, coordinator: Coordinator
) -> ProjectSummary:
    try:
        record = coordinator.rollback(slug, payload.version_id)
    except SpaHostingError as exc:
        raise to_http_exception(exc) from exc
    return ProjectSummary.from_record(record)


@router.post(
    "/{slug}/prune",
    response_model=PruneResponse,
    summary="Prune retained versions",
    description="Remove retained versions beyond the newest ones.",
    responses={404: {"description": "Project not found"}},
)
def prune_project(
    slug: str, coordinator: Coordinator, payload: PruneRequest | None = None
) -> PruneResponse:
    retain = payload.retain if payload is not None else None
    try:
        removed = coordinator.prune(slug, retain)
    except SpaHostingError as exc:
        raise to_http_exception(exc) from exc
    return PruneResponse(slug=slug, removed=removed)


@router.delete(
    "/{slug}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a project",
    description="Remove a project with every retained version.",
    responses={404: {"description": "Project not found"}},
)
def delete_project(slug: str, coordinator: Coordinator) -> Response:
    try:
        coordinator.delete(slug)
    except SpaHostingError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
