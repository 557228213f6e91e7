"""Aggregate statistics routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from spa_hosting.api.dependencies import get_coordinator, to_http_exception
from spa_hosting.api.schemas.projects import StatisticsResponse
from spa_hosting.models.errors import SpaHostingError
from spa_hosting.services.upload_coordinator import UploadCoordinator

router = APIRouter(prefix="/statistics", tags=["statistics"])


@router.get(
    "",
    response_model=StatisticsResponse,
    summary="Project statistics",
    description="Return project counts per status, active size and retained versions.",
)
def get_statistics(
    coordinator: Annotated[UploadCoordinator, Depends(get_coordinator)],
) -> StatisticsResponse:
    try:
        stats = coordinator.store.statistics()
    except SpaHostingError as exc:
        raise to_http_exception(exc) from exc
    return StatisticsResponse.from_statistics(stats)
