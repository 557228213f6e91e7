"""Health check routes."""

from __future__ import annotations

import logging
import os

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from spa_hosting.config import load_settings
from spa_hosting.data.db import get_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check() -> dict[str, str]:
    """Report whether the metadata store and the storage root are usable."""
    checks = {"database": "ok", "storage": "ok"}
    try:
        with get_session() as session:
            session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check could not reach the metadata store")
        checks["database"] = "unavailable"

    # The root is created on the first upload.
    root = load_settings().storage_root
    if root.exists() and not os.access(root, os.W_OK):
        checks["storage"] = "read-only"

    healthy = all(value == "ok" for value in checks.values())
    return {"status": "healthy" if healthy else "degraded", **checks}
