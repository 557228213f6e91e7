"""FastAPI application entry point for the SPA hosting API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from spa_hosting.api.routes import health, projects, statistics
from spa_hosting.config import load_settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize resources on startup and clean up on shutdown."""
    from spa_hosting.data.db import init_db

    init_db()
    yield


app = FastAPI(
    title="SPA Hosting API",
    description="API for publishing single-page application bundles under stable slugs",
    version="0.1.0",
    lifespan=lifespan,
)

_cors_origins = list(load_settings().cors_origins)

# Credentials are never combined with a wildcard origin.
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials="*" not in _cors_origins,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(projects.router, prefix="/api")
app.include_router(statistics.router, prefix="/api")


def main() -> None:
    """Start the development server."""
    import uvicorn

    uvicorn.run(
        "spa_hosting.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )


if __name__ == "__main__":
    main()
