from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from spa_hosting.config import Settings
from spa_hosting.data.db import init_db, reset_engine
from spa_hosting.services.project_resolver import ProjectResolver
from spa_hosting.services.project_store import ProjectStore
from spa_hosting.services.upload_coordinator import UploadCoordinator


@pytest.fixture
def storage_root(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Point the storage root at a temporary directory."""
    root = tmp_path / "projects"
    monkeypatch.setenv("SPA_HOSTING_ROOT", root.as_posix())
    return root


@pytest.fixture
def db(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Use a temporary SQLite DB."""
    db_path = tmp_path / "spa.db"
    monkeypatch.setenv("DB_URL", f"sqlite:///{db_path.as_posix()}")
    reset_engine()
    init_db()
    yield
    # Dispose engine to release connections
    reset_engine()


@pytest.fixture
def settings(storage_root: Path) -> Settings:
    return Settings(storage_root=storage_root)


@pytest.fixture
def coordinator(db: None, settings: Settings) -> UploadCoordinator:
    return UploadCoordinator(settings)


@pytest.fixture
def store(coordinator: UploadCoordinator) -> ProjectStore:
    return coordinator.store


@pytest.fixture
def resolver(coordinator: UploadCoordinator) -> ProjectResolver:
    return ProjectResolver(coordinator.settings, coordinator.store)


@pytest.fixture
def api_db(db: None, storage_root: Path) -> None:
    """Use a temporary SQLite DB and storage root for API tests."""


@pytest.fixture(autouse=True)
def _auto_api_db(request: pytest.FixtureRequest) -> None:
    """Automatically add api_db fixture to tests in API test files."""
    # Check if test file name contains "api" (case-insensitive)
    test_file_path = Path(str(request.node.fspath))
    if "api" in test_file_path.stem.lower():
        request.getfixturevalue("api_db")
