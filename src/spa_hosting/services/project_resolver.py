"""Read path used by the rendering layer to embed a project."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path, PurePosixPath
from typing import Any

from spa_hosting.config import Settings, load_settings
from spa_hosting.models.errors import InvalidSlug
from spa_hosting.models.package import (
    ProjectAssets,
    ProjectStatus,
    ProjectUnavailable,
    ResolvedProject,
    UnavailableReason,
)
from spa_hosting.services.project_store import ProjectStore, validate_slug
from spa_hosting.utils.file_patterns import is_script, is_stylesheet

logger = logging.getLogger(__name__)

CRA_MANIFEST = "asset-manifest.json"
VITE_MANIFESTS = (".vite/manifest.json", "manifest.json")


def _clean_asset_path(raw: Any) -> str | None:
    if not isinstance(raw, str):
        return None
    normalized = raw.replace("\\", "/").lstrip("/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    parts = PurePosixPath(normalized).parts
    if not parts or ".." in parts:
        return None
    return "/".join(parts)


def _split_assets(paths: Iterable[Any]) -> ProjectAssets:
    assets = ProjectAssets()
    for raw in paths:
        path = _clean_asset_path(raw)
        if path is None:
            continue
        if is_script(path) and path not in assets.scripts:
            assets.scripts.append(path)
        elif is_stylesheet(path) and path not in assets.stylesheets:
            assets.stylesheets.append(path)
    return assets


def _load_json(path: Path) -> Any | None:
    if not path.is_file():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        logger.warning("Ignoring unreadable manifest %s", path)
        return None


def _assets_from_cra_manifest(data: Any) -> ProjectAssets | None:
    if not isinstance(data, dict):
        return None
    entrypoints = data.get("entrypoints")
    if isinstance(entrypoints, list) and entrypoints:
        return _split_assets(entrypoints)
    files = data.get("files")
    if isinstance(files, dict):
        return _split_assets(files.values())
    return None


def _assets_from_vite_manifest(data: Any) -> ProjectAssets | None:
    if not isinstance(data, dict):
        return None
    paths: list[Any] = []
    for chunk in data.values():
        if not isinstance(chunk, dict) or not chunk.get("isEntry"):
            continue
        paths.append(chunk.get("file"))
        css = chunk.get("css")
        if isinstance(css, list):
            paths.extend(css)
    return _split_assets(paths) if paths else None


def _assets_from_scan(root: Path) -> ProjectAssets:
    found = (
        path.relative_to(root).as_posix()
        for path in sorted(root.rglob("*"))
        if path.is_file() and not path.is_symlink()
    )
    return _split_assets(found)


class ProjectResolver:
    """Looks up the version of a slug that may be served.

    Readers only consult the store; they never wait on the upload lock, and
    any storage path they receive belongs to a completed promotion.
    """

    def __init__(self, settings: Settings | None = None, store: ProjectStore | None = None) -> None:
        self.settings = settings or load_settings()
        self.store = store or ProjectStore(self.settings)

    def resolve(self, slug: str) -> ResolvedProject | ProjectUnavailable:
        """Return where the active version of *slug* lives.

        Returns:
            ResolvedProject for an active project, otherwise ProjectUnavailable
            with reason ``NOT_FOUND`` (unknown, never promoted, or being
            deleted) or ``INACTIVE`` (deactivated or in error).
        """
        try:
            validate_slug(slug)
        except InvalidSlug:
            return ProjectUnavailable(slug=slug, reason=UnavailableReason.NOT_FOUND)

        record = self.store.get_active(slug)
        if record is None or record.status is ProjectStatus.DELETING:
            return ProjectUnavailable(slug=slug, reason=UnavailableReason.NOT_FOUND)
        if not record.is_servable:
            return ProjectUnavailable(slug=slug, reason=UnavailableReason.INACTIVE)

        return ResolvedProject(
            slug=record.slug,
            display_name=record.display_name,
            version_id=record.current_version,
            storage_path=record.storage_path,
            entry_point=record.entry_point,
        )

    def list_assets(self, slug: str) -> ProjectAssets | ProjectUnavailable:
        """Return the scripts and stylesheets the active version loads.

        Build manifests are preferred; without one the version directory is
        scanned.
        """
        resolved = self.resolve(slug)
        if isinstance(resolved, ProjectUnavailable):
            return resolved

        root = resolved.storage_path
        assets = _assets_from_cra_manifest(_load_json(root / CRA_MANIFEST))
        if assets is None:
            for name in VITE_MANIFESTS:
                assets = _assets_from_vite_manifest(_load_json(root / name))
                if assets is not None:
                    break
        if assets is None:
            assets = _assets_from_scan(root)
        return assets
