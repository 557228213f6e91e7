from __future__ import annotations

from pathlib import Path

import pytest

from spa_hosting.models.errors import (
    ConcurrentModification,
    InvalidSlug,
    SlugConflict,
    SlugNotFound,
    StoreError,
)
from spa_hosting.models.package import ProjectStatus
from spa_hosting.services import project_store
from spa_hosting.services.project_store import ProjectStore, validate_slug
from spa_hosting.utils.fs import remove_tree


def _make_version(store: ProjectStore, slug: str, version_id: str) -> Path:
    path = store.version_dir(slug, version_id)
    path.mkdir(parents=True)
    (path / "index.html").write_text(f"<html>{version_id}</html>", encoding="utf-8")
    return path


def _publish(store: ProjectStore, slug: str, version_id: str, **kwargs) -> None:
    path = _make_version(store, slug, version_id)
    store.promote(slug, version_id, path, 10, 1, **kwargs)


@pytest.mark.parametrize("slug", ["demo", "my-app-2", "a" * 100])
def test_validate_slug_accepts(slug: str) -> None:
    assert validate_slug(slug) == slug


@pytest.mark.parametrize("slug", ["", "Demo", "my_app", "../demo", "demo app", "a" * 101])
def test_validate_slug_rejects(slug: str) -> None:
    with pytest.raises(InvalidSlug):
        validate_slug(slug)


def test_create_slot_registers_pending_project(store: ProjectStore) -> None:
    slot = store.create_slot("demo", "Demo App")

    assert slot.created is True
    assert slot.current_version is None
    record = store.get("demo")
    assert record is not None
    assert record.status is ProjectStatus.PENDING
    assert record.display_name == "Demo App"
    assert store.get_active("demo") is None


def test_create_slot_conflict(store: ProjectStore) -> None:
    store.create_slot("demo")

    with pytest.raises(SlugConflict):
        store.create_slot("demo")


def test_create_or_get_slot_returns_existing(store: ProjectStore) -> None:
    store.create_slot("demo")

    slot = store.create_or_get_slot("demo")

    assert slot.created is False
    assert slot.status is ProjectStatus.PENDING


def test_release_slot_only_drops_pending(store: ProjectStore) -> None:
    store.create_slot("demo")
    assert store.release_slot("demo") is True
    assert store.get("demo") is None

    store.create_slot("live")
    _publish(store, "live", "v1")
    assert store.release_slot("live") is False
    assert store.get("live") is not None


def test_promote_tracks_history(store: ProjectStore) -> None:
    store.create_slot("demo")

    _publish(store, "demo", "v1", expected_version=None)
    record = store.get("demo")
    assert record is not None
    assert record.status is ProjectStatus.ACTIVE
    assert record.current_version == "v1"
    assert record.history == []

    _publish(store, "demo", "v2", expected_version="v1", build_tool="vite")
    record = store.get("demo")
    assert record is not None
    assert record.current_version == "v2"
    assert record.storage_path == store.version_dir("demo", "v2")
    assert [(entry.version_id, entry.replaced_by) for entry in record.history] == [("v1", "v2")]
    assert [version.version_id for version in record.retained] == ["v1"]
    assert record.retained[0].build_tool == "unknown"


def test_promote_same_version_is_noop(store: ProjectStore) -> None:
    store.create_slot("demo")
    path = _make_version(store, "demo", "v1")
    first = store.promote("demo", "v1", path, 10, 1)

    second = store.promote("demo", "v1", path, 10, 1, expected_version="v1")

    assert second.current_version == first.current_version
    assert second.updated_at == first.updated_at
    assert second.history == []


def test_repromotion_appends_to_history(store: ProjectStore) -> None:
    store.create_slot("demo")
    _publish(store, "demo", "v1")
    _publish(store, "demo", "v2")

    record = store.promote(
        "demo", "v1", store.version_dir("demo", "v1"), 10, 1, expected_version="v2"
    )

    assert record.current_version == "v1"
    assert [(entry.version_id, entry.replaced_by) for entry in record.history] == [
        ("v1", "v2"),
        ("v2", "v1"),
    ]
    assert [version.version_id for version in record.retained] == ["v2"]


def test_promote_detects_concurrent_change(store: ProjectStore) -> None:
    store.create_slot("demo")
    _publish(store, "demo", "v1")

    path = _make_version(store, "demo", "v2")
    with pytest.raises(ConcurrentModification):
        store.promote("demo", "v2", path, 10, 1, expected_version=None)

    record = store.get("demo")
    assert record is not None
    assert record.current_version == "v1"


def test_promote_unknown_slug(store: ProjectStore, tmp_path: Path) -> None:
    with pytest.raises(SlugNotFound):
        store.promote("ghost", "v1", tmp_path, 0, 0)


def test_set_status_changes_visibility(store: ProjectStore) -> None:
    store.create_slot("demo")
    _publish(store, "demo", "v1")

    record = store.set_status("demo", ProjectStatus.INACTIVE)
    assert record.status is ProjectStatus.INACTIVE
    assert not record.is_servable

    _publish(store, "demo", "v2")
    record = store.get("demo")
    assert record is not None
    assert record.status is ProjectStatus.INACTIVE

    record = store.set_status("demo", ProjectStatus.ACTIVE)
    assert record.is_servable


def test_set_status_rejects_internal_states(store: ProjectStore) -> None:
    store.create_slot("demo")
    _publish(store, "demo", "v1")

    with pytest.raises(ValueError):
        store.set_status("demo", ProjectStatus.DELETING)


def test_set_status_unknown_or_pending(store: ProjectStore) -> None:
    with pytest.raises(SlugNotFound):
        store.set_status("ghost", ProjectStatus.ACTIVE)

    store.create_slot("pending")
    with pytest.raises(SlugNotFound):
        store.set_status("pending", ProjectStatus.ACTIVE)


def test_rename(store: ProjectStore) -> None:
    store.create_slot("demo")

    record = store.rename("demo", "  Shiny Demo ")

    assert record.display_name == "Shiny Demo"
    with pytest.raises(ValueError):
        store.rename("demo", "   ")


def test_delete_removes_rows_and_files(store: ProjectStore) -> None:
    store.create_slot("demo")
    _publish(store, "demo", "v1")
    _publish(store, "demo", "v2")

    store.delete("demo")

    assert store.get("demo") is None
    assert not store.project_dir("demo").exists()
    assert store.statistics().retained_versions == 0


def test_delete_unknown_slug(store: ProjectStore) -> None:
    with pytest.raises(SlugNotFound):
        store.delete("ghost")


def test_failed_delete_drops_removed_versions(
    store: ProjectStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    store.create_slot("demo")
    _publish(store, "demo", "v1")
    _publish(store, "demo", "v2")
    stuck = {store.version_dir("demo", "v1")}

    def remove_all_but_stuck(path: Path) -> bool:
        return False if path in stuck else remove_tree(path)

    monkeypatch.setattr(project_store, "remove_tree", remove_all_but_stuck)
    with pytest.raises(StoreError):
        store.delete("demo")

    record = store.get("demo")
    assert record is not None
    assert record.status is ProjectStatus.DELETING
    assert record.current_version is None
    assert record.storage_path is None
    assert [version.version_id for version in record.retained] == ["v1"]
    assert store.get_active("demo") is None
    with pytest.raises(SlugNotFound):
        store.set_status("demo", ProjectStatus.ACTIVE)
    with pytest.raises(SlugNotFound):
        store.promote("demo", "v2", store.version_dir("demo", "v2"), 10, 1)
    with pytest.raises(SlugConflict):
        store.create_or_get_slot("demo")

    stuck.clear()
    store.delete("demo")

    assert store.get("demo") is None
    assert not store.project_dir("demo").exists()


def test_prune_keeps_newest_versions(store: ProjectStore) -> None:
    store.create_slot("demo")
    for version_id in ("v1", "v2", "v3", "v4"):
        _publish(store, "demo", version_id)

    removed = store.prune("demo", 1)

    assert sorted(removed) == ["v1", "v2"]
    record = store.get("demo")
    assert record is not None
    assert record.current_version == "v4"
    assert [version.version_id for version in record.retained] == ["v3"]
    assert [entry.version_id for entry in record.history] == ["v1", "v2", "v3"]
    assert [entry.is_retained for entry in record.history] == [False, False, True]
    assert not store.version_dir("demo", "v1").exists()
    assert store.version_dir("demo", "v3").exists()
    assert store.version_dir("demo", "v4").exists()


def test_prune_negative_retain_keeps_everything(store: ProjectStore) -> None:
    store.create_slot("demo")
    _publish(store, "demo", "v1")
    _publish(store, "demo", "v2")

    assert store.prune("demo", -1) == []


def test_list_projects_filters_and_orders(store: ProjectStore) -> None:
    for slug, name in (("beta", "Beta"), ("alpha", "alpha"), ("gamma", "Gamma")):
        store.create_slot(slug, name)
        _publish(store, slug, "v1")
    store.set_status("gamma", ProjectStatus.INACTIVE)

    by_name = store.list_projects()
    assert [record.slug for record in by_name] == ["alpha", "beta", "gamma"]

    active = store.list_projects(status=ProjectStatus.ACTIVE)
    assert {record.slug for record in active} == {"alpha", "beta"}

    by_date = store.list_projects(order_by="date", limit=1)
    assert [record.slug for record in by_date] == ["gamma"]

    assert store.count() == 3
    assert store.count(ProjectStatus.INACTIVE) == 1

    with pytest.raises(ValueError):
        store.list_projects(order_by="size")


def test_statistics(store: ProjectStore) -> None:
    store.create_slot("demo")
    _publish(store, "demo", "v1")
    _publish(store, "demo", "v2")
    store.create_slot("draft")

    stats = store.statistics()

    assert stats.total_projects == 2
    assert stats.by_status == {"active": 1, "pending": 1}
    assert stats.active_size_bytes == 10
    assert stats.retained_versions == 2
