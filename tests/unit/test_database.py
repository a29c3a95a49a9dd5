"""Tests for monuments.core.database — the creations store.

Runs against an in-memory SQLite engine (see ``tests/conftest.py``); the
production backend is PostgreSQL, but the store only uses portable SQL.
"""

from __future__ import annotations

import pytest

from monuments.core.config import MonumentsConfig
from monuments.core.database import CreationStore
from monuments.core.errors import DatabaseNotConfiguredError


def _add(store: CreationStore, name: str, latitude: float = 0.0, longitude: float = 0.0) -> dict:
    return store.add_creation(
        monument_prompt=name,
        scene_prompt=f"{name} scene",
        image_url=f"data:image/png;base64,{name}",
        latitude=latitude,
        longitude=longitude,
    )


class TestAddCreation:
    """Test CreationStore.add_creation."""

    def test_returns_stored_row(self, store: CreationStore):
        """The new row comes back with id, timestamp and image."""
        row = _add(store, "owl", 48.8584, 2.2945)
        assert isinstance(row["id"], int)
        assert row["created_at"] is not None
        assert row["image_url"] == "data:image/png;base64,owl"
        assert row["latitude"] == 48.8584

    def test_ids_increase(self, store: CreationStore):
        """Ids should be assigned in insertion order."""
        first = _add(store, "a")
        second = _add(store, "b")
        assert second["id"] > first["id"]


class TestListCreations:
    """Test CreationStore.list_creations."""

    def test_empty(self, store: CreationStore):
        """An empty table gives an empty list."""
        assert store.list_creations() == []

    def test_newest_first_without_images(self, store: CreationStore):
        """Listing should omit image payloads and put the newest first."""
        _add(store, "first")
        _add(store, "second")
        rows = store.list_creations()
        assert [r["monument_prompt"] for r in rows] == ["second", "first"]
        assert all("image_url" not in r for r in rows)
        assert {"id", "scene_prompt", "created_at", "latitude", "longitude"} <= set(rows[0])


class TestGetCreation:
    """Test CreationStore.get_creation."""

    def test_found(self, store: CreationStore):
        """A stored id returns the full row."""
        created = _add(store, "owl")
        row = store.get_creation(created["id"])
        assert row["image_url"] == created["image_url"]

    def test_missing(self, store: CreationStore):
        """An unknown id returns None."""
        assert store.get_creation(999) is None


class TestCounts:
    """Test count_creations and count_located."""

    def test_counts(self, store: CreationStore):
        """Null Island creations are counted but not as located."""
        _add(store, "nowhere")
        _add(store, "paris", 48.8584, 2.2945)
        _add(store, "equator", 0.0, 12.5)
        assert store.count_creations() == 3
        assert store.count_located() == 2


class TestNotConfigured:
    """Test behaviour without a database URL."""

    def test_engine_raises(self, test_config: MonumentsConfig):
        """Touching the engine without a URL raises a clear error."""
        store = CreationStore(test_config)
        with pytest.raises(DatabaseNotConfiguredError, match="DATABASE_URL"):
            store.list_creations()

    def test_dispose_without_engine(self, test_config: MonumentsConfig):
        """dispose() is a no-op when no pool was ever created."""
        CreationStore(test_config).dispose()

    def test_lazy_sqlite_url(self, test_config: MonumentsConfig):
        """A configured URL creates the engine on first use."""
        cfg = test_config.model_copy(update={"database_url": "sqlite://"})
        store = CreationStore(cfg)
        store.create_tables()
        assert store.count_creations() == 0
        store.dispose()
