"""Tests for the SQLite key-value store."""

from datetime import UTC, datetime

from safelink.storage import KeyValueStore, cache_key


class TestBasicOperations:
    def test_get_missing_returns_none(self, store):
        assert store.get("settings/lists") is None

    def test_set_and_get_roundtrip_json(self, store):
        store.set("settings/custom", {"example.com": True})
        assert store.get("settings/custom") == {"example.com": True}

    def test_set_overwrites(self, store):
        store.set("cached/a", "one")
        store.set("cached/a", "two")
        assert store.get("cached/a") == "two"

    def test_remove(self, store):
        store.set("cached/a", "x")
        assert store.remove("cached/a") is True
        assert store.get("cached/a") is None
        assert store.remove("cached/a") is False

    def test_datetime_stored_as_iso(self, store):
        store.set("timestamp/lastUpdate", datetime(2024, 1, 2, tzinfo=UTC))
        assert store.get("timestamp/lastUpdate") == "2024-01-02T00:00:00+00:00"


class TestPersistence:
    def test_survives_reopen(self, tmp_path):
        path = tmp_path / "sub" / "kv.db"
        with KeyValueStore(path) as s:
            s.set("settings/general", {"automaticUpdates": False})
        with KeyValueStore(path) as s:
            assert s.get("settings/general") == {"automaticUpdates": False}

    def test_in_memory(self):
        with KeyValueStore(":memory:") as s:
            s.set("k", [1, 2])
            assert s.get("k") == [1, 2]
