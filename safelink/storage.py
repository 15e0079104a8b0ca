"""SQLite-backed key-value store for settings and cached lists.

Every value is stored as JSON text. Anything exposing the same
``get`` / ``set`` / ``remove`` trio can be passed to ``SafelinkCore``
instead (e.g. a browser storage bridge).
"""

import json
import logging
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# --- Storage keys ---

LAST_UPDATE_KEY = "timestamp/lastUpdate"
CATALOG_VERSION_KEY = "timestamp/default"
GENERAL_SETTINGS_KEY = "settings/general"
LISTS_KEY = "settings/lists"
CUSTOM_KEY = "settings/custom"
PREVENTION_KEY = "settings/prevention"
CACHE_PREFIX = "cached/"


def cache_key(list_id: str) -> str:
    """Storage key for a list's cached content."""
    return CACHE_PREFIX + list_id


_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS kv (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TEXT NOT NULL
)
"""

_UPSERT = """
INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
"""


class KeyValueStore:
    """Persistent JSON key-value store.

    Usage::

        with KeyValueStore("data/safelink.db") as store:
            store.set("settings/custom", {"example.com": True})
            store.get("settings/custom")
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._db_path)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_CREATE_TABLE)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "KeyValueStore":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def get(self, key: str) -> Any | None:
        """Return the decoded value for *key*, or None if unset."""
        row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    def set(self, key: str, value: Any) -> None:
        """Store *value* (anything JSON-serialisable; datetimes become ISO strings)."""
        self._conn.execute(
            _UPSERT,
            (key, json.dumps(value, default=_json_default), datetime.now(UTC).isoformat()),
        )
        self._conn.commit()

    def remove(self, key: str) -> bool:
        """Delete *key*. Returns True if it existed."""
        cursor = self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        self._conn.commit()
        return cursor.rowcount > 0


def _json_default(value: object) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
