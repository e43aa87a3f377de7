# listing_monitor/storage/key_value_store.py

"""Durable key/value stores holding the engine's cross-run state."""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from listing_monitor.config.settings import Settings
from listing_monitor.core.errors import StoreError

logger = logging.getLogger("listing_monitor.store")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS kv (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class PersistentStore(Protocol):
    """Key/value surface the engine persists through.

    Values are JSON-compatible.  Every method may raise ``StoreError``.
    """

    def open(self) -> None: ...

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def list_keys(self, prefix: str = "") -> list[str]: ...

    def delete(self, key: str) -> None: ...

    def close(self) -> None: ...


class SQLiteKeyValueStore:
    """SQLite-backed store keeping each value as a JSON document."""

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path: Path = db_path or Settings.STORE_DB_PATH
        self._conn: sqlite3.Connection | None = None

    def open(self) -> None:
        """Open the database file, creating it and its table if needed."""
        if self._conn is not None:
            return
        conn: sqlite3.Connection | None = None
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self.db_path), check_same_thread=False,
            )
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_SCHEMA)
        except (sqlite3.Error, OSError) as exc:
            if conn is not None:
                conn.close()
            raise StoreError(
                f"Cannot open store at {self.db_path}",
                details={"operation": "open"},
                cause=exc,
            ) from exc
        self._conn = conn
        logger.debug("SQLiteKeyValueStore opened at %s", self.db_path)

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ── Reads ────────────────────────────────────────────

    def get(self, key: str) -> Any | None:
        """Return the decoded value for *key*, or ``None`` if absent."""
        conn = self._connection("get", key)
        try:
            row = conn.execute(
                "SELECT value FROM kv WHERE key = ?", (key,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise _store_error("get", key, exc) from exc
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as exc:
            raise _store_error("get", key, exc) from exc

    def list_keys(self, prefix: str = "") -> list[str]:
        """Return all keys starting with *prefix*, sorted."""
        conn = self._connection("list_keys", prefix)
        try:
            rows = conn.execute(
                "SELECT key FROM kv WHERE substr(key, 1, ?) = ? "
                "ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        except sqlite3.Error as exc:
            raise _store_error("list_keys", prefix, exc) from exc
        return [r[0] for r in rows]

    # ── Writes ───────────────────────────────────────────

    def set(self, key: str, value: Any) -> None:
        """Insert or replace the JSON-encoded *value* under *key*."""
        conn = self._connection("set", key)
        try:
            encoded = json.dumps(value, ensure_ascii=False)
            conn.execute(
                "INSERT INTO kv (key, value, updated_at) "
                "VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET "
                "value=excluded.value, updated_at=excluded.updated_at",
                (key, encoded, datetime.now().isoformat()),
            )
            conn.commit()
        except (sqlite3.Error, TypeError, ValueError) as exc:
            raise _store_error("set", key, exc) from exc

    def delete(self, key: str) -> None:
        """Remove *key*; deleting a missing key is not an error."""
        conn = self._connection("delete", key)
        try:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()
        except sqlite3.Error as exc:
            raise _store_error("delete", key, exc) from exc

    def _connection(self, operation: str, key: str) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError(
                "Store is not open",
                details={"operation": operation, "key": key},
            )
        return self._conn


class InMemoryKeyValueStore:
    """Dict-backed store for tests and single-process embedding.

    Values are JSON round-tripped on the way in and out so callers never
    share mutable objects with the store.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self.is_open: bool = False

    def open(self) -> None:
        self.is_open = True

    def close(self) -> None:
        self.is_open = False

    def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise _store_error("set", key, exc) from exc

    def list_keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


def _store_error(operation: str, key: str, exc: Exception) -> StoreError:
    """Wrap a backend exception with the operation and key it hit."""
    return StoreError(
        f"Store {operation} failed for key '{key}'",
        details={"operation": operation, "key": key},
        cause=exc,
    )
