# tests/test_key_value_store.py

"""Tests for the persistent key/value stores."""

import shutil
import sqlite3
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from listing_monitor.core.errors import StoreError
from listing_monitor.storage.key_value_store import (
    InMemoryKeyValueStore,
    SQLiteKeyValueStore,
)


class TestSQLiteKeyValueStore(unittest.TestCase):
    """SQLiteKeyValueStore unit tests."""

    def setUp(self) -> None:
        """Open a fresh store in a temp directory for each test."""
        self.tmp_dir = tempfile.mkdtemp()
        self.db_path = Path(self.tmp_dir) / "nested" / "store.db"
        self.store = SQLiteKeyValueStore(db_path=self.db_path)
        self.store.open()

    def tearDown(self) -> None:
        """Close the store and remove the temp directory."""
        self.store.close()
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    # ── open / close ─────────────────────────────────────

    def test_open_creates_parent_dirs(self) -> None:
        """The database file is created under missing directories."""
        self.assertTrue(self.db_path.exists())

    def test_open_twice_is_noop(self) -> None:
        """A second open keeps the same connection."""
        self.store.set("k", 1)
        self.store.open()
        self.assertEqual(self.store.get("k"), 1)

    def test_open_failure_raises_store_error(self) -> None:
        """A path that cannot hold a database raises StoreError."""
        blocker = Path(self.tmp_dir) / "file"
        blocker.write_text("x")
        store = SQLiteKeyValueStore(db_path=blocker / "sub" / "db")
        with self.assertRaises(StoreError):
            store.open()

    def test_failed_schema_setup_closes_connection(self) -> None:
        """A connection opened before a setup error is closed again."""
        conn = MagicMock()
        conn.executescript.side_effect = sqlite3.OperationalError("locked")
        store = SQLiteKeyValueStore(db_path=self.db_path)
        with patch("sqlite3.connect", return_value=conn):
            with self.assertRaises(StoreError):
                store.open()
        conn.close.assert_called_once()
        with self.assertRaises(StoreError):
            store.get("k")

    def test_use_before_open_raises(self) -> None:
        """Operations on an unopened store fail with StoreError."""
        store = SQLiteKeyValueStore(db_path=self.db_path)
        with self.assertRaises(StoreError):
            store.get("k")

    # ── get / set ────────────────────────────────────────

    def test_get_missing_returns_none(self) -> None:
        """Unknown keys read as None."""
        self.assertIsNone(self.store.get("missing"))

    def test_set_then_get_json_value(self) -> None:
        """Lists of dicts are stored as JSON and decoded on read."""
        value = [{"fingerprint": "a" * 64, "lastSeen": 1}]
        self.store.set("map", value)
        self.assertEqual(self.store.get("map"), value)

    def test_set_overwrites(self) -> None:
        """Setting an existing key replaces its value."""
        self.store.set("k", [1])
        self.store.set("k", [2, 3])
        self.assertEqual(self.store.get("k"), [2, 3])

    def test_values_survive_reopen(self) -> None:
        """Data is durable across connections."""
        self.store.set("k", {"a": 1})
        self.store.close()
        reopened = SQLiteKeyValueStore(db_path=self.db_path)
        reopened.open()
        try:
            self.assertEqual(reopened.get("k"), {"a": 1})
        finally:
            reopened.close()

    def test_unserialisable_value_raises(self) -> None:
        """Values json cannot encode raise StoreError."""
        with self.assertRaises(StoreError):
            self.store.set("k", {"bad": object()})

    def test_corrupt_row_raises(self) -> None:
        """A row holding invalid JSON raises StoreError on read."""
        conn = sqlite3.connect(str(self.db_path))
        conn.execute(
            "INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)",
            ("broken", "NOT JSON {{{", "2026-01-01"),
        )
        conn.commit()
        conn.close()
        with self.assertRaises(StoreError):
            self.store.get("broken")

    # ── list_keys / delete ───────────────────────────────

    def test_list_keys_with_prefix(self) -> None:
        """Only keys with the prefix are listed, sorted."""
        self.store.set("price_history_b", [])
        self.store.set("price_history_a", [])
        self.store.set("seen_listing_fingerprints", [])
        self.assertEqual(
            self.store.list_keys("price_history_"),
            ["price_history_a", "price_history_b"],
        )
        self.assertEqual(len(self.store.list_keys()), 3)

    def test_list_keys_prefix_is_literal(self) -> None:
        """LIKE wildcards in a prefix are not interpreted."""
        self.store.set("a_b", 1)
        self.store.set("axb", 1)
        self.assertEqual(self.store.list_keys("a_"), ["a_b"])

    def test_delete(self) -> None:
        """Deleted keys read as None; deleting twice is fine."""
        self.store.set("k", 1)
        self.store.delete("k")
        self.store.delete("k")
        self.assertIsNone(self.store.get("k"))


class TestInMemoryKeyValueStore(unittest.TestCase):
    """InMemoryKeyValueStore unit tests."""

    def setUp(self) -> None:
        self.store = InMemoryKeyValueStore()
        self.store.open()

    def test_round_trip_copies_values(self) -> None:
        """Mutating a value after set does not change the stored copy."""
        value = [{"price": 1.0}]
        self.store.set("k", value)
        value.append({"price": 2.0})
        self.assertEqual(self.store.get("k"), [{"price": 1.0}])

    def test_list_and_delete(self) -> None:
        """Prefix listing and deletion behave like the SQLite store."""
        self.store.set("p_1", 1)
        self.store.set("q_1", 1)
        self.assertEqual(self.store.list_keys("p_"), ["p_1"])
        self.store.delete("p_1")
        self.assertEqual(self.store.list_keys("p_"), [])

    def test_open_close_flags(self) -> None:
        """open/close toggle is_open."""
        self.assertTrue(self.store.is_open)
        self.store.close()
        self.assertFalse(self.store.is_open)


if __name__ == "__main__":
    unittest.main()
