# tests/test_migration.py

"""Tests for the stored-fingerprint migration adapter."""

import unittest

from listing_monitor.core.migration import MigrationAdapter
from listing_monitor.models.fingerprint_record import FingerprintRecord

SHA = "1f40fc92da241694750979ee6cf582f2d5d7d28e18335de05abc54d0560e0f53"
MD5 = "d41d8cd98f00b204e9800998ecf8427e"


class TestMigrate(unittest.TestCase):
    """MigrationAdapter.migrate behaviour."""

    def setUp(self) -> None:
        self.adapter = MigrationAdapter()

    def test_sha256_passes_through(self) -> None:
        """Current-length digests are kept unchanged."""
        self.assertEqual(self.adapter.migrate(SHA), SHA)
        self.assertEqual(self.adapter.dropped_legacy_count, 0)

    def test_uppercase_and_whitespace_normalised(self) -> None:
        """Digests are stripped and lower-cased before validation."""
        self.assertEqual(
            self.adapter.migrate(f"  {SHA.upper()}\n"), SHA,
        )

    def test_legacy_md5_dropped_and_counted(self) -> None:
        """32-character digests are dropped and counted."""
        self.assertIsNone(self.adapter.migrate(MD5))
        self.assertEqual(self.adapter.dropped_legacy_count, 1)
        self.assertEqual(self.adapter.rejected_count, 0)

    def test_record_with_fingerprint_key(self) -> None:
        """Current record dicts are unpacked."""
        entry = {"fingerprint": SHA, "lastSeen": 5}
        self.assertEqual(self.adapter.migrate(entry), SHA)

    def test_record_with_legacy_hash_key(self) -> None:
        """Records written with the older 'hash' key still load."""
        entry = {"hash": SHA, "lastSeen": 5}
        self.assertEqual(self.adapter.migrate(entry), SHA)

    def test_unexpected_shapes_rejected(self) -> None:
        """Wrong lengths, non-hex and non-strings are rejected."""
        bad = [
            "abc",
            "z" * 64,
            SHA[:40],
            None,
            42,
            {"lastSeen": 1},
            ["nested"],
        ]
        with self.assertLogs("listing_monitor.migration", "WARNING"):
            for entry in bad:
                with self.subTest(entry=entry):
                    self.assertIsNone(self.adapter.migrate(entry))
        self.assertEqual(self.adapter.rejected_count, len(bad))
        self.assertEqual(self.adapter.dropped_legacy_count, 0)


class TestMigrateEntry(unittest.TestCase):
    """MigrationAdapter.migrate_entry behaviour."""

    def setUp(self) -> None:
        self.adapter = MigrationAdapter()

    def test_keeps_stored_last_seen(self) -> None:
        """A valid lastSeen survives migration."""
        record = self.adapter.migrate_entry(
            {"fingerprint": SHA, "lastSeen": 1_700_000_000_000}, 99,
        )
        self.assertEqual(
            record, FingerprintRecord(SHA, 1_700_000_000_000),
        )

    def test_bare_string_gets_default_last_seen(self) -> None:
        """Bare strings carry no timestamp."""
        record = self.adapter.migrate_entry(SHA, 123)
        self.assertEqual(record, FingerprintRecord(SHA, 123))

    def test_invalid_last_seen_replaced(self) -> None:
        """Unusable lastSeen values fall back to the default."""
        for last_seen in (
            None, 0, "yesterday", True, float("inf"), float("nan"),
        ):
            with self.subTest(last_seen=last_seen):
                record = self.adapter.migrate_entry(
                    {"fingerprint": SHA, "lastSeen": last_seen}, 7,
                )
                assert record is not None
                self.assertEqual(record.last_seen, 7)

    def test_legacy_entry_returns_none(self) -> None:
        """Legacy records produce no record."""
        self.assertIsNone(
            self.adapter.migrate_entry({"hash": MD5, "lastSeen": 1}, 7),
        )
        self.assertEqual(self.adapter.dropped_legacy_count, 1)


if __name__ == "__main__":
    unittest.main()
