# listing_monitor/core/migration.py

"""Validation of fingerprints loaded from older stored formats."""

import logging
import math
import re
from typing import Any

from listing_monitor.core.fingerprint import FINGERPRINT_LENGTH
from listing_monitor.models.fingerprint_record import FingerprintRecord

logger = logging.getLogger("listing_monitor.migration")

_HEX_RE = re.compile(r"^[a-f0-9]+$")

# MD5 hex digests written before the move to SHA-256
LEGACY_FINGERPRINT_LENGTH = 32


class MigrationAdapter:
    """Filter stored fingerprints down to the current algorithm.

    Current 64-character digests pass through unchanged.  Legacy
    32-character digests cannot be mapped back to a ``platform:id``
    identity, so they are dropped and counted; the listings they stood
    for are reported as new once more the next time they are seen.
    Anything else is rejected with a warning.
    """

    def __init__(self) -> None:
        self.dropped_legacy_count: int = 0
        self.rejected_count: int = 0

    def migrate(self, raw_entry: Any) -> str | None:
        """Return the usable fingerprint in *raw_entry*, or ``None``.

        *raw_entry* may be a bare string or a stored record dict using
        either the ``fingerprint`` or the older ``hash`` key.
        """
        candidate = raw_entry
        if isinstance(raw_entry, dict):
            candidate = raw_entry.get("fingerprint", raw_entry.get("hash"))

        if not candidate or not isinstance(candidate, str):
            self._reject(raw_entry)
            return None

        normalised = candidate.strip().lower()
        if not _HEX_RE.match(normalised):
            self._reject(raw_entry)
            return None

        if len(normalised) == FINGERPRINT_LENGTH:
            return normalised

        if len(normalised) == LEGACY_FINGERPRINT_LENGTH:
            self.dropped_legacy_count += 1
            return None

        self._reject(raw_entry)
        return None

    def migrate_entry(
        self, raw_entry: Any, default_last_seen: int,
    ) -> FingerprintRecord | None:
        """Migrate a stored entry into a record, keeping its ``lastSeen``."""
        migrated = self.migrate(raw_entry)
        if migrated is None:
            return None

        last_seen = default_last_seen
        if isinstance(raw_entry, dict):
            stored = raw_entry.get("lastSeen")
            if (
                isinstance(stored, (int, float))
                and not isinstance(stored, bool)
                and math.isfinite(stored)
                and stored > 0
            ):
                last_seen = int(stored)

        return FingerprintRecord(fingerprint=migrated, last_seen=last_seen)

    def _reject(self, raw_entry: Any) -> None:
        self.rejected_count += 1
        logger.warning(
            "Unexpected fingerprint format during migration: %r",
            raw_entry,
        )
