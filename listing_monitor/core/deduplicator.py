# listing_monitor/core/deduplicator.py

"""Cross-run listing deduplication backed by a persistent store."""

import logging
import time
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from listing_monitor.config.settings import Settings
from listing_monitor.core.errors import (
    EngineStateError,
    PersistenceError,
    StoreError,
)
from listing_monitor.core.fingerprint import fingerprint
from listing_monitor.core.migration import MigrationAdapter
from listing_monitor.core.price_history import PriceHistoryTracker
from listing_monitor.models.engine_config import EngineConfig
from listing_monitor.models.fingerprint_record import FingerprintRecord
from listing_monitor.models.listing import Listing
from listing_monitor.models.price_snapshot import to_epoch_ms
from listing_monitor.storage.key_value_store import (
    PersistentStore,
    SQLiteKeyValueStore,
)

logger = logging.getLogger("listing_monitor.dedup")


class DeduplicationEngine:
    """Track seen listings across runs and pick out the new ones.

    The engine keeps a map of fingerprint -> last-seen epoch ms, loaded
    once by :meth:`initialize` and written back after every
    :meth:`find_new_listings` batch.  At most one engine should write to
    a given store at a time.
    """

    def __init__(
        self,
        store: PersistentStore | None = None,
        config: EngineConfig | None = None,
        tracker: PriceHistoryTracker | None = None,
    ) -> None:
        self.store: PersistentStore = store or SQLiteKeyValueStore()
        self.config = config or EngineConfig.from_settings()
        self.tracker = tracker or PriceHistoryTracker(
            self.store, self.config,
        )
        self.map_key: str = Settings.FINGERPRINT_MAP_KEY
        self.migration = MigrationAdapter()
        self.seen_fingerprints: dict[str, int] = {}
        self._initialized = False

    # ── Lifecycle ────────────────────────────────────────

    def initialize(
        self, now: datetime | None = None, maintenance: bool = True,
    ) -> None:
        """Open the store, sweep old price history and load the map.

        Raises ``StoreError`` only when the store cannot be opened or
        the stored map cannot be read.  Unusable entries are logged and
        skipped; dropping legacy digests triggers an immediate re-persist.

        With ``maintenance=False`` the map is loaded read-only: expired
        histories are left in place and nothing is written back.
        """
        moment = now or datetime.now(timezone.utc)
        self.store.open()
        if maintenance:
            self.tracker.cleanup_old_history(moment)

        stored = self.store.get(self.map_key)
        self.migration = MigrationAdapter()
        seen: dict[str, int] = {}

        if stored is None:
            logger.info("No previous listing history found, starting fresh")
        elif not isinstance(stored, list):
            logger.warning(
                "Ignoring stored fingerprint map of type %s",
                type(stored).__name__,
            )
        else:
            default_last_seen = to_epoch_ms(moment)
            for entry in stored:
                record = self.migration.migrate_entry(
                    entry, default_last_seen,
                )
                if record is not None:
                    seen[record.fingerprint] = record.last_seen
            logger.info(
                "Loaded %d previously seen listings", len(seen),
            )

        self.seen_fingerprints = seen
        self._initialized = True

        if self.migration.dropped_legacy_count and maintenance:
            logger.info(
                "Dropped %d legacy MD5 fingerprints; history will "
                "repopulate under SHA-256 as listings are seen again",
                self.migration.dropped_legacy_count,
            )
            try:
                self._persist(dict(seen))
            except PersistenceError as exc:
                logger.error(
                    "Could not re-persist migrated fingerprint map: %s",
                    exc,
                )

    def close(self) -> None:
        """Close the underlying store."""
        self.store.close()

    # ── Deduplication ────────────────────────────────────

    def find_new_listings(
        self,
        listings: Iterable[Listing] | None,
        seen_at: datetime | None = None,
    ) -> list[Listing]:
        """Mark every listing's novelty and return the new ones in order.

        Each listing gets ``is_new`` and ``metadata.price_change`` set.
        Duplicates inside one batch are caught: the second copy sees the
        first copy's write.  After the batch the map is trimmed to
        capacity and persisted; if that fails twice the map is rolled
        back to its pre-batch state and ``PersistenceError`` is raised.
        """
        if not self._initialized:
            raise EngineStateError(
                "find_new_listings called before initialize()",
            )

        batch = list(listings) if listings else []
        moment = seen_at or datetime.now(timezone.utc)
        now_ms = to_epoch_ms(moment)

        previous_state = dict(self.seen_fingerprints)
        working = dict(self.seen_fingerprints)
        new_listings: list[Listing] = []

        for listing in batch:
            fp = fingerprint(listing)
            seen_before = fp in working
            listing.is_new = not seen_before

            self.tracker.track_price_change(listing, fp, moment)

            if not seen_before:
                new_listings.append(listing)
                logger.debug(
                    "NEW LISTING: %s - %s (platform=%s, id=%s)",
                    listing.title or "Unknown",
                    "n/a" if listing.price is None else listing.price,
                    listing.source.platform,
                    listing.source.id,
                )

            working[fp] = now_ms

        self.seen_fingerprints = self._enforce_capacity(working)
        self._persist(previous_state)

        logger.info(
            "Found %d new listings out of %d total",
            len(new_listings),
            len(batch),
        )
        return new_listings

    def get_stats(self) -> dict[str, Any]:
        """Return size, capacity and utilisation of the in-memory map."""
        total = len(self.seen_fingerprints)
        capacity = self.config.max_stored_fingerprints
        return {
            "total_seen_fingerprints": total,
            "max_capacity": capacity,
            "utilization_percent": round(total / capacity * 100, 1),
        }

    # ── Private helpers ──────────────────────────────────

    def _enforce_capacity(
        self, fingerprints: dict[str, int],
    ) -> dict[str, int]:
        """Keep only the most recently seen entries when over capacity."""
        capacity = self.config.max_stored_fingerprints
        if len(fingerprints) <= capacity:
            return fingerprints

        newest_first = sorted(
            fingerprints.items(), key=lambda kv: kv[1], reverse=True,
        )
        logger.warning(
            "Trimmed fingerprint storage from %d to %d most recent entries",
            len(fingerprints),
            capacity,
        )
        return dict(newest_first[:capacity])

    def _serialize(self) -> list[dict[str, str | int]]:
        return [
            FingerprintRecord(fingerprint=fp, last_seen=last_seen).to_dict()
            for fp, last_seen in self.seen_fingerprints.items()
        ]

    def _persist(self, previous_state: dict[str, int]) -> None:
        """Write the map, retrying once; roll back and raise on failure."""
        payload = self._serialize()

        try:
            self.store.set(self.map_key, payload)
            return
        except StoreError as exc:
            logger.warning(
                "Failed to persist fingerprint map, retrying in %.1fs: %s",
                Settings.PERSIST_RETRY_BACKOFF,
                exc,
            )

        time.sleep(Settings.PERSIST_RETRY_BACKOFF)

        try:
            self.store.set(self.map_key, payload)
        except StoreError as exc:
            self.seen_fingerprints = previous_state
            logger.error(
                "Fingerprint map persistence failed; reverted to "
                "previous snapshot of %d entries",
                len(previous_state),
                exc_info=True,
            )
            raise PersistenceError(
                "Could not persist fingerprint map after retry",
                details={
                    "operation": "persist",
                    "key": self.map_key,
                    "entries": len(payload),
                },
                cause=exc,
            ) from exc
