# listing_monitor/core/price_history.py

"""Per-fingerprint price series and price-drop detection."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Literal

from listing_monitor.config.settings import Settings
from listing_monitor.core.errors import StoreError
from listing_monitor.models.engine_config import EngineConfig
from listing_monitor.models.listing import Listing, PriceChange
from listing_monitor.models.price_snapshot import (
    PriceHistoryEntry,
    to_epoch_ms,
)
from listing_monitor.storage.key_value_store import PersistentStore

logger = logging.getLogger("listing_monitor.price_history")


@dataclass
class PriceTrackResult:
    """Outcome of tracking one listing's price.

    ``status`` is ``"failed"`` when the store could not be read or
    written; the listing then carries a default no-drop block.
    """

    status: Literal["tracked", "failed"]
    price_change: PriceChange
    error: StoreError | None = None

    @property
    def ok(self) -> bool:
        return self.status == "tracked"


class PriceHistoryTracker:
    """Keeps a bounded price series per fingerprint in the store."""

    def __init__(
        self,
        store: PersistentStore,
        config: EngineConfig | None = None,
        key_prefix: str = Settings.HISTORY_KEY_PREFIX,
    ) -> None:
        self.store = store
        self.config = config or EngineConfig.from_settings()
        self.key_prefix = key_prefix

    def history_key(self, fingerprint: str) -> str:
        return f"{self.key_prefix}{fingerprint}"

    # ── Tracking ─────────────────────────────────────────

    def track_price_change(
        self,
        listing: Listing,
        fingerprint: str,
        observed_at: datetime | None = None,
    ) -> PriceTrackResult:
        """Annotate *listing* with its price change and record the price.

        A new entry is appended only when the price differs from the
        last stored one (or nothing is stored yet).  Store failures are
        logged and returned as a ``"failed"`` result, never raised.
        """
        now = observed_at or datetime.now(timezone.utc)
        current = listing.price
        key = self.history_key(fingerprint)

        try:
            history = self._load(key)
        except StoreError as exc:
            return self._fail(listing, fingerprint, "load", exc)

        previous = history[-1].price if history else None
        if current is None:
            change = PriceChange.no_drop(None, previous)
            listing.metadata.price_change = change
            return PriceTrackResult(status="tracked", price_change=change)

        change = self.compare(previous, current)

        if previous is None or previous != current:
            history.append(PriceHistoryEntry.at(current, now))
            history = history[-self.config.max_history_entries_per_item:]
            try:
                self.store.set(key, [e.to_dict() for e in history])
            except StoreError as exc:
                return self._fail(listing, fingerprint, "save", exc)

        if change.has_drop:
            logger.info(
                "Price drop %.1f%% (%s -> %s) for %s",
                change.drop_percent,
                change.previous_price,
                change.current_price,
                fingerprint,
            )

        listing.metadata.price_change = change
        return PriceTrackResult(status="tracked", price_change=change)

    def compare(
        self, previous: float | None, current: float,
    ) -> PriceChange:
        """Compute the drop metrics between two consecutive prices.

        ``drop_percent`` is negative for an increase, which never counts
        as a drop.  A missing, equal or non-positive previous price
        yields the no-drop block.
        """
        if previous is None or previous == current or previous <= 0:
            return PriceChange.no_drop(current, previous)

        drop_amount = previous - current
        drop_percent = round(100 * drop_amount / previous, 1)
        return PriceChange(
            has_drop=(
                drop_percent >= self.config.price_drop_threshold_percent
            ),
            previous_price=previous,
            current_price=current,
            drop_percent=drop_percent,
        )

    def get_history(self, fingerprint: str) -> list[PriceHistoryEntry]:
        """Return the stored series for *fingerprint*, oldest first."""
        return self._load(self.history_key(fingerprint))

    # ── Retention ────────────────────────────────────────

    def cleanup_old_history(self, now: datetime | None = None) -> int:
        """Delete series whose latest entry is past the retention window.

        Empty or unreadable series are deleted too.  Failures are logged
        and skipped.  Returns the number of series removed.
        """
        moment = now or datetime.now(timezone.utc)
        cutoff_ms = to_epoch_ms(
            moment - timedelta(days=self.config.history_retention_days)
        )

        try:
            keys = self.store.list_keys(self.key_prefix)
        except StoreError as exc:
            logger.error(
                "Price history cleanup skipped, cannot list keys: %s",
                exc,
            )
            return 0

        removed = 0
        for key in keys:
            try:
                history = self._load(key)
                latest = max((e.timestamp for e in history), default=None)
                if latest is None or latest < cutoff_ms:
                    self.store.delete(key)
                    removed += 1
            except StoreError as exc:
                logger.warning(
                    "Price history cleanup failed for %s: %s", key, exc,
                )

        if removed:
            logger.info(
                "Removed %d price histories older than %d days",
                removed,
                self.config.history_retention_days,
            )
        return removed

    # ── Private helpers ──────────────────────────────────

    def _load(self, key: str) -> list[PriceHistoryEntry]:
        raw = self.store.get(key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning(
                "Discarding malformed price history under %s", key,
            )
            return []

        entries: list[PriceHistoryEntry] = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            try:
                entries.append(PriceHistoryEntry.from_dict(item))
            except (KeyError, TypeError, ValueError, OverflowError):
                logger.debug("Skipping bad history entry under %s", key)
        return entries

    def _fail(
        self,
        listing: Listing,
        fingerprint: str,
        operation: str,
        exc: StoreError,
    ) -> PriceTrackResult:
        logger.warning(
            "Price history %s failed for %s: %s",
            operation,
            fingerprint,
            exc,
        )
        change = PriceChange.no_drop(listing.price)
        listing.metadata.price_change = change
        return PriceTrackResult(
            status="failed", price_change=change, error=exc,
        )
