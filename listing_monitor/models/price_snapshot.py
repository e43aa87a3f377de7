# listing_monitor/models/price_snapshot.py

"""Temporal price observation model for price history tracking."""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass
class PriceHistoryEntry:
    """A single price observation for a fingerprint at a point in time."""

    price: float
    date: str
    timestamp: int  # epoch milliseconds

    @classmethod
    def at(cls, price: float, observed_at: datetime) -> "PriceHistoryEntry":
        """Create an entry stamped with *observed_at*."""
        return cls(
            price=price,
            date=observed_at.isoformat(),
            timestamp=to_epoch_ms(observed_at),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PriceHistoryEntry":
        """Parse a stored entry; raises ``KeyError``/``ValueError`` if malformed.

        Non-finite prices or timestamps (``NaN``/``Infinity`` survive a
        JSON round trip) are rejected with ``ValueError``.
        """
        price = float(data["price"])
        raw_timestamp = float(data["timestamp"])
        if not (math.isfinite(price) and math.isfinite(raw_timestamp)):
            msg = f"Non-finite price history entry: {data!r}"
            raise ValueError(msg)
        return cls(
            price=price,
            date=str(data.get("date", "")),
            timestamp=int(raw_timestamp),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "price": self.price,
            "date": self.date,
            "timestamp": self.timestamp,
        }


def to_epoch_ms(moment: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds.

    Naive datetimes are taken as UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)
