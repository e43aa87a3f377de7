# listing_monitor/models/listing.py

"""Canonical listing model passed between pipeline stages."""

import math
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ListingSource:
    """Where a listing came from: platform name plus platform-local id."""

    platform: str | None = None
    id: str | None = None
    url: str = ""


@dataclass
class PriceChange:
    """Price movement of a listing relative to its last stored price."""

    has_drop: bool = False
    previous_price: float | None = None
    current_price: float | None = None
    drop_percent: float | None = None

    @classmethod
    def no_drop(
        cls,
        current_price: float | None,
        previous_price: float | None = None,
    ) -> "PriceChange":
        """Build the default block used when no drop can be reported."""
        return cls(
            has_drop=False,
            previous_price=previous_price,
            current_price=current_price,
            drop_percent=None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise using the camelCase keys downstream stages read."""
        return {
            "hasDrop": self.has_drop,
            "previousPrice": self.previous_price,
            "currentPrice": self.current_price,
            "dropPercent": self.drop_percent,
        }


@dataclass
class ListingMetadata:
    """Annotations added to a listing after normalisation."""

    price_change: PriceChange | None = None


@dataclass
class Listing:
    """A single normalised marketplace listing."""

    source: ListingSource
    price: float | None = None
    title: str = ""
    is_new: bool = False
    metadata: ListingMetadata = field(default_factory=ListingMetadata)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Listing":
        """Build a listing from a normalised JSON record.

        Accepts a flat ``price``/``title`` or the nested
        ``listing.price``/``product.name`` shape.
        """
        raw_source = data.get("source")
        source_data: dict[str, Any] = (
            raw_source if isinstance(raw_source, dict) else {}
        )
        platform = source_data.get("platform")
        listing_id = source_data.get("id")

        raw_price = data.get("price")
        nested_listing = data.get("listing")
        if raw_price is None and isinstance(nested_listing, dict):
            raw_price = nested_listing.get("price")

        title = data.get("title")
        product = data.get("product")
        if title is None and isinstance(product, dict):
            title = product.get("name")

        return cls(
            source=ListingSource(
                platform=None if platform is None else str(platform),
                id=None if listing_id is None else str(listing_id),
                url=str(source_data.get("url") or ""),
            ),
            price=_parse_price(raw_price),
            title=str(title or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise the listing with its dedup annotations."""
        price_change = self.metadata.price_change
        return {
            "source": {
                "platform": self.source.platform,
                "id": self.source.id,
                "url": self.source.url,
            },
            "title": self.title,
            "price": self.price,
            "isNew": self.is_new,
            "metadata": {
                "priceChange": (
                    price_change.to_dict() if price_change else None
                ),
            },
        }


def _parse_price(value: Any) -> float | None:
    """Coerce a raw price to float, or None when it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None
