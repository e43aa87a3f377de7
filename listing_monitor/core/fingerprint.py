# listing_monitor/core/fingerprint.py

"""Stable content-derived identifiers for marketplace listings."""

import hashlib

from listing_monitor.models.listing import Listing

FINGERPRINT_LENGTH = 64


def identity_key(listing: Listing) -> str:
    """Return the ``platform:id`` string a fingerprint is derived from.

    Missing platform or id values become empty strings, so a listing
    with no identity still hashes deterministically.
    """
    platform = listing.source.platform or ""
    listing_id = listing.source.id or ""
    return f"{platform}:{listing_id}"


def fingerprint(listing: Listing) -> str:
    """SHA-256 hex digest of the listing's ``platform:id`` identity."""
    return hashlib.sha256(
        identity_key(listing).encode("utf-8")
    ).hexdigest()
