# listing_monitor/models/fingerprint_record.py

"""Persisted form of one entry in the seen-fingerprint map."""

from dataclasses import dataclass


@dataclass
class FingerprintRecord:
    """A fingerprint together with when it was last observed."""

    fingerprint: str
    last_seen: int  # epoch milliseconds

    def to_dict(self) -> dict[str, str | int]:
        return {
            "fingerprint": self.fingerprint,
            "lastSeen": self.last_seen,
        }
