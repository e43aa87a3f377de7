# listing_monitor/models/engine_config.py

"""Tunable limits for the deduplication engine."""

from dataclasses import dataclass

from listing_monitor.config.settings import Settings
from listing_monitor.core.errors import ConfigError


@dataclass(frozen=True)
class EngineConfig:
    """Capacity, threshold and retention limits for one engine instance."""

    max_stored_fingerprints: int = Settings.MAX_STORED_FINGERPRINTS
    price_drop_threshold_percent: float = (
        Settings.PRICE_DROP_THRESHOLD_PERCENT
    )
    max_history_entries_per_item: int = (
        Settings.MAX_HISTORY_ENTRIES_PER_ITEM
    )
    history_retention_days: int = Settings.HISTORY_RETENTION_DAYS

    def __post_init__(self) -> None:
        self.validate()

    @classmethod
    def from_settings(cls) -> "EngineConfig":
        """Build a config from the current ``Settings`` values."""
        return cls(
            max_stored_fingerprints=Settings.MAX_STORED_FINGERPRINTS,
            price_drop_threshold_percent=(
                Settings.PRICE_DROP_THRESHOLD_PERCENT
            ),
            max_history_entries_per_item=(
                Settings.MAX_HISTORY_ENTRIES_PER_ITEM
            ),
            history_retention_days=Settings.HISTORY_RETENTION_DAYS,
        )

    def validate(self) -> None:
        """Raise ``ConfigError`` if any limit is out of range."""
        counts = {
            "max_stored_fingerprints": self.max_stored_fingerprints,
            "max_history_entries_per_item": (
                self.max_history_entries_per_item
            ),
            "history_retention_days": self.history_retention_days,
        }
        for name, value in counts.items():
            if (
                isinstance(value, bool)
                or not isinstance(value, int)
                or value <= 0
            ):
                raise ConfigError(
                    f"{name} must be a positive integer",
                    details={name: value},
                )

        threshold = self.price_drop_threshold_percent
        if (
            isinstance(threshold, bool)
            or not isinstance(threshold, (int, float))
            or not 0 <= threshold <= 100
        ):
            raise ConfigError(
                "price_drop_threshold_percent must be between 0 and 100",
                details={"price_drop_threshold_percent": threshold},
            )
