# listing_monitor/config/settings.py

"""Central configuration for the listing_monitor engine."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the listing_monitor engine."""

    # --- Deduplication ---
    MAX_STORED_FINGERPRINTS: int = int(
        os.getenv("LISTING_MONITOR_MAX_FINGERPRINTS", "10000")
    )
    FINGERPRINT_MAP_KEY: str = "seen_listing_fingerprints"

    # --- Price history ---
    PRICE_DROP_THRESHOLD_PERCENT: float = float(
        os.getenv("LISTING_MONITOR_DROP_THRESHOLD", "10.0")
    )
    MAX_HISTORY_ENTRIES_PER_ITEM: int = int(
        os.getenv("LISTING_MONITOR_MAX_HISTORY", "30")
    )
    HISTORY_RETENTION_DAYS: int = int(
        os.getenv("LISTING_MONITOR_RETENTION_DAYS", "90")
    )
    HISTORY_KEY_PREFIX: str = "price_history_"

    # --- Resilience ---
    PERSIST_RETRY_BACKOFF: float = 0.5  # Seconds before the single retry

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = Path(
        os.getenv("LISTING_MONITOR_DATA_DIR", str(BASE_DIR / "data"))
    )
    STORE_DB_PATH: Path = DATA_DIR / "listing_store.db"
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Logging ---
    CONSOLE_LOG_LEVEL: str = os.getenv(
        "LISTING_MONITOR_LOG_LEVEL", "WARNING"
    ).upper()
    MAX_RUN_LOGS: int = int(os.getenv("LISTING_MONITOR_MAX_RUN_LOGS", "20"))
