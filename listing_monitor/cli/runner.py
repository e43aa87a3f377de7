# listing_monitor/cli/runner.py

"""Headless CLI commands wrapping the deduplication engine."""

import json
import logging
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from listing_monitor.core.deduplicator import DeduplicationEngine
from listing_monitor.core.errors import PersistenceError, StoreError
from listing_monitor.core.fingerprint import fingerprint
from listing_monitor.models.listing import Listing, ListingSource
from listing_monitor.storage.key_value_store import SQLiteKeyValueStore

logger = logging.getLogger("listing_monitor.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def load_listings(path: Path) -> list[Listing]:
    """Read a JSON array of normalised listings from *path*.

    Raises ``ValueError`` when the file is not a JSON array and
    ``OSError`` when it cannot be read.
    """
    with open(path, encoding="utf-8") as f:
        data: Any = json.load(f)

    if not isinstance(data, list):
        msg = f"{path} does not contain a JSON array of listings"
        raise ValueError(msg)

    listings = [Listing.from_dict(row) for row in data if isinstance(row, dict)]
    skipped = len(data) - len(listings)
    if skipped:
        logger.warning("Skipped %d non-object entries in %s", skipped, path)
    return listings


def build_engine(db_path: Path | None = None) -> DeduplicationEngine:
    """Create an engine over the SQLite store at *db_path*."""
    return DeduplicationEngine(store=SQLiteKeyValueStore(db_path))


def _print_stats(engine: DeduplicationEngine) -> None:
    stats = engine.get_stats()
    _err.print(
        f"[dim]Seen fingerprints: {stats['total_seen_fingerprints']:,}"
        f" / {stats['max_capacity']:,}"
        f" ({stats['utilization_percent']}%)[/dim]"
    )


def _print_table(listings: list[Listing]) -> None:
    """Render a Rich table of new listings to stdout."""
    table = Table(
        title="New Listings",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Platform", style="magenta")
    table.add_column("ID")
    table.add_column("Title", max_width=50)
    table.add_column("Price", justify="right", style="green")
    table.add_column("Change", justify="right")
    table.add_column("URL", overflow="fold", style="dim")

    for idx, listing in enumerate(listings, 1):
        price_str = (
            f"{listing.price:,.2f}" if listing.price is not None else "N/A"
        )
        change = listing.metadata.price_change
        if change and change.has_drop:
            change_str = f"[green]-{change.drop_percent}%[/green]"
        else:
            change_str = "—"
        table.add_row(
            str(idx),
            listing.source.platform or "",
            listing.source.id or "",
            listing.title[:50],
            price_str,
            change_str,
            listing.source.url,
        )

    Console().print(table)


def run_check(
    listings_file: Path,
    output_format: str = "json",
    db_path: Path | None = None,
) -> int:
    """Deduplicate a listings file and print the new listings."""
    try:
        listings = load_listings(listings_file)
    except (OSError, ValueError) as exc:
        logger.error("Cannot load listings: %s", exc)
        _err.print(f"[red]Cannot load listings: {exc}[/red]")
        return 1

    engine = build_engine(db_path)
    try:
        engine.initialize()
        new_listings = engine.find_new_listings(listings)
    except (StoreError, PersistenceError) as exc:
        logger.error("Deduplication run failed: %s", exc, exc_info=True)
        _err.print(f"[red]Deduplication failed: {exc}[/red]")
        return 1
    finally:
        engine.close()

    drops = sum(
        1
        for listing in listings
        if listing.metadata.price_change
        and listing.metadata.price_change.has_drop
    )
    _err.print(
        f"[green]✓ {len(new_listings)} new of {len(listings)} listings"
        f" ({drops} price drops)[/green]"
    )
    _print_stats(engine)

    if output_format == "table":
        _print_table(new_listings)
    else:
        json.dump(
            [listing.to_dict() for listing in new_listings],
            sys.stdout,
            ensure_ascii=False,
            indent=2,
        )
        sys.stdout.write("\n")
    return 0


def run_stats(db_path: Path | None = None) -> int:
    """Print fingerprint-map statistics without modifying the store."""
    engine = build_engine(db_path)
    try:
        engine.initialize(maintenance=False)
    except StoreError as exc:
        _err.print(f"[red]Cannot open store: {exc}[/red]")
        return 1
    finally:
        engine.close()

    json.dump(engine.get_stats(), sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


def run_history(
    platform: str,
    listing_id: str,
    db_path: Path | None = None,
) -> int:
    """Print the stored price series for one listing."""
    store = SQLiteKeyValueStore(db_path)
    engine = DeduplicationEngine(store=store)
    fp = fingerprint(
        Listing(source=ListingSource(platform=platform, id=listing_id))
    )
    try:
        store.open()
        history = engine.tracker.get_history(fp)
    except StoreError as exc:
        _err.print(f"[red]Cannot read history: {exc}[/red]")
        return 1
    finally:
        store.close()

    if not history:
        _err.print(
            f"[yellow]No price history for {platform}:{listing_id}[/yellow]"
        )
        return 0

    table = Table(
        title=f"Price History — {platform}:{listing_id}",
        title_style="bold cyan",
    )
    table.add_column("Date")
    table.add_column("Price", justify="right", style="green")
    for entry in history:
        table.add_row(entry.date, f"{entry.price:,.2f}")
    Console().print(table)
    return 0


def run_cleanup(db_path: Path | None = None) -> int:
    """Delete price histories past the retention window."""
    store = SQLiteKeyValueStore(db_path)
    engine = DeduplicationEngine(store=store)
    try:
        store.open()
    except StoreError as exc:
        _err.print(f"[red]Cannot open store: {exc}[/red]")
        return 1
    try:
        removed = engine.tracker.cleanup_old_history()
    finally:
        store.close()

    _err.print(
        f"[green]✓ Removed {removed} price histories older than "
        f"{engine.config.history_retention_days} days[/green]"
    )
    return 0
