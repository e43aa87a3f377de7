# main.py

"""Entry point for the listing_monitor deduplication CLI."""

import argparse
import logging
import sys
from pathlib import Path

from listing_monitor.config.logging_config import setup_logging

logger = logging.getLogger("listing_monitor.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="listing-monitor",
        description=(
            "Cross-run listing deduplication and price-drop tracking."
        ),
    )
    parser.add_argument(
        "--db",
        default=None,
        type=Path,
        dest="db_path",
        help="SQLite store path (default: data/listing_store.db).",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    check = commands.add_parser(
        "check", help="Find new listings in a JSON listings file.",
    )
    check.add_argument(
        "listings_file",
        type=Path,
        help="JSON array of normalised listings.",
    )
    check.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )

    commands.add_parser(
        "stats", help="Show fingerprint store usage (read-only).",
    )

    history = commands.add_parser(
        "history", help="Show the stored price series for a listing.",
    )
    history.add_argument("platform", help="Platform name, e.g. grailed.")
    history.add_argument("listing_id", help="Platform-local listing id.")

    commands.add_parser(
        "cleanup", help="Delete price histories past retention.",
    )
    return parser


def main() -> None:
    """Dispatch to the requested CLI command and exit with its code."""
    log_file = setup_logging()
    logger.info("listing_monitor starting, log file: %s", log_file)

    args = _build_parser().parse_args()

    from listing_monitor.cli import runner

    if args.command == "check":
        exit_code = runner.run_check(
            args.listings_file, args.output_format, args.db_path,
        )
    elif args.command == "stats":
        exit_code = runner.run_stats(args.db_path)
    elif args.command == "history":
        exit_code = runner.run_history(
            args.platform, args.listing_id, args.db_path,
        )
    else:
        exit_code = runner.run_cleanup(args.db_path)

    logger.info("listing_monitor finished with exit code %d", exit_code)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
