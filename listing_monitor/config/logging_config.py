# listing_monitor/config/logging_config.py

"""Run-scoped log files for listing_monitor.

A CLI invocation writes everything the engine logs (dedup decisions,
price drops, migration counts and store failures) to its own
``run_<YYYYMMDD_HHMMSS>.log``.  Only warnings and errors reach stderr,
so ``check`` can pipe its JSON report on stdout untouched.

Old run logs are pruned on startup; ``Settings.MAX_RUN_LOGS`` bounds
how many are kept.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from listing_monitor.config.settings import Settings

PROJECT_LOGGER = "listing_monitor"

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)
_STDERR_FORMAT = "%(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    logs_dir: Path | None = None,
    console_level: str | int | None = None,
    keep_runs: int | None = None,
) -> Path:
    """Attach the run-log and stderr handlers to the project logger.

    Args:
        logs_dir: Directory for run logs. Defaults to ``Settings.LOGS_DIR``.
        console_level: Threshold for stderr output. Defaults to
            ``Settings.CONSOLE_LOG_LEVEL``.
        keep_runs: How many older run logs survive pruning. Defaults
            to ``Settings.MAX_RUN_LOGS``.

    Returns:
        Path of this run's log file.  A second call in the same process
        returns a fresh path but leaves the existing handlers alone.
    """
    target_dir: Path = logs_dir or Settings.LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    log_file = target_dir / f"run_{datetime.now():%Y%m%d_%H%M%S}.log"

    project_logger = logging.getLogger(PROJECT_LOGGER)
    project_logger.setLevel(logging.DEBUG)
    if project_logger.handlers:
        return log_file

    pruned = prune_run_logs(
        target_dir,
        Settings.MAX_RUN_LOGS if keep_runs is None else keep_runs,
    )

    project_logger.addHandler(
        _handler(
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.DEBUG,
            _FILE_FORMAT,
        )
    )
    project_logger.addHandler(
        _handler(
            logging.StreamHandler(sys.stderr),
            console_level or Settings.CONSOLE_LOG_LEVEL,
            _STDERR_FORMAT,
        )
    )

    project_logger.debug(
        "Run log %s opened (%d old run logs pruned)", log_file, pruned,
    )
    return log_file


def prune_run_logs(logs_dir: Path, keep: int) -> int:
    """Delete all but the newest *keep* run logs; return how many went."""
    # Names embed the launch time, so lexical order is chronological
    runs = sorted(logs_dir.glob("run_*.log"))
    stale = runs[: max(len(runs) - max(keep, 0), 0)]
    for path in stale:
        path.unlink(missing_ok=True)
    return len(stale)


def _handler(
    handler: logging.Handler, level: str | int, fmt: str,
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=_DATE_FORMAT))
    return handler
