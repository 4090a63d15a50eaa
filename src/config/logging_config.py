# src/config/logging_config.py

"""Logging for the tracker service.

Every launch writes ``logs/run_<YYYYMMDD_HHMMSS>.log`` at DEBUG level and
mirrors warnings to the terminal through :mod:`rich`.  The service is
meant to run for weeks, so only the newest ``LOG_RETENTION_RUNS`` run
files are kept.
"""

import logging
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from src.config.settings import Settings

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

PROJECT_LOGGER = "refurb_tracker"


def prune_old_logs(logs_dir: Path, keep: int) -> list[Path]:
    """Delete all but the *keep* newest ``run_*.log`` files."""
    runs = sorted(logs_dir.glob("run_*.log"), reverse=True)
    removed: list[Path] = []
    for stale in runs[max(keep, 0):]:
        try:
            stale.unlink()
        except OSError:
            continue
        removed.append(stale)
    return removed


def setup_logging(
    logs_dir: Path | None = None,
    console_level: int = logging.WARNING,
    keep_runs: int = Settings.LOG_RETENTION_RUNS,
) -> Path:
    """Attach the run file and console handlers to the project logger.

    Calling it again is a no-op apart from returning a fresh file name,
    which keeps repeated test setups from stacking handlers.
    """
    target_dir = logs_dir or Settings.LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    log_file = target_dir / f"run_{datetime.now():%Y%m%d_%H%M%S}.log"

    project_logger = logging.getLogger(PROJECT_LOGGER)
    project_logger.setLevel(logging.DEBUG)
    if project_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = RichHandler(
        console=Console(stderr=True),
        level=console_level,
        show_path=False,
        rich_tracebacks=True,
        log_time_format=_DATE_FORMAT,
    )

    project_logger.addHandler(file_handler)
    project_logger.addHandler(console_handler)

    removed = prune_old_logs(target_dir, keep_runs)
    project_logger.info(
        "Logging to %s (%d old run logs pruned)", log_file, len(removed)
    )
    return log_file
