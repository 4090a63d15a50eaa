# main.py

"""Entry point for the refurb_tracker service and its one-shot commands."""

import argparse
import asyncio
import logging
import sys

from src.config.logging_config import setup_logging
from src.config.settings import Settings

logger = logging.getLogger("refurb_tracker.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    valid_ids = ", ".join(s["id"] for s in Settings.AVAILABLE_SOURCES)

    parser = argparse.ArgumentParser(
        prog="refurb_tracker",
        description="Refurbished product tracker with LINE/email alerts.",
        epilog=f"Available sources: {valid_ids}",
    )
    parser.add_argument(
        "-s",
        "--sources",
        default=None,
        help="Comma-separated source IDs to scrape (default: from config).",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        action="store_true",
        default=False,
        help="Run a single tracking cycle and exit.",
    )
    mode.add_argument(
        "--summary",
        nargs="?",
        const="",
        default=None,
        metavar="DATE",
        help="Print the daily summary for DATE (YYYY-MM-DD, default yesterday).",
    )
    mode.add_argument(
        "--status",
        action="store_true",
        default=False,
        help="Show sources and persisted tracking state.",
    )
    return parser


def _dispatch(args: argparse.Namespace) -> int:
    from src.cli import runner

    if args.once:
        return asyncio.run(runner.run_once(args.sources))
    if args.summary is not None:
        return asyncio.run(
            runner.run_summary(args.summary or None, args.sources)
        )
    if args.status:
        return asyncio.run(runner.run_status())
    try:
        return asyncio.run(runner.run_service(args.sources))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return 0


def main() -> None:
    """Route to the long-running service or a one-shot command."""
    log_file = setup_logging()
    logger.info("refurb_tracker starting, log file: %s", log_file)

    args = _build_parser().parse_args()
    sys.exit(_dispatch(args))


if __name__ == "__main__":
    main()
