# tests/test_logging_config.py

"""Tests for the per-run logging configuration."""

import logging
import tempfile
import unittest
from pathlib import Path

from rich.logging import RichHandler

from src.config.logging_config import prune_old_logs, setup_logging


class TestLoggingConfig(unittest.TestCase):
    """Verify logging setup behaviour."""

    def setUp(self) -> None:
        """Start every test with a bare refurb_tracker logger."""
        self._tmp = tempfile.TemporaryDirectory()
        self.logs_dir = Path(self._tmp.name) / "logs"
        self._clear_handlers()

    def tearDown(self) -> None:
        self._clear_handlers()
        self._tmp.cleanup()

    @staticmethod
    def _clear_handlers() -> None:
        root_logger = logging.getLogger("refurb_tracker")
        for handler in list(root_logger.handlers):
            handler.close()
            root_logger.removeHandler(handler)

    def test_setup_creates_log_file(self) -> None:
        """setup_logging returns a path that exists on disk."""
        log_path = setup_logging(self.logs_dir)
        self.assertTrue(log_path.exists())

    def test_log_file_naming_convention(self) -> None:
        """Log file name matches run_YYYYMMDD_HHMMSS.log format."""
        log_path = setup_logging(self.logs_dir)
        self.assertRegex(log_path.name, r"^run_\d{8}_\d{6}\.log$")

    def test_file_handler_level_debug(self) -> None:
        setup_logging(self.logs_dir)
        root_logger = logging.getLogger("refurb_tracker")
        file_handlers = [
            h for h in root_logger.handlers
            if isinstance(h, logging.FileHandler)
        ]
        self.assertEqual(len(file_handlers), 1)
        self.assertEqual(file_handlers[0].level, logging.DEBUG)

    def test_console_handler_is_rich_at_warning(self) -> None:
        setup_logging(self.logs_dir)
        root_logger = logging.getLogger("refurb_tracker")
        rich_handlers = [
            h for h in root_logger.handlers if isinstance(h, RichHandler)
        ]
        self.assertEqual(len(rich_handlers), 1)
        self.assertEqual(rich_handlers[0].level, logging.WARNING)

    def test_repeated_calls_no_duplicate_handlers(self) -> None:
        setup_logging(self.logs_dir)
        root_logger = logging.getLogger("refurb_tracker")
        count_before = len(root_logger.handlers)
        setup_logging(self.logs_dir)
        self.assertEqual(count_before, len(root_logger.handlers))

    def test_module_loggers_reach_file(self) -> None:
        """Child loggers propagate into the per-run file."""
        log_path = setup_logging(self.logs_dir)
        logging.getLogger("refurb_tracker.tracker").info("cycle marker")
        for handler in logging.getLogger("refurb_tracker").handlers:
            handler.flush()
        self.assertIn("cycle marker", log_path.read_text(encoding="utf-8"))

    def test_old_run_logs_are_pruned(self) -> None:
        self.logs_dir.mkdir(parents=True)
        for day in range(1, 6):
            (self.logs_dir / f"run_2026010{day}_000000.log").touch()
        log_path = setup_logging(self.logs_dir, keep_runs=3)
        remaining = sorted(p.name for p in self.logs_dir.glob("run_*.log"))
        self.assertEqual(len(remaining), 3)
        self.assertIn(log_path.name, remaining)
        self.assertNotIn("run_20260101_000000.log", remaining)

    def test_prune_keeps_unrelated_files(self) -> None:
        self.logs_dir.mkdir(parents=True)
        (self.logs_dir / "notes.txt").touch()
        (self.logs_dir / "run_20260101_000000.log").touch()
        removed = prune_old_logs(self.logs_dir, keep=0)
        self.assertEqual([p.name for p in removed], ["run_20260101_000000.log"])
        self.assertTrue((self.logs_dir / "notes.txt").exists())


if __name__ == "__main__":
    unittest.main()
