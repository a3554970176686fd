"""
tests/test_utils/test_logging.py — Tests for structlog configuration.
"""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from trailcount_pipeline.utils.logging import configure_logging, get_logger


@pytest.fixture
def restore_logging():
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_trailcounts_handler", False):
            root.removeHandler(handler)
            handler.close()
    structlog.reset_defaults()


def _flush() -> None:
    for handler in logging.getLogger().handlers:
        handler.flush()


class TestConfigureLogging:
    def test_file_gets_json_lines_at_file_level(self, tmp_path, restore_logging):
        log_file = tmp_path / "storage" / "log.txt"
        configure_logging(log_level="DEBUG", log_file=log_file, log_file_level="INFO")

        log = get_logger("tests.logging", run_id="abc123")
        log.debug("debug_only_event")
        log.info("import_complete", individual_inserted=1920)
        _flush()

        lines = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
        events = [line["event"] for line in lines]
        assert "import_complete" in events
        assert "debug_only_event" not in events

        record = next(line for line in lines if line["event"] == "import_complete")
        assert record["individual_inserted"] == 1920
        assert record["run_id"] == "abc123"
        assert record["level"] == "info"
        assert "timestamp" in record

    def test_reconfiguring_replaces_handlers(self, tmp_path, restore_logging):
        configure_logging(log_file=tmp_path / "a.txt")
        configure_logging(log_file=tmp_path / "b.txt")
        ours = [h for h in logging.getLogger().handlers if getattr(h, "_trailcounts_handler", False)]
        assert len(ours) == 2

    def test_console_only_without_log_file(self, restore_logging):
        configure_logging(log_level="WARNING", log_format="json", log_file=None)
        ours = [h for h in logging.getLogger().handlers if getattr(h, "_trailcounts_handler", False)]
        assert all(not isinstance(h, logging.FileHandler) for h in ours)
