"""Tests for logger setup."""

import logging
from unittest.mock import patch

from scripts.lib.logger import get_logger, null_logger, setup_logger


class TestSetupLogger:
    def test_console_only_by_default(self):
        with patch.dict("os.environ", {"LOG_TO_FILE": ""}, clear=False):
            log = setup_logger("lead_hub.test.console")
        assert len(log.handlers) == 1
        assert not any(isinstance(h, logging.FileHandler) for h in log.handlers)

    def test_file_handler(self, tmp_path):
        log = setup_logger("lead_hub.test.file", level="debug", log_to_file=True, log_dir=tmp_path)
        assert log.level == logging.DEBUG
        assert any(isinstance(h, logging.FileHandler) for h in log.handlers)
        assert list(tmp_path.glob("*_lead_hub.log"))
        for handler in log.handlers:
            handler.close()

    def test_handlers_not_duplicated(self):
        with patch.dict("os.environ", {"LOG_TO_FILE": ""}, clear=False):
            first = setup_logger("lead_hub.test.dupes")
            second = setup_logger("lead_hub.test.dupes")
        assert first is second
        assert len(second.handlers) == 1

    def test_get_logger_reuses_existing(self):
        created = setup_logger("lead_hub.test.get")
        assert get_logger("lead_hub.test.get") is created


class TestNullLogger:
    def test_discards_records(self, caplog):
        null_logger().warning("should not appear")
        assert "should not appear" not in caplog.text
