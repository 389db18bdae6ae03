"""Tests for logger setup."""

import json
import logging

from mongodb_exporter.utils.logger import setup_logger


def test_setup_logger_json_file(tmp_path):
    log_file = tmp_path / "exporter.log"
    logger = setup_logger("test_json_file", level="debug", output_path=str(log_file))

    logger.info("hello", extra={"collector": "server_status"})
    for handler in logger.handlers:
        handler.flush()

    record = json.loads(log_file.read_text().strip())
    assert record["message"] == "hello"
    assert record["collector"] == "server_status"
    assert record["levelname"] == "INFO"
    assert logger.level == logging.DEBUG
    assert logger.propagate is False


def test_setup_logger_console_replaces_handlers():
    setup_logger("test_console", fmt="console")
    logger = setup_logger("test_console", fmt="console", output_path="stderr")

    assert len(logger.handlers) == 1
    assert type(logger.handlers[0].formatter) is logging.Formatter
