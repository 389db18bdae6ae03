"""Structured JSON logging configuration."""

import logging
import sys
from pythonjsonlogger import jsonlogger


LOG_FORMAT = '%(asctime)s %(name)s %(levelname)s %(message)s'


def setup_logger(
    name: str = "mongodb_exporter",
    level: str = "INFO",
    fmt: str = "json",
    output_path: str = "stdout",
) -> logging.Logger:
    """
    Configure structured logging.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        fmt: "json" for python-json-logger output, "console" for plain text
        output_path: "stdout", "stderr" or a file path

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers to avoid duplicates
    logger.handlers = []

    if output_path == "stdout":
        handler = logging.StreamHandler(sys.stdout)
    elif output_path == "stderr":
        handler = logging.StreamHandler(sys.stderr)
    else:
        handler = logging.FileHandler(output_path)

    if fmt == "console":
        formatter = logging.Formatter('%(asctime)s %(levelname)-8s %(name)s: %(message)s')
    else:
        formatter = jsonlogger.JsonFormatter(LOG_FORMAT, timestamp=True)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Don't propagate to root logger
    logger.propagate = False

    return logger
