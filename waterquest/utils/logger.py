"""Logging setup: stdout plus a file rotated at midnight."""

from __future__ import annotations

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_KEEP_DAYS = 30

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("httpx", "apscheduler", "telegram", "sqlalchemy.engine", "matplotlib")


def setup_logging(log_level: str = "INFO", log_file: str = "./logs/waterquest.log") -> logging.Logger:
    """Configure the root logger for the WaterQuest service.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR). Unknown names fall back to INFO.
        log_file: Path of the rotating log file; its directory is created if needed.

    Returns:
        The configured root logger.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    # Re-running setup must not duplicate output
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(_file_handler(log_file, level, formatter))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


def _file_handler(log_file: str, level: int, formatter: logging.Formatter) -> TimedRotatingFileHandler:
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=log_file,
        when="midnight",
        interval=1,
        backupCount=_KEEP_DAYS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler
