"""Logging setup for Claude Tracker.

Console output goes through rich; everything at DEBUG and above is also
kept in a rotating log file under the tracker's state directory.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from claude_tracker.config import get_config_dir

LOGGER_NAME = "claude_tracker"
LOG_FILENAME = "tracker.log"


def get_log_level(verbose: bool = False) -> int:
    """Console log level from --verbose or CLAUDE_TRACKER_LOG_LEVEL."""
    if verbose:
        return logging.DEBUG
    level_name = os.getenv("CLAUDE_TRACKER_LOG_LEVEL", "INFO").upper()
    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    return level_map.get(level_name, logging.INFO)


def get_log_path() -> Path:
    return get_config_dir() / "logs" / LOG_FILENAME


def setup_logging(
    verbose: bool = False, console: Optional[Console] = None
) -> logging.Logger:
    """Configure the package logger once per process."""
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=False,
        show_path=False,
        markup=False,
    )
    console_handler.setLevel(get_log_level(verbose))
    logger.addHandler(console_handler)

    log_path = get_log_path()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
        )
    except OSError as e:
        logger.warning("File logging disabled (%s): %s", log_path, e)
    else:
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s (pid=%(process)d)"
            )
        )
        logger.addHandler(file_handler)

    return logger
