"""Logging utilities for teShuffle."""

import logging
import sys
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def setup_logger(
    name: str = "teshuffle",
    log_file: Optional[str] = None,
    level: int = logging.INFO,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Set up the package logger.

    Progress goes to stderr so that stdout stays free for piping.

    Args:
        name: Logger name
        log_file: Optional path to log file
        level: Logging level (default: INFO)
        format_string: Custom format string

    Returns:
        Configured logger instance
    """
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def is_progress_round(round_index: int) -> bool:
    """Rounds worth a progress line: 10, 100, 1000, then every 1000."""
    if round_index in (10, 100, 1000):
        return True
    return round_index > 1000 and round_index % 1000 == 0


def log_run_header(logger: logging.Logger, **params) -> None:
    """Log the parameters a run was started with, one per line."""
    logger.info("teShuffle started with:")
    for key, value in params.items():
        if value is None or value == [] or value == ():
            continue
        logger.info(f"    {key} = {value}")
