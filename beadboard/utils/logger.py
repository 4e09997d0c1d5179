"""Logging configuration for beadboard."""

import logging
import sys
from pathlib import Path
from typing import Optional


def setup_logger(
    name: str = "beadboard",
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """Set up and return a logger instance.

    The TUI owns the terminal, so it passes ``log_file``; without one the
    logger writes to stdout.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file)
    else:
        handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    # Format
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    handler.setFormatter(formatter)

    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    logger.addHandler(handler)
    return logger
