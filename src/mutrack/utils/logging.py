"""Logging setup for mutrack."""

import logging
import sys
from pathlib import Path
from typing import Optional

ROOT_LOGGER = "mutrack"

_DIAGNOSTIC_LEVELS = {0: logging.WARNING, 1: logging.INFO, 2: logging.DEBUG}


def level_for_diagnostics(diagnostics_level: int) -> int:
    """Map [run].diagnostics_level (0/1/2) to a logging level."""
    return _DIAGNOSTIC_LEVELS.get(diagnostics_level, logging.DEBUG)


def setup_logger(
    name: str = ROOT_LOGGER,
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    file_level: int = logging.DEBUG,
) -> logging.Logger:
    """Set up the package logger with console and optional file output.

    Args:
        name: Logger name
        level: Console logging level
        log_file: Optional path to log file
        file_level: Logging level for file output

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(min(level, file_level) if log_file else level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter('%(levelname)s - %(message)s'))
    logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Get a logger under the mutrack hierarchy."""
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
