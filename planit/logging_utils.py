"""
Logging utilities for PlanIt.

All modules log through the 'planit' logger so that the CLI controls the
level and format in one place.
"""

import logging
import sys
from typing import Optional

LOGGER_NAME = 'planit'
LOG_FORMAT = '%(levelname)-8s | %(message)s'
FILE_LOG_FORMAT = '%(asctime)s %(levelname)-8s %(name)s | %(message)s'


class ColoredFormatter(logging.Formatter):
    """
    Formatter that colours the level name for terminal output.
    """

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        levelname = record.levelname
        color = self.COLORS.get(levelname)
        if color:
            record.levelname = f"{color}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def setup_logging(
    verbose: bool = False,
    use_colors: bool = True,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the application logger.

    Args:
        verbose: If True, set level to DEBUG; otherwise INFO
        use_colors: If True, colour level names when stdout is a terminal
        log_file: Optional path of a file that receives the same records

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if use_colors and sys.stdout.isatty():
        handler.setFormatter(ColoredFormatter(fmt=LOG_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
    logger.addHandler(handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            fmt=FILE_LOG_FORMAT,
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def get_logger() -> logging.Logger:
    """Return the application logger."""
    return logging.getLogger(LOGGER_NAME)


def log_section(title: str, logger: Optional[logging.Logger] = None):
    """Log a section header."""
    logger = logger or get_logger()
    logger.info("")
    logger.info("=" * 60)
    logger.info(f"  {title}")
    logger.info("=" * 60)


def log_step(step: str, logger: Optional[logging.Logger] = None):
    (logger or get_logger()).info(f"→ {step}")


def log_error(error: str, logger: Optional[logging.Logger] = None):
    (logger or get_logger()).error(f"✗ {error}")


def log_success(message: str, logger: Optional[logging.Logger] = None):
    (logger or get_logger()).info(f"✓ {message}")


def log_warning(warning: str, logger: Optional[logging.Logger] = None):
    (logger or get_logger()).warning(f"⚠ {warning}")
