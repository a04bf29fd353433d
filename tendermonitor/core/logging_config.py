"""
Logging configuration for the tender analysis monitor.

Modules log through ``logging.getLogger(__name__)``; entry points call
``setup_logger`` once to attach a console handler to the package logger.
"""

import logging
import sys
from typing import Optional

from tendermonitor.config import settings


def setup_logger(name: str = "tendermonitor", level: Optional[str] = None) -> logging.Logger:
    """
    Configure structured console logging for the monitor.

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level or settings.LOG_LEVEL)

    # Remove any existing handlers to avoid duplicates
    if logger.handlers:
        logger.handlers.clear()

    detailed_formatter = logging.Formatter(
        fmt="[%(asctime)s] %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(detailed_formatter)
    logger.addHandler(console_handler)

    return logger
