"""
Logging utilities for sol-flow
"""

import os
import sys
from typing import Optional

from loguru import logger

DEFAULT_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} - {message}"


def setup_logger(
    level: str = "INFO",
    log_file: Optional[str] = None,
    rich_console: bool = False,
    log_format: Optional[str] = None
) -> None:
    """
    Set up logger configuration

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a rotating log file
        rich_console: Render console output through rich
        log_format: Optional loguru format string
    """
    level = level.upper()
    log_format = log_format or DEFAULT_FORMAT

    logger.remove()

    if rich_console:
        from rich.logging import RichHandler
        logger.add(
            RichHandler(rich_tracebacks=True, markup=False, show_path=False),
            level=level,
            format="{message}",
        )
    else:
        logger.add(sys.stderr, level=level, format=log_format)

    if log_file:
        # Ensure directory exists
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        logger.add(
            log_file,
            level="DEBUG",
            format=log_format,
            rotation="10 MB",
            retention=10,
        )

    logger.debug(f"Logging configured at {level}")
