"""
Logging configuration for the floor control engine.

Engine modules log through logging.getLogger("mcptt.<area>") and prefix
messages with the logical time.

Environment Variables:
    MCPTT_LOG_LEVEL - Log level (DEBUG, INFO, WARNING, ERROR). Default: INFO
"""

import logging
import os
import sys
from typing import Optional


def setup_logging(
    level: Optional[str] = None,
    format_string: Optional[str] = None,
    name: str = "mcptt"
) -> logging.Logger:
    """
    Setup logging for the floor control engine.

    Args:
        level: Log level. Default from MCPTT_LOG_LEVEL or INFO.
        format_string: Custom format. Default: timestamp + level + name + message.
        name: Logger name.

    Returns:
        Configured logger instance.
    """
    if level is None:
        level = os.getenv("MCPTT_LOG_LEVEL", "INFO").upper()

    if format_string is None:
        format_string = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level, logging.INFO))

    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level, logging.INFO))
    handler.setFormatter(logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S"))

    logger.addHandler(handler)

    return logger


def get_logger(name: str = "mcptt") -> logging.Logger:
    """
    Get or create a logger.

    Args:
        name: Logger name (prefixed with 'mcptt.' if not already)

    Returns:
        Logger instance.
    """
    if not name.startswith("mcptt"):
        name = f"mcptt.{name}"

    logger = logging.getLogger(name)

    if not logger.handlers and not logging.getLogger("mcptt").handlers:
        setup_logging()

    return logger
