"""
Shared logger utility for the smart pricing engine.
Scripts and demos call get_logger(); library modules use logging.getLogger(__name__).
"""

import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str | None = None, level: str | int | None = None) -> logging.Logger:
    """
    Returns a logger with a single stream handler in the standard format.
    The level comes from ``level``, then ``PRICING_LOG_LEVEL``, then INFO.
    If no name is provided, returns the root logger.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
    if level is None:
        level = os.getenv("PRICING_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)
    return logger
