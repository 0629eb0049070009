"""
Centralized logging configuration using loguru.
"""
from __future__ import annotations

import sys
from typing import Any

from loguru import logger

logger.remove()

logger.add(
    sys.stderr,
    format=(
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    ),
    level="DEBUG",
    colorize=True,
)


def get_logger(name: str = __name__) -> Any:
    """
    Get a logger bound to a specific module name.

    Usage:
        from guestboard.logging import get_logger
        logger = get_logger(__name__)
        logger.info("Fetching counters")
    """
    return logger.bind(name=name)


def truncate(message: str, limit: int) -> str:
    """Cut a diagnostic message down for user-facing output."""
    return message if len(message) <= limit else message[:limit]
