"""
Loguru sink configuration driven by Settings.log_* fields.
"""

from __future__ import annotations

import sys

from loguru import logger

from devinsight.config import Settings

_TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(settings: Settings) -> None:
    """Replace loguru's default sink with the configured ones."""
    level = "DEBUG" if settings.debug else settings.log_level.upper()
    serialize = settings.log_format.lower() == "json"

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=_TEXT_FORMAT,
        serialize=serialize,
        backtrace=settings.debug,
        diagnose=settings.debug,
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            level=level,
            serialize=serialize,
            rotation="10 MB",
            retention=5,
            enqueue=True,
        )
    logger.debug("Logging configured - level={} json={}", level, serialize)
