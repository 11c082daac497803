"""
Logging setup for service and CLI entry points.

All modules log through loguru's ``logger``; this only decides where the
records go.
"""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from config import Settings, get_settings

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)


def configure_logging(settings: Settings | None = None, *, level: str | None = None) -> None:
    """Replace loguru's default sink with stderr plus an optional rotating file."""
    settings = settings or get_settings()
    level = level or settings.log_level

    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            level=level,
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
        )
