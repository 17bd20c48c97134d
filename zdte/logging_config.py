"""
Loguru sink setup for applications embedding the vault.

The library only emits records through `loguru.logger`; it never installs
sinks on import. Call `configure_logging()` once from the process entry point.
"""

from __future__ import annotations

import sys
from typing import Any, Optional

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str = "INFO", sink: Optional[Any] = None) -> int:
    """Replace existing handlers with a single sink. Returns the handler id."""
    logger.remove()  # Remove default handler
    return logger.add(
        sink if sink is not None else sys.stderr,
        level=level.upper(),
        format=LOG_FORMAT,
    )
