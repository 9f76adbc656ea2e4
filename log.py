# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""Logging setup.

The package logs through ``loguru``'s global ``logger``; applications that
want a single, level-filtered sink call :func:`configure_logging` once at
start-up.
"""
from __future__ import annotations

import sys
from typing import Optional

from loguru import logger

from latentstack.config import get_settings

_FORMAT = (
    '<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | '
    '<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>'
)


def configure_logging(level: Optional[str] = None, sink=sys.stderr) -> int:
    """Replace loguru's default handler with one filtered at ``level``.

    Returns the handler id so callers can ``logger.remove`` it again.
    """
    level = (level or get_settings().log_level).upper()
    logger.remove()
    return logger.add(sink, level=level, format=_FORMAT)


__all__ = ['configure_logging', 'logger']
