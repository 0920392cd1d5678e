"""Logging setup on top of loguru."""
from __future__ import annotations

import sys
from typing import Any

from loguru import logger

_FORMAT = "{time:HH:mm:ss} | {level: <7} | {name}:{line} - {message}"


def configure_logging(level: str = "INFO", sink: Any = None) -> int:
    """Replace loguru's default handler with a single sink and return its id."""
    logger.remove()
    return logger.add(sink if sink is not None else sys.stderr, level=level.upper(), format=_FORMAT)
