"""Logging configuration helpers."""

from __future__ import annotations

import logging
from logging import Logger

from app.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging() -> Logger:
    """Configure basic logging for the application and return the app logger."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    return logging.getLogger("app")
