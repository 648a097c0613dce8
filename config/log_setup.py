"""
Logging setup helpers.

Library modules only create ``logging.getLogger(__name__)`` loggers;
applications call ``configure_logging`` once at startup to route them.
"""

import logging
from typing import Optional

from .settings import LoggingSettings


def configure_logging(settings: Optional[LoggingSettings] = None) -> None:
    """Apply the configured level and format to the root logger."""
    settings = settings or LoggingSettings()
    logging.basicConfig(
        level=getattr(logging, settings.level.upper(), logging.INFO),
        format=settings.format,
    )
