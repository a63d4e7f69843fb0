# occurrence_sync/core/logging_config.py
"""
Logging setup for the occurrence engine.

Modules log through `logging.getLogger(__name__)`; this helper only wires
the root handler and keeps the HTTP stack quiet unless explicitly asked.
"""
from __future__ import annotations

import logging

from occurrence_sync.core.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(level: str | None = None) -> None:
    """
    Configure the root logger.

    Parameters
    ----------
    level:
        Explicit level name. Falls back to `LOG_LEVEL` from settings and
        then to INFO when the name is not recognised.
    """
    level_name = (level or get_settings().LOG_LEVEL or "INFO").upper()
    root_level = getattr(logging, level_name, None)
    if not isinstance(root_level, int):
        root_level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a handler once; repeated calls just adjust the level.
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(
            logging.DEBUG if root_level <= logging.DEBUG else logging.WARNING
        )
