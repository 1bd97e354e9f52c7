"""
infrastructure.logging_config - One-time root logger setup for adapters.

Library modules only ever call logging.getLogger(__name__); adapters
(CLI, scripts) call setup_logging() once at startup.
"""

from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Chatty third-party loggers that drown out agent output at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "urllib3", "aiosqlite")


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger.

    Safe to call multiple times; later calls only change the level.
    """
    numeric = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=numeric, format=_FORMAT)
    root.setLevel(numeric)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric, logging.WARNING))
