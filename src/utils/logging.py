"""Process-wide logger factory."""

from __future__ import annotations

import logging

from src.utils.settings import load_settings

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'
ROOT_LOGGER_NAME = 'oneview'

_configured = False


def configure_logging(level: str | None = None) -> logging.Logger:
    """Attach a single stream handler to the package root logger."""
    global _configured
    root = logging.getLogger(ROOT_LOGGER_NAME)
    resolved = str(level or load_settings().log_level).upper()
    root.setLevel(getattr(logging, resolved, logging.INFO))
    if not _configured:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        root.propagate = False
        _configured = True
    return root


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the package root, configuring it on first use."""
    if not _configured:
        configure_logging()
    return logging.getLogger(f'{ROOT_LOGGER_NAME}.{name}')
