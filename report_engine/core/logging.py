"""
Logging for the report engine.

Every module logger lives under the ``report_engine`` namespace and
propagates to a single stdout handler installed on that package logger,
so importing many modules never stacks duplicate handlers. The level comes
from ``LOG_LEVEL`` in settings.
"""
from __future__ import annotations

import logging
import sys

from report_engine.core.config import get_settings

ROOT_LOGGER = "report_engine"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_HANDLER_NAME = "report_engine.stdout"


def configure_logging(level: str | None = None) -> logging.Logger:
    """Install the stdout handler on the package logger (once) and set its level."""
    root = logging.getLogger(ROOT_LOGGER)
    if not any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(handler)
        root.propagate = False

    level_name = (level or get_settings().log_level).upper()
    resolved = getattr(logging, level_name, logging.INFO)
    root.setLevel(resolved if isinstance(resolved, int) else logging.INFO)
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger for *name*, nested under the package logger."""
    configure_logging()
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
