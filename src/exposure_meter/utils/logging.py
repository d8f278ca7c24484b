"""Logging helpers for the exposure meter."""

from __future__ import annotations

import logging
from typing import Optional

LOGGER_NAME = "exposure_meter"

_LOGGER: Optional[logging.Logger] = None


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger, or a named child of it when *name* is given."""

    global _LOGGER
    if _LOGGER is None:
        _LOGGER = logging.getLogger(LOGGER_NAME)
        if not _LOGGER.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
            handler.setFormatter(formatter)
            _LOGGER.addHandler(handler)
        _LOGGER.setLevel(logging.INFO)
    if name:
        return _LOGGER.getChild(name)
    return _LOGGER


logger = get_logger()
