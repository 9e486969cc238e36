"""Logging setup for the updater package.

Every module logs through ``logging.getLogger(__name__)``; this helper only
attaches a handler to the package logger so embedding hosts that already
configure logging are left alone unless they opt in.
"""

from __future__ import annotations

import logging
from typing import Optional

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> logging.Logger:
    """Attach a single stream handler to the ``product_updater`` logger.

    Repeated calls replace the handler added by a previous call instead of
    stacking duplicates (common in tests and reloads).
    """

    logger = logging.getLogger("product_updater")
    logger.setLevel(_LEVELS.get((level or "info").lower(), logging.INFO))

    for h in list(logger.handlers):
        if getattr(h, "_added_by_configure_logging", False):
            logger.removeHandler(h)
            h.close()

    stream = logging.StreamHandler()
    stream.setFormatter(
        logging.Formatter(fmt or "%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    setattr(stream, "_added_by_configure_logging", True)
    logger.addHandler(stream)
    return logger
