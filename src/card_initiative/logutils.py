"""
Logging setup for card-initiative.

Every module logs through a child of the ``card-initiative`` logger so a host
can silence or redirect the whole package with one call.
"""

import logging

LOGGER_NAME = "card-initiative"

logger = logging.getLogger(LOGGER_NAME)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger, or a child of it when ``name`` is given."""
    if not name:
        return logger
    return logger.getChild(name)

