"""Console logging setup used by the command line entry point."""
from __future__ import annotations

import logging

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "WARNING") -> None:
    """Install a single console handler on the ``dining_room`` logger."""
    logger = logging.getLogger("dining_room")
    logger.setLevel(level.upper())
    logger.handlers = []

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(handler)
    logger.propagate = False
