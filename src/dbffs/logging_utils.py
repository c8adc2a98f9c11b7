"""Logging configuration for the command line tools."""

from __future__ import annotations

import logging
import sys

FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
DATEFMT = "%Y-%m-%dT%H:%M:%S"


def configure_logging(verbose: bool = False) -> None:
    """Send diagnostics to stderr; debug level when verbose.

    Does nothing if the root logger already has handlers.
    """
    if logging.getLogger().handlers:
        return
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format=FORMAT, datefmt=DATEFMT, handlers=[logging.StreamHandler(sys.stderr)])
