"""Logging setup shared by the CLI and the daemon host.

Everything logs to stderr so stdout stays free for command output.
Enable debug output with INTRIG_DEBUG=1 or DEBUG=intrig.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(debug: bool = False, default_level: int = logging.WARNING) -> None:
    """
    Configure the ``intrig`` logger hierarchy.

    Args:
        debug: Force DEBUG level
        default_level: Level used when debug is off
    """
    logger = logging.getLogger("intrig")
    logger.setLevel(logging.DEBUG if debug else default_level)

    if not any(getattr(h, "_intrig_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        handler._intrig_handler = True
        logger.addHandler(handler)
    logger.propagate = False
