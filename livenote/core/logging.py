"""
Logging setup for the LiveNote service.

Every module logs through ``logging.getLogger(__name__)``; this module only
configures the root handler once, at application start.
"""

import logging
import sys

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO", format: str = DEFAULT_FORMAT) -> None:
    """Install a stdout handler on the root logger.

    Args:
        level: Log level name, usually ``Settings.log_level``.
        format: Log record format string.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format=format, stream=sys.stdout)
    logging.getLogger("livenote").setLevel(log_level)
