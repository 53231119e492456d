"""
cachefront - Logging Setup

Library modules only create loggers; applications call setup_logging() once
(or pass configure_logging=True to create_manager) to get console output.
"""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str | int = logging.INFO) -> None:
    """Configure root logging with the standard cachefront format."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("cachefront").setLevel(level)
