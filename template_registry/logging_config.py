"""
Logging configuration for applications embedding the registry.

The registry modules only create module-level loggers. Applications call
setup_logging() once at startup to route them to the console.
"""

import logging
import sys
from typing import Optional

from template_registry.config import get_logging_config

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """
    Configure the root logger.

    Values not given explicitly are read from the ``logging`` section of
    config.yaml, falling back to INFO and DEFAULT_FORMAT when there is no
    config file.

    Args:
        level: Log level name (e.g. "DEBUG").
        fmt: Log record format string.
    """
    try:
        config = get_logging_config()
    except (FileNotFoundError, KeyError):
        config = {}

    level_name = (level or config.get("level", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(fmt or config.get("format", DEFAULT_FORMAT)))
    root_logger.addHandler(console_handler)
