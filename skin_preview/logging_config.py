"""Logging setup for skin_preview.

Logs go to stderr: stdout carries the MCP stdio transport and the output of
the ``render`` command.
"""

import logging
import sys
from typing import Optional

from skin_preview.config import ServerConfig, get_config


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger("skin_preview")

_configured = False


def setup_logging(config: Optional[ServerConfig] = None) -> logging.Logger:
    """Configure the package logger once.

    Args:
        config: Optional server configuration (uses get_config() if omitted)

    Returns:
        The package logger
    """
    global _configured

    if config is None:
        config = get_config()

    level = logging.getLevelName(config.log_level)
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(level)

    if not _configured:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
        _configured = True

    return logger
