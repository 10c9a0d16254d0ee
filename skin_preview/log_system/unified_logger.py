"""Single access point for loggers used across skin_preview."""

import logging
from typing import Optional

from skin_preview.config import ServerConfig


class UnifiedLogger:
    """Hands out package loggers, initialising logging on first use."""

    _initialized = False

    @classmethod
    def initialize(cls, config: Optional[ServerConfig] = None) -> None:
        """Configure logging from the given (or default) configuration."""
        from skin_preview.logging_config import setup_logging

        setup_logging(config)
        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Return a logger for a module, e.g. ``UnifiedLogger.get_logger(__name__)``."""
        if not cls._initialized:
            cls.initialize()
        return logging.getLogger(name)
