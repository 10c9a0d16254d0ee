"""Configuration for skin_preview.

Settings are read from environment variables with sensible defaults so the
preview tools work without any configuration file.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional


DEFAULT_USER_AGENT = "SkinPreview/1.0 (Skin Hydrator)"


@dataclass(frozen=True)
class ServerConfig:
    """Runtime settings shared by the server, the CLI and the services."""

    name: str = "skin_preview"
    log_level: str = "INFO"
    default_target: str = "notice"
    feed_timeout: float = 10.0
    page_timeout: float = 10.0
    api_timeout: float = 5.0
    user_agent: str = DEFAULT_USER_AGENT


def _env_float(name: str, default: float) -> float:
    """Read a float from the environment, falling back to the default."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Ignoring invalid value for {name}: {raw!r} (using {default})"
        )
        return default
    if value <= 0:
        logging.getLogger(__name__).warning(
            f"Ignoring non-positive value for {name}: {raw!r} (using {default})"
        )
        return default
    return value


def load_config() -> ServerConfig:
    """Build a fresh configuration from the environment.

    Environment variables:
        SKIN_PREVIEW_NAME: server name
        SKIN_PREVIEW_LOG_LEVEL: logging level name
        TARGET_BLOG_URL: default blog identifier or URL
        SKIN_PREVIEW_FEED_TIMEOUT: RSS fetch timeout in seconds
        SKIN_PREVIEW_PAGE_TIMEOUT: blog page fetch timeout in seconds
        SKIN_PREVIEW_API_TIMEOUT: blog info API timeout in seconds
        SKIN_PREVIEW_USER_AGENT: User-Agent header for all fetches

    Returns:
        ServerConfig instance
    """
    defaults = ServerConfig()
    return ServerConfig(
        name=os.getenv("SKIN_PREVIEW_NAME") or defaults.name,
        log_level=(os.getenv("SKIN_PREVIEW_LOG_LEVEL") or defaults.log_level).upper(),
        default_target=os.getenv("TARGET_BLOG_URL") or defaults.default_target,
        feed_timeout=_env_float("SKIN_PREVIEW_FEED_TIMEOUT", defaults.feed_timeout),
        page_timeout=_env_float("SKIN_PREVIEW_PAGE_TIMEOUT", defaults.page_timeout),
        api_timeout=_env_float("SKIN_PREVIEW_API_TIMEOUT", defaults.api_timeout),
        user_agent=os.getenv("SKIN_PREVIEW_USER_AGENT") or defaults.user_agent,
    )


_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Get or create the process-wide configuration."""
    global _config

    if _config is None:
        _config = load_config()

    return _config
