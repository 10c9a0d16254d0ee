"""Turn unexpected tool exceptions into error results."""

import functools
from typing import Any, Awaitable, Callable, Dict

from skin_preview.log_system.unified_logger import UnifiedLogger


def exception_handler(func: Callable[..., Awaitable[Dict[str, Any]]]) -> Callable[..., Awaitable[Dict[str, Any]]]:
    """Wrap an async tool so it returns ``{"success": False, "error": ...}`` instead of raising.

    Tools already report expected failures themselves; this catches bugs and
    unexpected library errors so the MCP session stays usable.
    """

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Dict[str, Any]:
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            logger = UnifiedLogger.get_logger(func.__module__)
            logger.error(f"Tool {func.__name__} failed: {e}", exc_info=True)
            return {
                "success": False,
                "error": f"{type(e).__name__}: {e}",
            }

    return wrapper
