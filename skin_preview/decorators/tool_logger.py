"""Log tool calls with their duration."""

import functools
import time
from typing import Any, Awaitable, Callable, Dict

from skin_preview.log_system.unified_logger import UnifiedLogger


def tool_logger(func: Callable[..., Awaitable[Dict[str, Any]]]) -> Callable[..., Awaitable[Dict[str, Any]]]:
    """Log start, outcome and elapsed time of an async tool call."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Dict[str, Any]:
        logger = UnifiedLogger.get_logger(func.__module__)
        started = time.perf_counter()
        logger.info(f"Tool {func.__name__} started")
        result = await func(*args, **kwargs)
        elapsed = (time.perf_counter() - started) * 1000
        outcome = "ok" if result.get("success") else "failed"
        logger.info(f"Tool {func.__name__} {outcome} in {elapsed:.0f} ms")
        return result

    return wrapper
