"""
Performance timing utilities for debugging.

This module provides a decorator that measures execution time of the pipeline
stages when the JT_DEBUG environment variable is set.
"""

import functools
import inspect
import logging
import os
import time
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def timer(func: F) -> F:
    """
    Decorator that measures and logs execution time of a coroutine when JT_DEBUG=1.

    The check happens per call so the flag can be flipped by the CLI after import.

    Args:
        func: Coroutine function to measure

    Returns:
        Wrapped coroutine function
    """
    if not inspect.iscoroutinefunction(func):
        raise TypeError(f"timer expects a coroutine function, got {func!r}")

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        if os.getenv("JT_DEBUG") != "1":
            return await func(*args, **kwargs)

        start_time = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.debug("%s: %.2fms", func.__qualname__, elapsed_ms)

    return wrapper  # type: ignore[return-value]
