"""
Async runner for dramatiq tasks.

Dramatiq actors are synchronous; each worker thread keeps one event loop
and runs the async task bodies on it.
"""

import asyncio
import threading
from collections.abc import Coroutine
from typing import Any, TypeVar

from loguru import logger


T = TypeVar("T")

_thread_local = threading.local()


def get_event_loop() -> asyncio.AbstractEventLoop:
    """
    Get or create the event loop for the current thread.

    Reusing one loop per thread avoids "Future attached to a different
    loop" errors from pooled connections.
    """
    loop = getattr(_thread_local, "loop", None)
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        _thread_local.loop = loop
        logger.debug(f"Created new event loop for thread {threading.current_thread().name}")
    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run a coroutine on the thread's event loop.

    Args:
        coro: Coroutine to run

    Returns:
        Result of the coroutine
    """
    loop = get_event_loop()
    try:
        return loop.run_until_complete(coro)
    except Exception as e:
        logger.exception(f"Error running async coroutine: {e}")
        raise
