"""Deferred calls used for reconnection."""

import asyncio
import threading
from typing import Any, Callable, Protocol


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


Scheduler = Callable[[float, Callable[[], None]], Cancellable]


def default_scheduler(delay: float, callback: Callable[[], None]) -> Cancellable:
    """
    Run ``callback`` after ``delay`` seconds.

    Uses the running event loop when there is one, otherwise a daemon timer thread.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer
    return loop.call_later(delay, callback)
