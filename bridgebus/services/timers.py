"""Timer capability used by the debounce and throttle controllers.

The bus never sleeps itself. It asks a ``Timer`` to run a callback after a
delay and to cancel that request later. Three implementations ship with the
package:

* ``AsyncioTimer`` -- ``loop.call_later`` on an asyncio event loop.
* ``ThreadingTimer`` -- one ``threading.Timer`` per request.
* ``ManualTimer`` -- a simulated clock advanced explicitly with ``advance``.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import threading
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], None]


class Timer(Protocol):
    def schedule(self, delay_ms: int, fn: TimerCallback) -> Any:
        """Run ``fn`` once after ``delay_ms`` milliseconds; return a cancel handle."""

    def cancel(self, handle: Any) -> None:
        """Cancel a scheduled callback; cancelling a fired handle is a no-op."""


class AsyncioTimer:
    """Schedules callbacks on an asyncio loop (the running loop by default)."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def schedule(self, delay_ms: int, fn: TimerCallback) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay_ms / 1000, fn)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()


class ThreadingTimer:
    """Runs each callback on its own daemon ``threading.Timer`` thread."""

    def schedule(self, delay_ms: int, fn: TimerCallback) -> threading.Timer:
        timer = threading.Timer(delay_ms / 1000, fn)
        timer.daemon = True
        timer.start()
        return timer

    def cancel(self, handle: threading.Timer) -> None:
        handle.cancel()


class ManualTimer:
    """Simulated clock for hosts that drive time themselves.

    Nothing fires until ``advance`` is called. Callbacks run in due-time order
    (ties in scheduling order) and the clock reads each callback's due time
    while it runs, so callbacks that schedule further work are honoured within
    the same ``advance``.
    """

    def __init__(self, start_ms: int = 0) -> None:
        self.now_ms = start_ms
        self._heap: list[tuple[int, int]] = []
        self._callbacks: dict[int, TimerCallback] = {}
        self._ids = itertools.count(1)

    def schedule(self, delay_ms: int, fn: TimerCallback) -> int:
        handle = next(self._ids)
        self._callbacks[handle] = fn
        heapq.heappush(self._heap, (self.now_ms + delay_ms, handle))
        return handle

    def cancel(self, handle: int) -> None:
        self._callbacks.pop(handle, None)

    @property
    def pending(self) -> int:
        return len(self._callbacks)

    def advance(self, ms: int) -> int:
        """Move the clock forward by ``ms``; return how many callbacks fired."""
        if ms < 0:
            raise ValueError("cannot move the clock backwards")
        deadline = self.now_ms + ms
        fired = 0
        while self._heap and self._heap[0][0] <= deadline:
            due, handle = heapq.heappop(self._heap)
            fn = self._callbacks.pop(handle, None)
            if fn is None:
                continue
            self.now_ms = due
            fn()
            fired += 1
        self.now_ms = deadline
        return fired


def default_timer() -> Timer:
    """Pick ``AsyncioTimer`` inside a running loop, ``ThreadingTimer`` otherwise."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.debug("No running event loop; using threading timers")
        return ThreadingTimer()
    return AsyncioTimer(loop)
