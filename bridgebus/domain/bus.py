"""In-process event bus with bounded queues, debounce, throttle and merges."""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import threading
from typing import Any, Awaitable, Callable, Coroutine

from bridgebus.config import DEFAULT_QUEUE_LIMIT, BusSettings
from bridgebus.domain.errors import ConfigurationError
from bridgebus.domain.models import Listener, MergeEntry
from bridgebus.repos.memory import ListenerRegistry, MergeTable, QueueStore
from bridgebus.services.debounce import DebounceController
from bridgebus.services.throttle import ThrottleController
from bridgebus.services.timers import Timer, default_timer

logger = logging.getLogger(__name__)


class EventBus:
    """Publish/subscribe bus keyed by event name.

    ``broadcast`` queues the payload for the (merge-resolved) event and flushes
    according to the event's policy. Flushing calls every listener once per
    queued payload, in registration order; listener failures are logged and
    skipped. ``broadcast_async`` ignores queues, policies and merges and awaits
    each listener in turn, stopping at the first failure.
    """

    def __init__(
        self,
        queue_limit: int = DEFAULT_QUEUE_LIMIT,
        timer: Timer | None = None,
        *,
        default_debounce_ms: int | None = None,
        default_throttle_ms: int | None = None,
    ) -> None:
        self._registry = ListenerRegistry()
        self._queues = QueueStore(queue_limit)
        self._merges = MergeTable()
        self._timer = timer
        self._lock = threading.RLock()
        self._background: set[asyncio.Future] = set()
        self._flushing: set[str] = set()
        self._default_debounce_ms = default_debounce_ms
        self._default_throttle_ms = default_throttle_ms
        self._debounce = DebounceController(
            timer=lambda: self.timer,
            on_fire=self.flush,
            guard=self._guarded,
        )
        self._throttle = ThrottleController(timer=lambda: self.timer, guard=self._guarded)

    @classmethod
    def from_settings(cls, settings: BusSettings, timer: Timer | None = None) -> EventBus:
        return cls(
            settings.queue_limit,
            timer,
            default_debounce_ms=settings.default_debounce_ms,
            default_throttle_ms=settings.default_throttle_ms,
        )

    @property
    def queue_limit(self) -> int:
        return self._queues.limit

    @property
    def timer(self) -> Timer:
        # Resolved lazily so a bus built before the event loop starts still
        # picks up the loop once it schedules its first timer.
        if self._timer is None:
            self._timer = default_timer()
        return self._timer

    def _guarded(self, fn: Callable[[], None]) -> Callable[[], None]:
        @functools.wraps(fn)
        def run() -> None:
            with self._lock:
                fn()

        return run

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def add_listener(self, event: str, listener: Listener) -> None:
        with self._lock:
            self._registry.add(event, listener)

    def remove_listener(self, event: str, listener: Listener) -> None:
        with self._lock:
            self._registry.remove(event, listener)

    def transform(self, event: str, map_fn: Callable[[Listener], Listener]) -> None:
        with self._lock:
            self._registry.transform(event, map_fn)

    def conditional_filter(self, event: str, predicate: Callable[[Listener], Any]) -> None:
        with self._lock:
            self._registry.filter(event, predicate)

    def pick(self, event: str, limit: int) -> None:
        with self._lock:
            self._registry.pick(event, limit)

    def listeners(self, event: str) -> tuple[Listener, ...]:
        with self._lock:
            return self._registry.get(event)

    def pending(self, event: str) -> tuple[Any, ...]:
        with self._lock:
            return self._queues.list_pending(event)

    # ------------------------------------------------------------------
    # Delivery configuration
    # ------------------------------------------------------------------

    def delayed_broadcast(self, event: str, ms: int | None = None) -> None:
        """Debounce ``event``: flush only after ``ms`` quiet milliseconds."""
        interval = _interval(ms, self._default_debounce_ms, "debounce")
        with self._lock:
            self._debounce.configure(event, interval)

    def paced_broadcast(self, event: str, ms: int | None = None) -> None:
        """Throttle ``event``: flush at most once per ``ms`` cooldown window."""
        interval = _interval(ms, self._default_throttle_ms, "throttle")
        with self._lock:
            self._throttle.configure(event, interval)

    def unify(self, event_a: str, event_b: str, target: str) -> MergeEntry:
        """Redirect broadcasts on ``event_a`` or ``event_b`` to ``target``."""
        with self._lock:
            entry = self._merges.add(event_a, event_b, target)
        logger.debug("Merged %s and %s into %s", event_a, event_b, target)
        return entry

    def merges(self) -> list[MergeEntry]:
        with self._lock:
            return self._merges.list_all()

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def broadcast(self, event: str, payload: Any) -> None:
        with self._lock:
            target = self._merges.resolve(event)
            if target != event:
                logger.debug("Redirecting %s to %s", event, target)

            if self._queues.push(target, payload):
                logger.debug("Queue for %s is full; dropped oldest payload", target)

            if self._debounce.is_configured(target):
                self._debounce.arm(target)
                return

            if self._throttle.is_configured(target):
                if self._throttle.cooling_down(target):
                    return
                self._throttle.start_cooldown(target)

            self.flush(target)

    def flush(self, event: str) -> None:
        """Deliver every queued payload for ``event`` to its current listeners.

        Payloads stay queued while the event has no listeners.
        """
        with self._lock:
            # A listener that re-broadcasts this event lands in the queue and is
            # picked up by the drain already in progress.
            if event in self._flushing or not self._registry.has_listeners(event):
                return
            self._flushing.add(event)
            delivered = 0
            try:
                while True:
                    found, payload = self._queues.pop(event)
                    if not found:
                        break
                    for listener in self._registry.get(event):
                        self._deliver(event, listener, payload)
                    delivered += 1
            finally:
                self._flushing.discard(event)
            if delivered:
                logger.debug("Flushed %d payload(s) for %s", delivered, event)

    def broadcast_async(self, event: str, payload: Any) -> Coroutine[Any, Any, None]:
        """Return a coroutine that awaits each listener registered right now, in order.

        The listener snapshot is taken by this call, not when the coroutine
        starts running. The first listener that raises (or whose awaitable
        fails) aborts the dispatch and its exception propagates to the awaiter.
        """
        with self._lock:
            listeners = self._registry.get(event)
        return _dispatch_async(listeners, payload)

    def _deliver(self, event: str, listener: Listener, payload: Any) -> None:
        try:
            result = listener(payload)
        except Exception:
            logger.exception("Listener %r for %s failed", listener, event)
            return
        if inspect.isawaitable(result):
            self._detach(event, result)

    def _detach(self, event: str, awaitable: Awaitable[Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Dropping async result of listener for %s: no running event loop", event)
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        future = asyncio.ensure_future(awaitable, loop=loop)
        self._background.add(future)

        def done(fut: asyncio.Future) -> None:
            self._background.discard(fut)
            if not fut.cancelled() and fut.exception() is not None:
                logger.error(
                    "Async listener for %s failed", event, exc_info=fut.exception()
                )

        future.add_done_callback(done)


async def _dispatch_async(listeners: tuple[Listener, ...], payload: Any) -> None:
    for listener in listeners:
        result = listener(payload)
        if inspect.isawaitable(result):
            await result


def _interval(ms: int | None, default: int | None, policy: str) -> int:
    if ms is not None:
        return ms
    if default is None:
        raise ConfigurationError(f"No {policy} interval given and no default configured")
    return default
