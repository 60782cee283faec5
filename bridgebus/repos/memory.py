"""In-memory stores for listeners, pending payloads and merges."""

from __future__ import annotations

from collections import deque
from typing import Any, Callable

from bridgebus.domain.errors import ConfigurationError, CyclicMergeError
from bridgebus.domain.models import Listener, MergeEntry


class ListenerRegistry:
    """Dict-backed store of listener lists, keyed by event name.

    Lists keep insertion order, which is also the delivery order. Entries are
    created on first subscription and are never dropped, even when emptied.
    """

    def __init__(self) -> None:
        self._store: dict[str, list[Listener]] = {}

    def add(self, event: str, listener: Listener) -> None:
        self._store.setdefault(event, []).append(listener)

    def remove(self, event: str, listener: Listener) -> None:
        listeners = self._store.get(event)
        if listeners is not None:
            listeners[:] = [cb for cb in listeners if cb != listener]

    def get(self, event: str) -> tuple[Listener, ...]:
        return tuple(self._store.get(event, ()))

    def has_listeners(self, event: str) -> bool:
        return bool(self._store.get(event))

    def transform(self, event: str, map_fn: Callable[[Listener], Listener]) -> None:
        """Replace every listener with ``map_fn(listener)``.

        The replacement list is built before it is swapped in, so an exception
        from ``map_fn`` leaves the entry exactly as it was.
        """
        listeners = self._store.get(event)
        if listeners is None:
            return
        self._store[event] = [map_fn(cb) for cb in listeners]

    def filter(self, event: str, predicate: Callable[[Listener], Any]) -> None:
        listeners = self._store.get(event)
        if listeners is None:
            return
        self._store[event] = [cb for cb in listeners if _holds(predicate, cb)]

    def pick(self, event: str, limit: int) -> None:
        if limit < 0:
            raise ConfigurationError(f"pick limit must be >= 0, got {limit}")
        listeners = self._store.get(event)
        if listeners is not None:
            del listeners[limit:]


def _holds(predicate: Callable[[Listener], Any], listener: Listener) -> bool:
    # A predicate that blows up excludes the listener instead of aborting the filter.
    try:
        return bool(predicate(listener))
    except Exception:
        return False


class QueueStore:
    """Bounded FIFO of pending payloads per event name.

    Every queue shares the same capacity; pushing onto a full queue drops the
    oldest payload first.
    """

    def __init__(self, limit: int) -> None:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise ConfigurationError(f"queue limit must be a positive integer, got {limit!r}")
        self.limit = limit
        self._queues: dict[str, deque[Any]] = {}

    def push(self, event: str, payload: Any) -> bool:
        """Append ``payload``; return True when an older payload was evicted."""
        queue = self._queues.setdefault(event, deque())
        evicted = False
        if len(queue) >= self.limit:
            queue.popleft()
            evicted = True
        queue.append(payload)
        return evicted

    def pop(self, event: str) -> tuple[bool, Any]:
        """Remove the oldest payload, returning ``(found, payload)``."""
        queue = self._queues.get(event)
        if not queue:
            return False, None
        return True, queue.popleft()

    def list_pending(self, event: str) -> tuple[Any, ...]:
        return tuple(self._queues.get(event, ()))


class MergeTable:
    """Unordered source pairs mapped to a destination event.

    Entries keep insertion order; when an event belongs to several pairs the
    earliest ``add`` wins. Re-adding an existing pair replaces its target in place.
    """

    def __init__(self) -> None:
        self._entries: dict[frozenset[str], MergeEntry] = {}

    def add(self, event_a: str, event_b: str, target: str) -> MergeEntry:
        sources = frozenset((event_a, event_b))
        entry = MergeEntry(sources=sources, target=target)
        self._entries[sources] = entry
        return entry

    def list_all(self) -> list[MergeEntry]:
        return list(self._entries.values())

    def probe(self, event: str) -> str | None:
        for entry in self._entries.values():
            if entry.covers(event):
                return entry.target
        return None

    def resolve(self, event: str) -> str:
        """Follow merges from ``event`` to the event that actually receives it."""
        chain = [event]
        current = event
        while True:
            target = self.probe(current)
            if target is None:
                return current
            chain.append(target)
            if target in chain[:-1]:
                raise CyclicMergeError(tuple(chain))
            current = target
