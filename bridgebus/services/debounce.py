"""Debounce ("postpone") controller: defer a flush until the event goes quiet."""

from __future__ import annotations

import logging
from typing import Callable

from pydantic import ValidationError

from bridgebus.domain.errors import ConfigurationError
from bridgebus.domain.models import DebounceState
from bridgebus.services.timers import Timer

logger = logging.getLogger(__name__)


class DebounceController:
    """Keeps one re-armable flush timer per configured event.

    ``on_fire`` is called with the event name when a timer survives its whole
    interval without being re-armed.
    """

    def __init__(
        self,
        timer: Callable[[], Timer],
        on_fire: Callable[[str], None],
        guard: Callable[[Callable[[], None]], Callable[[], None]] | None = None,
    ) -> None:
        self._timer = timer
        self._on_fire = on_fire
        self._guard = guard or (lambda fn: fn)
        self._states: dict[str, DebounceState] = {}

    def configure(self, event: str, interval_ms: int) -> DebounceState:
        try:
            state = DebounceState(interval_ms=interval_ms)
        except ValidationError as exc:
            raise ConfigurationError(
                f"debounce interval for {event!r} must be a positive integer, got {interval_ms!r}"
            ) from exc
        previous = self._states.get(event)
        if previous is not None and previous.armed:
            self._timer().cancel(previous.timer_handle)
        self._states[event] = state
        logger.debug("Debounce configured for %s (%d ms)", event, state.interval_ms)
        return state

    def is_configured(self, event: str) -> bool:
        return event in self._states

    def get(self, event: str) -> DebounceState | None:
        return self._states.get(event)

    def arm(self, event: str) -> None:
        """Cancel any pending timer for ``event`` and start a fresh one."""
        state = self._states[event]
        timer = self._timer()
        if state.armed:
            timer.cancel(state.timer_handle)

        def fire() -> None:
            state.timer_handle = None
            logger.debug("Debounce interval elapsed for %s", event)
            self._on_fire(event)

        state.timer_handle = timer.schedule(state.interval_ms, self._guard(fire))
