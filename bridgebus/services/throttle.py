"""Throttle ("pace") controller: at most one immediate flush per cooldown window."""

from __future__ import annotations

import logging
from typing import Callable

from pydantic import ValidationError

from bridgebus.domain.errors import ConfigurationError
from bridgebus.domain.models import ThrottleState
from bridgebus.services.timers import Timer

logger = logging.getLogger(__name__)


class ThrottleController:
    """Tracks the cooldown flag of every paced event.

    Cooldown timers only clear the flag. Payloads queued during a cooldown wait
    for the next broadcast after it ends; there is no trailing flush.
    """

    def __init__(
        self,
        timer: Callable[[], Timer],
        guard: Callable[[Callable[[], None]], Callable[[], None]] | None = None,
    ) -> None:
        self._timer = timer
        self._guard = guard or (lambda fn: fn)
        self._states: dict[str, ThrottleState] = {}

    def configure(self, event: str, interval_ms: int) -> ThrottleState:
        try:
            state = ThrottleState(interval_ms=interval_ms)
        except ValidationError as exc:
            raise ConfigurationError(
                f"throttle interval for {event!r} must be a positive integer, got {interval_ms!r}"
            ) from exc
        previous = self._states.get(event)
        if previous is not None and previous.timer_handle is not None:
            self._timer().cancel(previous.timer_handle)
        self._states[event] = state
        logger.debug("Throttle configured for %s (%d ms)", event, state.interval_ms)
        return state

    def is_configured(self, event: str) -> bool:
        return event in self._states

    def get(self, event: str) -> ThrottleState | None:
        return self._states.get(event)

    def cooling_down(self, event: str) -> bool:
        state = self._states.get(event)
        return state is not None and state.cooldown_active

    def start_cooldown(self, event: str) -> None:
        state = self._states[event]
        state.cooldown_active = True

        def end_cooldown() -> None:
            state.cooldown_active = False
            state.timer_handle = None
            logger.debug("Cooldown ended for %s", event)

        state.timer_handle = self._timer().schedule(state.interval_ms, self._guard(end_cooldown))
