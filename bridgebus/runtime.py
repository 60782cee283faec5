"""Process-wide registration point for a shared bus.

Hosts that want a single bus reachable from anywhere install it once with
``assign_bus`` and look it up with ``fetch_bus``. The bus itself never relies
on this: its timers hold a direct reference to the instance that armed them.
"""

from __future__ import annotations

import logging
import threading

from bridgebus.config import BusSettings
from bridgebus.domain.bus import EventBus
from bridgebus.logging import setup_logging
from bridgebus.services.timers import Timer

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_current: EventBus | None = None


def assign_bus(bus: EventBus) -> None:
    global _current
    with _lock:
        if _current is not None and _current is not bus:
            logger.info("Replacing the shared event bus")
        _current = bus


def fetch_bus() -> EventBus | None:
    with _lock:
        return _current


def reset_bus() -> None:
    global _current
    with _lock:
        _current = None


def bootstrap(
    settings: BusSettings | None = None,
    timer: Timer | None = None,
    configure_logging: bool = False,
) -> EventBus:
    """Build a bus from ``settings`` (or the environment) and install it as the shared bus."""
    settings = settings or BusSettings.from_env()
    if configure_logging:
        setup_logging(settings.log_level)
    bus = EventBus.from_settings(settings, timer)
    assign_bus(bus)
    logger.debug("Shared event bus ready (queue_limit=%d)", settings.queue_limit)
    return bus
