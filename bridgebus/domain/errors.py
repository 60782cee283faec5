"""Exceptions raised by the event bus."""

from __future__ import annotations


class BusError(Exception):
    """Base class for every error raised by the bus."""


class ConfigurationError(BusError, ValueError):
    """Raised when the bus or one of its policies is given invalid settings."""


class CyclicMergeError(BusError):
    """Raised when following merge entries leads back to an already visited event."""

    def __init__(self, chain: tuple[str, ...]) -> None:
        self.chain = chain
        super().__init__("Cyclic merge: " + " -> ".join(chain))
