"""Domain models for per-event delivery policies and merges."""

from __future__ import annotations

from typing import Any, Callable

from pydantic import BaseModel, Field, model_validator

Listener = Callable[[Any], Any]


# ---------------------------------------------------------------------------
# Policy state
# ---------------------------------------------------------------------------


class DebounceState(BaseModel):
    """Pending flush timer for an event configured with ``delayed_broadcast``."""

    interval_ms: int = Field(gt=0)
    timer_handle: Any = None

    @property
    def armed(self) -> bool:
        return self.timer_handle is not None


class ThrottleState(BaseModel):
    """Cooldown flag for an event configured with ``paced_broadcast``."""

    interval_ms: int = Field(gt=0)
    cooldown_active: bool = False
    timer_handle: Any = None


# ---------------------------------------------------------------------------
# Merges
# ---------------------------------------------------------------------------


class MergeEntry(BaseModel):
    """Redirects broadcasts on either source event to ``target``."""

    sources: frozenset[str]
    target: str

    @model_validator(mode="after")
    def _one_or_two_sources(self) -> MergeEntry:
        if not 1 <= len(self.sources) <= 2:
            raise ValueError("a merge entry joins one or two source events")
        return self

    def covers(self, event: str) -> bool:
        return event in self.sources
