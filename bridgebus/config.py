"""Bus settings, optionally read from environment variables."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, ValidationError

from bridgebus.domain.errors import ConfigurationError

DEFAULT_QUEUE_LIMIT = 256


class BusSettings(BaseModel):
    """Construction-time settings for an ``EventBus``."""

    queue_limit: int = Field(default=DEFAULT_QUEUE_LIMIT, gt=0)
    log_level: str = "INFO"
    default_debounce_ms: int | None = Field(default=None, gt=0)
    default_throttle_ms: int | None = Field(default=None, gt=0)

    @classmethod
    def from_env(cls) -> BusSettings:
        values: dict[str, object] = {
            "log_level": os.getenv("BRIDGEBUS_LOG_LEVEL", "INFO"),
        }
        for name, key in (
            ("BRIDGEBUS_QUEUE_LIMIT", "queue_limit"),
            ("BRIDGEBUS_DEBOUNCE_MS", "default_debounce_ms"),
            ("BRIDGEBUS_THROTTLE_MS", "default_throttle_ms"),
        ):
            raw = os.getenv(name, "").strip()
            if not raw:
                continue
            try:
                values[key] = int(raw)
            except ValueError as exc:
                raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc

        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid bus settings from environment: {exc}") from exc
