"""
Operator settings shared by the sampler, renderer and recording controller.

`MonitorSettings` is immutable. Operator changes go through
`SettingsStore.update()`, which swaps in a new value atomically, so a tick
that took a snapshot sees one consistent set of values.
"""

import logging
import threading
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


class MonitorSettings(BaseModel):
    """Configuration surface consumed by the monitoring core."""

    model_config = ConfigDict(frozen=True)

    mirrored: bool = True
    auto_record_enabled: bool = False
    notification_volume: float = Field(default=0.8, ge=0.0, le=1.0)
    detection_interval_ms: int = Field(default=100, gt=0)
    auto_stop_duration_ms: int = Field(default=30_000, gt=0)
    target_class: str = "person"

    @field_validator("target_class")
    @classmethod
    def validate_target_class(cls, v):
        if not v.strip():
            raise ValueError("target_class must not be empty")
        return v

    @property
    def detection_interval(self) -> float:
        """Polling interval in seconds."""
        return self.detection_interval_ms / 1000.0

    @property
    def auto_stop_duration(self) -> float:
        """Auto-stop window in seconds."""
        return self.auto_stop_duration_ms / 1000.0


class SettingsStore:
    """Holds the current settings and replaces them as a whole."""

    def __init__(self, initial: MonitorSettings | None = None):
        self._settings = initial or MonitorSettings()
        self._lock = threading.RLock()
        self._on_change_callbacks: list[Callable[[MonitorSettings], None]] = []

    def snapshot(self) -> MonitorSettings:
        """Current settings value. Never changes after it is returned."""
        with self._lock:
            return self._settings

    def update(self, **changes) -> MonitorSettings:
        """
        Replace the settings with a copy carrying the given changes.

        Args:
            **changes: Field names and new values

        Returns:
            The new settings value

        Raises:
            pydantic.ValidationError: If a value is out of range
            KeyError: If a field name is unknown
        """
        with self._lock:
            unknown = set(changes) - set(MonitorSettings.model_fields)
            if unknown:
                raise KeyError(f"Unknown settings: {', '.join(sorted(unknown))}")
            # Re-validate: model_copy(update=...) skips validation
            new = MonitorSettings.model_validate({**self._settings.model_dump(), **changes})
            self._settings = new

        logger.info(f"Settings updated: {changes}")
        for callback in self._on_change_callbacks:
            try:
                callback(new)
            except Exception as e:
                logger.error(f"Settings callback error: {e}")
        return new

    def toggle(self, name: str) -> bool:
        """Flip a boolean setting and return its new value."""
        with self._lock:
            current = getattr(self._settings, name)
            if not isinstance(current, bool):
                raise TypeError(f"Setting {name!r} is not a boolean")
            return getattr(self.update(**{name: not current}), name)

    def on_change(self, callback: Callable[[MonitorSettings], None]) -> None:
        """Register callback for settings replacement."""
        self._on_change_callbacks.append(callback)


def create_default_settings() -> MonitorSettings:
    """Build the initial settings from config."""
    from camwatch.config import (
        audio_config,
        detection_config,
        display_config,
        recording_config,
    )

    return MonitorSettings(
        mirrored=display_config.mirrored,
        auto_record_enabled=recording_config.auto_record_enabled,
        notification_volume=audio_config.volume,
        detection_interval_ms=detection_config.interval_ms,
        auto_stop_duration_ms=recording_config.auto_stop_duration_ms,
        target_class=detection_config.target_class,
    )
