"""
Recording session state.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto


class RecordingState(Enum):
    """Recording state machine states."""

    IDLE = auto()
    RECORDING = auto()


class TriggerReason(Enum):
    """What started the session."""

    MANUAL = "manual"
    AUTO = "auto"


@dataclass(frozen=True)
class RecordingSession:
    """
    Snapshot of the recording state owned by the RecordingController.

    A new value replaces the old one on every transition.
    """

    state: RecordingState = RecordingState.IDLE
    started_at: datetime | None = None
    auto_stop_deadline: datetime | None = None
    trigger_reason: TriggerReason | None = None

    @property
    def is_recording(self) -> bool:
        return self.state is RecordingState.RECORDING

    def time_remaining(self, now: datetime) -> float:
        """Seconds until the auto-stop deadline. 0 if idle."""
        if not self.is_recording or self.auto_stop_deadline is None:
            return 0.0
        return max(0.0, (self.auto_stop_deadline - now).total_seconds())

    def to_dict(self) -> dict:
        return {
            "state": self.state.name,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "auto_stop_deadline": (
                self.auto_stop_deadline.isoformat() if self.auto_stop_deadline else None
            ),
            "trigger_reason": self.trigger_reason.value if self.trigger_reason else None,
        }


IDLE_SESSION = RecordingSession()
