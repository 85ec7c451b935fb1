"""
Operator notices.

Short-lived messages for the operator ("Camera not found", "Recording
saved"). They are logged, kept in a small ring buffer for the API, and
fanned out to registered callbacks.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class NoticeLevel(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    """A single operator-visible message."""

    message: str
    level: NoticeLevel = NoticeLevel.INFO
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "level": self.level.value,
            "timestamp": self.timestamp.isoformat(),
        }


_LOG_LEVELS = {
    NoticeLevel.INFO: logging.INFO,
    NoticeLevel.WARNING: logging.WARNING,
    NoticeLevel.ERROR: logging.ERROR,
}


class NoticeBoard:
    """Collects notices for the operator."""

    def __init__(self, max_notices: int = 50):
        self._notices: deque[Notice] = deque(maxlen=max_notices)
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[Notice], None]] = []

    def post(self, message: str, level: NoticeLevel = NoticeLevel.INFO) -> Notice:
        """Publish a notice."""
        notice = Notice(message=message, level=level)
        with self._lock:
            self._notices.append(notice)
        logger.log(_LOG_LEVELS[level], f"Notice: {message}")

        for callback in self._callbacks:
            try:
                callback(notice)
            except Exception as e:
                logger.error(f"Notice callback error: {e}")
        return notice

    def recent(self, count: int = 10) -> list[Notice]:
        """Most recent notices, oldest first."""
        with self._lock:
            if count <= 0:
                return []
            return list(self._notices)[-count:]

    def on_notice(self, callback: Callable[[Notice], None]) -> None:
        """Register callback for new notices."""
        self._callbacks.append(callback)

    def clear(self) -> None:
        with self._lock:
            self._notices.clear()
