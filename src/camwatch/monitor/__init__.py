"""
Monitoring loop for CamWatch.

Provides:
- MonitorSettings / SettingsStore: operator settings, swapped atomically
- NoticeBoard: operator notices
- FrameSampler: fixed-cadence detection loop (import from .sampler)
"""

from .notices import Notice, NoticeBoard, NoticeLevel
from .settings import MonitorSettings, SettingsStore, create_default_settings

__all__ = [
    "Notice",
    "NoticeBoard",
    "NoticeLevel",
    "MonitorSettings",
    "SettingsStore",
    "create_default_settings",
]
