"""
Recording module for CamWatch.

Provides:
- RecordingController: Idle/Recording state machine with auto-stop
- FfmpegMediaRecorder: ffmpeg-backed underlying recording session
- StillCapture: one-shot PNG snapshots
- FileExportSink: writes finalized artifacts to disk
"""

from .controller import RecordingController
from .export import (
    Artifact,
    ExportSink,
    FileExportSink,
    extension_for,
    format_export_stem,
)
from .recorder import (
    FFMPEG_AVAILABLE,
    FfmpegMediaRecorder,
    MediaRecorder,
    RecorderError,
    create_recorder_factory,
)
from .session import RecordingSession, RecordingState, TriggerReason
from .still import StillCapture

__all__ = [
    "RecordingController",
    "Artifact",
    "ExportSink",
    "FileExportSink",
    "extension_for",
    "format_export_stem",
    "FFMPEG_AVAILABLE",
    "FfmpegMediaRecorder",
    "MediaRecorder",
    "RecorderError",
    "create_recorder_factory",
    "RecordingSession",
    "RecordingState",
    "TriggerReason",
    "StillCapture",
]
