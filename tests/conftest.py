"""
Pytest configuration and shared fixtures for CamWatch tests.
"""

import sys
import time
from datetime import datetime, timedelta
from pathlib import Path

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from camwatch.camera.overlay import OverlayRenderer, RenderSurface
from camwatch.camera.video_source import SourceUnavailableError
from camwatch.inference.detection import BoundingBox, Detection, DetectionFrame, FrameTick
from camwatch.monitor.notices import NoticeBoard
from camwatch.monitor.settings import MonitorSettings, SettingsStore


class FakeSource:
    """In-memory video source with a fixed frame."""

    def __init__(self, width: int = 64, height: int = 48, ready: bool = True):
        self.ready = ready
        self.frame = np.zeros((height, width, 3), dtype=np.uint8)
        self.frame[:, : width // 2] = (10, 20, 30)
        self.frame[:, width // 2 :] = (200, 100, 50)
        self.callbacks = []

    @property
    def frame_size(self) -> tuple[int, int]:
        return self.frame.shape[1], self.frame.shape[0]

    def is_ready(self) -> bool:
        return self.ready

    def get_frame(self) -> np.ndarray:
        if not self.ready:
            raise SourceUnavailableError("No frame")
        return self.frame

    def on_frame(self, callback) -> None:
        self.callbacks.append(callback)

    def remove_frame_callback(self, callback) -> None:
        if callback in self.callbacks:
            self.callbacks.remove(callback)


class FakeDetector:
    """Returns scripted detections, one list per call (last one repeats)."""

    def __init__(self, script=None):
        self.script = list(script or [[]])
        self.calls = 0
        self.active = 0
        self.max_active = 0

    async def detect(self, frame):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            index = min(self.calls, len(self.script) - 1)
            self.calls += 1
            result = self.script[index]
            if isinstance(result, Exception):
                raise result
            return result
        finally:
            self.active -= 1


class FakeRecorder:
    """MediaRecorder that returns a fixed payload."""

    mime_type = "video/webm"

    def __init__(
        self,
        payload: bytes = b"webm-bytes",
        fail_start=False,
        fail_stop=False,
        start_delay: float = 0.0,
        stop_delay: float = 0.0,
    ):
        self.payload = payload
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.start_delay = start_delay
        self.stop_delay = stop_delay
        self.started = False
        self.stopped = False

    def start(self) -> None:
        time.sleep(self.start_delay)
        if self.fail_start:
            raise RuntimeError("encoder unavailable")
        self.started = True

    def stop(self) -> bytes:
        time.sleep(self.stop_delay)
        if self.fail_stop:
            raise RuntimeError("encoder crashed")
        self.stopped = True
        return self.payload


class RecorderFactory:
    """Hands out FakeRecorders and remembers them."""

    def __init__(self, **recorder_kwargs):
        self.recorder_kwargs = recorder_kwargs
        self.recorders: list[FakeRecorder] = []

    def __call__(self) -> FakeRecorder:
        recorder = FakeRecorder(**self.recorder_kwargs)
        self.recorders.append(recorder)
        return recorder


class RecordingSink:
    """ExportSink that keeps everything in memory."""

    def __init__(self):
        self.exports: list[tuple[bytes, str, str]] = []

    def export(self, data: bytes, suggested_filename: str, mime_hint: str) -> None:
        self.exports.append((data, suggested_filename, mime_hint))


class FakeAudio:
    def __init__(self):
        self.volumes: list[float] = []

    def beep(self, volume: float) -> None:
        self.volumes.append(volume)


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: datetime = datetime(2024, 3, 7, 14, 5, 9)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def make_detection(class_name: str = "person", score: float = 0.9, bbox=None) -> Detection:
    return Detection(
        class_name=class_name,
        score=score,
        bbox=bbox or BoundingBox(x=0.25, y=0.25, width=0.25, height=0.5),
    )


def make_frame(*class_names: str, sequence: int = 1) -> DetectionFrame:
    return DetectionFrame(
        tick=FrameTick(sequence=sequence),
        detections=[make_detection(name) for name in class_names],
    )


@pytest.fixture
def sample_bbox():
    """A sample bounding box for testing."""
    return BoundingBox(x=0.1, y=0.2, width=0.3, height=0.4)


@pytest.fixture
def person_detection(sample_bbox):
    return Detection(class_name="person", score=0.87, bbox=sample_bbox)


@pytest.fixture
def dog_detection():
    return Detection(
        class_name="dog",
        score=0.6,
        bbox=BoundingBox(x=0.5, y=0.5, width=0.25, height=0.25),
    )


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def audio():
    return FakeAudio()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notices():
    return NoticeBoard()


@pytest.fixture
def recorder_factory():
    return RecorderFactory()


@pytest.fixture
def settings_store():
    """Auto-record on with a short auto-stop window."""
    return SettingsStore(
        MonitorSettings(auto_record_enabled=True, auto_stop_duration_ms=200)
    )


@pytest.fixture
def renderer():
    return OverlayRenderer(RenderSurface(), target_class="person")


@pytest.fixture
def controller(recorder_factory, sink, audio, settings_store, notices, clock):
    from camwatch.recording.controller import RecordingController

    return RecordingController(
        recorder_factory=recorder_factory,
        export_sink=sink,
        audio=audio,
        settings=settings_store,
        notices=notices,
        clock=clock,
    )
