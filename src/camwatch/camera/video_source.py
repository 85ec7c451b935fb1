"""
Video Source - Live Camera Interface

Captures frames from an OpenCV `VideoCapture` device in a background
thread and keeps the latest frame available for the detection loop.

Frames are exposed as RGB numpy arrays (H, W, 3). Subscribers registered
with `on_frame` see every captured frame; the recorder uses this to feed
the encoder while a session is active.
"""

import logging
import threading
import time
from datetime import datetime
from typing import Callable, Protocol

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class SourceUnavailableError(RuntimeError):
    """Raised when the source has no current frame."""


class VideoSource(Protocol):
    """Collaborator supplying live frames to the detection loop."""

    @property
    def frame_size(self) -> tuple[int, int]: ...

    def is_ready(self) -> bool: ...

    def get_frame(self) -> np.ndarray: ...

    def on_frame(self, callback: Callable[[np.ndarray, datetime], None]) -> None: ...

    def remove_frame_callback(
        self, callback: Callable[[np.ndarray, datetime], None]
    ) -> None: ...


class CameraSource:
    """
    Camera-backed video source.

    The capture thread reads frames at the configured framerate. The source
    reports ready once the device is open and at least one frame has been
    decoded; it stops being ready when the device is released.
    """

    def __init__(
        self,
        device: str | int = 0,
        resolution: tuple[int, int] = (1280, 720),
        framerate: int = 30,
    ):
        if isinstance(device, str) and device.isdigit():
            device = int(device)
        self.device = device
        self.resolution = resolution
        self.framerate = framerate

        # State
        self._capture: cv2.VideoCapture | None = None
        self._started = False
        self._capture_thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._frame_lock = threading.Lock()
        self._latest_frame: np.ndarray | None = None
        self._frame_timestamp: datetime | None = None
        self._frame_count = 0
        self._read_failures = 0

        self._frame_callbacks: list[Callable[[np.ndarray, datetime], None]] = []

        logger.info(
            f"CameraSource initialized: device={device}, "
            f"resolution={resolution}, fps={framerate}"
        )

    @property
    def frame_size(self) -> tuple[int, int]:
        """(width, height) of the current frame, or (0, 0) before the first frame."""
        with self._frame_lock:
            if self._latest_frame is None:
                return (0, 0)
            h, w = self._latest_frame.shape[:2]
            return (w, h)

    @property
    def frame_count(self) -> int:
        return self._frame_count

    def is_ready(self) -> bool:
        """True once the device is open and a decoded frame is buffered."""
        with self._frame_lock:
            return self._started and self._latest_frame is not None

    def get_frame(self) -> np.ndarray:
        """
        Get a copy of the latest frame.

        Raises:
            SourceUnavailableError: If no frame has been captured
        """
        with self._frame_lock:
            if not self._started or self._latest_frame is None:
                raise SourceUnavailableError("Camera has no current frame")
            return self._latest_frame.copy()

    def start(self) -> None:
        """Open the device and start the capture thread."""
        if self._started:
            logger.warning("Camera already started")
            return

        self._capture = cv2.VideoCapture(self.device)
        if not self._capture.isOpened():
            self._capture.release()
            self._capture = None
            raise SourceUnavailableError(f"Could not open camera device {self.device!r}")

        width, height = self.resolution
        self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        self._capture.set(cv2.CAP_PROP_FPS, self.framerate)

        self._started = True
        self._stop_event.clear()

        self._capture_thread = threading.Thread(
            target=self._capture_loop,
            name="CameraCaptureThread",
            daemon=True,
        )
        self._capture_thread.start()
        logger.info("Camera started with capture thread")

    def stop(self) -> None:
        """Stop the capture thread and release the device."""
        if not self._started:
            return

        self._stop_event.set()
        if self._capture_thread:
            self._capture_thread.join(timeout=2.0)
            self._capture_thread = None

        if self._capture is not None:
            self._capture.release()
            self._capture = None

        with self._frame_lock:
            self._started = False
            self._latest_frame = None
            self._frame_timestamp = None
        logger.info("Camera stopped")

    def _capture_loop(self) -> None:
        """Background thread for continuous frame capture."""
        logger.info("Capture loop started")
        target_interval = 1.0 / self.framerate

        while not self._stop_event.is_set():
            loop_start = time.perf_counter()

            ok, bgr = self._capture.read()
            if not ok or bgr is None:
                self._read_failures += 1
                if self._read_failures % 50 == 1:
                    logger.warning(f"Camera read failed ({self._read_failures} total)")
                time.sleep(target_interval)
                continue

            frame = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
            timestamp = datetime.now()

            with self._frame_lock:
                self._latest_frame = frame
                self._frame_timestamp = timestamp
                self._frame_count += 1

            for callback in list(self._frame_callbacks):
                try:
                    callback(frame, timestamp)
                except Exception as e:
                    logger.error(f"Frame callback error: {e}")

            elapsed = time.perf_counter() - loop_start
            sleep_time = target_interval - elapsed
            if sleep_time > 0:
                time.sleep(sleep_time)

        logger.info("Capture loop stopped")

    def on_frame(self, callback: Callable[[np.ndarray, datetime], None]) -> None:
        """Register callback for new frames."""
        self._frame_callbacks.append(callback)
        logger.debug(f"Frame callback registered, total: {len(self._frame_callbacks)}")

    def remove_frame_callback(self, callback: Callable[[np.ndarray, datetime], None]) -> None:
        """Unregister a frame callback (no-op if unknown)."""
        try:
            self._frame_callbacks.remove(callback)
        except ValueError:
            pass

    def get_status(self) -> dict:
        """Get camera status."""
        width, height = self.frame_size
        return {
            "started": self._started,
            "ready": self.is_ready(),
            "device": str(self.device),
            "frame_count": self._frame_count,
            "frame_width": width,
            "frame_height": height,
            "read_failures": self._read_failures,
            "last_frame": self._frame_timestamp.isoformat() if self._frame_timestamp else None,
        }

    def cleanup(self) -> None:
        """Release camera resources."""
        self.stop()
        logger.info("Camera resources cleaned up")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup()


def create_camera_source() -> CameraSource:
    """Create camera source from config."""
    from camwatch.config import camera_config

    return CameraSource(
        device=camera_config.device,
        resolution=camera_config.resolution,
        framerate=camera_config.framerate,
    )
