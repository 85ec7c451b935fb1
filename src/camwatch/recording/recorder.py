"""
Media Recorder

Underlying recording session for the RecordingController. While active,
`FfmpegMediaRecorder` receives every captured frame from the video source
and pipes it as raw RGB24 to an ffmpeg subprocess. `stop()` flushes the
pipe, waits for ffmpeg to finish the container and returns the encoded
bytes.
"""

import logging
import shutil
import subprocess
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Protocol

import numpy as np

from camwatch.camera.video_source import VideoSource

logger = logging.getLogger(__name__)

# Check ffmpeg availability at import time
FFMPEG_AVAILABLE = shutil.which("ffmpeg") is not None

if not FFMPEG_AVAILABLE:
    logger.warning("ffmpeg not found - video recording unavailable")


class RecorderError(RuntimeError):
    """Raised when a recording cannot be started or finalized."""


class MediaRecorder(Protocol):
    """One recording session's worth of encoded media."""

    mime_type: str

    def start(self) -> None: ...

    def stop(self) -> bytes: ...


# container -> (mime type, extension, codec arguments)
CONTAINER_PROFILES = {
    "webm": (
        "video/webm",
        ".webm",
        ["-c:v", "libvpx", "-b:v", "2M", "-deadline", "realtime", "-cpu-used", "8"],
    ),
    "mp4": (
        "video/mp4",
        ".mp4",
        ["-c:v", "libx264", "-preset", "veryfast", "-crf", "23", "-movflags", "+faststart"],
    ),
}


class FfmpegMediaRecorder:
    """
    Records the live source through an ffmpeg subprocess.

    One instance records exactly one session.
    """

    FINALIZE_TIMEOUT = 60  # seconds

    def __init__(
        self,
        source: VideoSource,
        framerate: float = 30.0,
        container: str = "webm",
    ):
        if container not in CONTAINER_PROFILES:
            raise ValueError(f"Unsupported container: {container}")

        self.source = source
        self.framerate = framerate
        self.container = container
        self.mime_type, self._extension, self._codec_args = CONTAINER_PROFILES[container]

        self._proc: subprocess.Popen | None = None
        self._workdir: Path | None = None
        self._output_path: Path | None = None
        self._frame_size: tuple[int, int] | None = None
        self._write_lock = threading.Lock()
        self._frames_written = 0
        self._frames_dropped = 0
        self._pipe_broken = False

    @property
    def is_recording(self) -> bool:
        return self._proc is not None

    @property
    def frames_written(self) -> int:
        return self._frames_written

    def _build_command(self, width: int, height: int) -> list[str]:
        return [
            "ffmpeg",
            "-y",
            "-loglevel", "error",
            "-f", "rawvideo",
            "-pix_fmt", "rgb24",
            "-s", f"{width}x{height}",
            "-r", str(self.framerate),
            "-i", "pipe:0",
            *self._codec_args,
            "-pix_fmt", "yuv420p",
            str(self._output_path),
        ]

    def start(self) -> None:
        """
        Spawn ffmpeg and subscribe to source frames.

        Raises:
            RecorderError: If ffmpeg is missing or the source has no frame size yet
        """
        if self._proc is not None:
            raise RecorderError("Recorder already started")
        if not FFMPEG_AVAILABLE:
            raise RecorderError("ffmpeg not available, cannot record video")

        width, height = self.source.frame_size
        if width == 0 or height == 0:
            raise RecorderError("Video source has no frame size yet")
        # yuv420p needs even dimensions
        self._frame_size = (width - width % 2, height - height % 2)

        self._workdir = Path(tempfile.mkdtemp(prefix="camwatch-rec-"))
        self._output_path = self._workdir / f"recording{self._extension}"
        cmd = self._build_command(*self._frame_size)

        try:
            self._proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            shutil.rmtree(self._workdir, ignore_errors=True)
            raise RecorderError(f"Failed to start ffmpeg: {e}") from e

        self.source.on_frame(self._write_frame)
        logger.info(
            f"Recording started: {self._frame_size[0]}x{self._frame_size[1]} "
            f"@ {self.framerate}fps ({self.container})"
        )

    def _write_frame(self, frame: np.ndarray, timestamp: datetime) -> None:
        """Frame callback: pipe one frame to ffmpeg (capture thread)."""
        with self._write_lock:
            if self._proc is None or self._pipe_broken:
                return
            width, height = self._frame_size
            if frame.shape[0] < height or frame.shape[1] < width:
                # Resolution changed mid-session; ffmpeg expects a fixed size
                self._frames_dropped += 1
                return
            raw = np.ascontiguousarray(frame[:height, :width, :3], dtype=np.uint8)
            try:
                self._proc.stdin.write(raw.tobytes())
                self._frames_written += 1
            except (BrokenPipeError, OSError):
                logger.error("ffmpeg pipe broken during frame write")
                self._pipe_broken = True

    def stop(self) -> bytes:
        """
        Flush pending frames, finalize the container and return its bytes.

        Raises:
            RecorderError: If ffmpeg fails or produced no output
        """
        if self._proc is None:
            raise RecorderError("Recorder not started")

        self.source.remove_frame_callback(self._write_frame)
        with self._write_lock:
            proc = self._proc
            self._proc = None

        try:
            try:
                proc.stdin.close()
            except OSError:
                pass
            _, stderr = proc.communicate(timeout=self.FINALIZE_TIMEOUT)

            if proc.returncode != 0:
                raise RecorderError(
                    f"ffmpeg exited with code {proc.returncode}: "
                    f"{stderr.decode('utf-8', errors='replace')[-500:]}"
                )
            if self._frames_written == 0 or not self._output_path.exists():
                raise RecorderError("Recording produced no frames")

            data = self._output_path.read_bytes()
            logger.info(
                f"Recording finalized: {self._frames_written} frames, "
                f"{len(data) / (1024 * 1024):.1f}MB"
                + (f", {self._frames_dropped} dropped" if self._frames_dropped else "")
            )
            return data

        except subprocess.TimeoutExpired as e:
            proc.kill()
            proc.wait()
            raise RecorderError(f"ffmpeg timed out after {self.FINALIZE_TIMEOUT}s") from e
        finally:
            shutil.rmtree(self._workdir, ignore_errors=True)


def create_recorder_factory(source: VideoSource):
    """Return a zero-argument factory building a fresh recorder per session."""
    from camwatch.config import camera_config, recording_config

    def factory() -> FfmpegMediaRecorder:
        return FfmpegMediaRecorder(
            source,
            framerate=camera_config.framerate,
            container=recording_config.container,
        )

    return factory
