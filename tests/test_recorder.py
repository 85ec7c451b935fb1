"""
Tests for the ffmpeg-backed media recorder (ffmpeg process mocked).
"""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from camwatch.recording import recorder as recorder_module
from camwatch.recording.recorder import FfmpegMediaRecorder, RecorderError

from conftest import FakeSource


class FakeProcess:
    """Stands in for the ffmpeg Popen object."""

    def __init__(self, cmd, returncode=0):
        self.cmd = cmd
        self.output_path = cmd[-1]
        self.stdin = MagicMock()
        self.returncode = returncode

    def communicate(self, timeout=None):
        with open(self.output_path, "wb") as f:
            f.write(b"encoded-webm")
        return b"", b""


@pytest.fixture
def ffmpeg():
    """Pretend ffmpeg is installed and capture spawned processes."""
    procs = []

    def popen(cmd, **kwargs):
        proc = FakeProcess(cmd)
        procs.append(proc)
        return proc

    with patch.object(recorder_module, "FFMPEG_AVAILABLE", True), patch.object(
        recorder_module.subprocess, "Popen", side_effect=popen
    ):
        yield procs


class TestFfmpegMediaRecorder:
    def test_unknown_container(self):
        with pytest.raises(ValueError):
            FfmpegMediaRecorder(FakeSource(), container="avi")

    def test_mime_types(self):
        assert FfmpegMediaRecorder(FakeSource()).mime_type == "video/webm"
        assert FfmpegMediaRecorder(FakeSource(), container="mp4").mime_type == "video/mp4"

    def test_start_without_ffmpeg(self):
        with patch.object(recorder_module, "FFMPEG_AVAILABLE", False):
            with pytest.raises(RecorderError):
                FfmpegMediaRecorder(FakeSource()).start()

    def test_start_without_frame_size(self, ffmpeg):
        source = FakeSource()
        source.frame = np.zeros((0, 0, 3), dtype=np.uint8)
        with pytest.raises(RecorderError):
            FfmpegMediaRecorder(source).start()
        assert ffmpeg == []

    def test_records_frames_and_returns_bytes(self, ffmpeg):
        source = FakeSource(width=65, height=49)
        recorder = FfmpegMediaRecorder(source, framerate=15)
        recorder.start()

        assert source.callbacks == [recorder._write_frame]
        cmd = ffmpeg[0].cmd
        # Odd dimensions are trimmed to even ones
        assert cmd[cmd.index("-s") + 1] == "64x48"
        assert cmd[cmd.index("-r") + 1] == "15"
        assert "libvpx" in cmd

        for _ in range(3):
            source.callbacks[0](source.frame, None)
        assert recorder.frames_written == 3
        written = ffmpeg[0].stdin.write.call_args[0][0]
        assert len(written) == 64 * 48 * 3

        data = recorder.stop()
        assert data == b"encoded-webm"
        assert source.callbacks == []
        assert not recorder.is_recording

    def test_stop_without_frames(self, ffmpeg):
        recorder = FfmpegMediaRecorder(FakeSource())
        recorder.start()
        with pytest.raises(RecorderError):
            recorder.stop()

    def test_ffmpeg_failure(self, ffmpeg):
        source = FakeSource()
        recorder = FfmpegMediaRecorder(source)
        recorder.start()
        source.callbacks[0](source.frame, None)
        ffmpeg[0].returncode = 1

        with pytest.raises(RecorderError):
            recorder.stop()

    def test_broken_pipe_stops_writing(self, ffmpeg):
        source = FakeSource()
        recorder = FfmpegMediaRecorder(source)
        recorder.start()
        ffmpeg[0].stdin.write.side_effect = BrokenPipeError()

        source.callbacks[0](source.frame, None)
        source.callbacks[0](source.frame, None)
        assert ffmpeg[0].stdin.write.call_count == 1
        assert recorder.frames_written == 0

    def test_stop_before_start(self):
        with pytest.raises(RecorderError):
            FfmpegMediaRecorder(FakeSource()).stop()
