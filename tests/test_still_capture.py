"""
Tests for still image capture.
"""

from camwatch.monitor.notices import NoticeLevel
from camwatch.recording.still import CAMERA_NOT_FOUND, StillCapture

from conftest import FakeSource


class TestStillCapture:
    def test_exports_png(self, source, sink, notices, clock):
        still = StillCapture(source, sink, notices, clock)

        artifact = still.capture_still()

        assert artifact is not None
        assert artifact.filename == "03-07-2024 14-05-09.png"
        assert artifact.data.startswith(b"\x89PNG")
        assert sink.exports == [(artifact.data, "03-07-2024 14-05-09", "image/png")]
        assert still.capture_count == 1

    def test_source_not_ready_posts_notice(self, sink, notices, clock):
        still = StillCapture(FakeSource(ready=False), sink, notices, clock)

        assert still.capture_still() is None
        assert sink.exports == []
        notice = notices.recent(1)[0]
        assert notice.message == CAMERA_NOT_FOUND
        assert notice.level is NoticeLevel.WARNING

    def test_frame_vanishes_between_checks(self, sink, notices, clock):
        source = FakeSource()
        source.is_ready = lambda: True
        source.ready = False  # get_frame raises

        still = StillCapture(source, sink, notices, clock)
        assert still.capture_still() is None
        assert notices.recent(1)[0].message == CAMERA_NOT_FOUND

    def test_independent_of_recording(self, source, sink, notices, clock, controller):
        """A still is exported even while a recording session is active."""
        import asyncio

        async def scenario():
            await controller.start_manual()
            artifact = StillCapture(source, sink, notices, clock).capture_still()
            recording = controller.is_recording
            await controller.shutdown()
            return artifact, recording

        artifact, recording = asyncio.run(scenario())
        assert artifact is not None
        assert recording is True
        assert [mime for _, _, mime in sink.exports] == ["image/png", "video/webm"]
