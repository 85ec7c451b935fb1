"""
Still image capture.

Independent of the recording state machine: grabs the current frame as
is, PNG-encodes it and exports it right away.
"""

import logging
from datetime import datetime
from typing import Callable

from camwatch.camera.overlay import encode_png
from camwatch.camera.video_source import SourceUnavailableError, VideoSource
from camwatch.monitor.notices import NoticeBoard, NoticeLevel

from .export import Artifact, ExportSink, format_export_stem

logger = logging.getLogger(__name__)

CAMERA_NOT_FOUND = "Camera not found. Please refresh"


class StillCapture:
    """Snapshot button."""

    def __init__(
        self,
        source: VideoSource,
        export_sink: ExportSink,
        notices: NoticeBoard | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._source = source
        self._sink = export_sink
        self._notices = notices or NoticeBoard()
        self._clock = clock
        self._capture_count = 0

    @property
    def capture_count(self) -> int:
        return self._capture_count

    def capture_still(self) -> Artifact | None:
        """
        Export the current frame as a PNG.

        Returns:
            The exported artifact, or None if the source has no frame
        """
        if not self._source.is_ready():
            self._notices.post(CAMERA_NOT_FOUND, NoticeLevel.WARNING)
            return None
        try:
            frame = self._source.get_frame()
        except SourceUnavailableError:
            self._notices.post(CAMERA_NOT_FOUND, NoticeLevel.WARNING)
            return None

        artifact = Artifact(
            data=encode_png(frame),
            suggested_filename=format_export_stem(self._clock()),
            mime_type="image/png",
        )
        self._sink.export(artifact.data, artifact.suggested_filename, artifact.mime_type)
        self._capture_count += 1
        logger.info(f"Still captured: {artifact.filename}")
        return artifact
