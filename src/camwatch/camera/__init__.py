"""
Camera module for CamWatch.

Provides:
- CameraSource: OpenCV capture thread exposing the latest RGB frame
- OverlayRenderer / RenderSurface: detection overlay drawing
- compose_preview: mirrored video + overlay composition for the operator
"""

from .overlay import (
    OverlayRenderer,
    RenderSurface,
    compose_preview,
    encode_jpeg,
    encode_png,
)
from .video_source import (
    CameraSource,
    SourceUnavailableError,
    VideoSource,
    create_camera_source,
)

__all__ = [
    "CameraSource",
    "SourceUnavailableError",
    "VideoSource",
    "create_camera_source",
    "OverlayRenderer",
    "RenderSurface",
    "compose_preview",
    "encode_jpeg",
    "encode_png",
]
