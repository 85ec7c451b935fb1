"""
Inference module for CamWatch.

Provides:
- Detection: Detection result data structures
- Detector: Protocol implemented by the detector backends
- SsdMobileNetDetector / MockDetector: concrete backends
"""

from .detection import BoundingBox, Detection, DetectionFrame, FrameTick
from .detector import (
    Detector,
    DetectorError,
    MockDetector,
    SsdMobileNetDetector,
    create_detector,
)

__all__ = [
    "BoundingBox",
    "Detection",
    "DetectionFrame",
    "FrameTick",
    "Detector",
    "DetectorError",
    "MockDetector",
    "SsdMobileNetDetector",
    "create_detector",
]
