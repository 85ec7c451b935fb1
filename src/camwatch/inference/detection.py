"""
Detection data structures for object detection results.
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class BoundingBox:
    """Bounding box coordinates, normalized 0-1 relative to the frame."""

    x: float  # Left edge
    y: float  # Top edge
    width: float
    height: float

    @property
    def center_x(self) -> float:
        """Get center X coordinate."""
        return self.x + self.width / 2

    @property
    def center_y(self) -> float:
        """Get center Y coordinate."""
        return self.y + self.height / 2

    @property
    def right(self) -> float:
        """Get right edge X coordinate."""
        return self.x + self.width

    @property
    def bottom(self) -> float:
        """Get bottom edge Y coordinate."""
        return self.y + self.height

    def mirrored(self) -> "BoundingBox":
        """
        Reflect the box about the vertical center line of the frame.

        Returns:
            New BoundingBox whose left edge sits where the right edge was
        """
        return BoundingBox(
            x=1.0 - self.x - self.width,
            y=self.y,
            width=self.width,
            height=self.height,
        )

    def to_pixels(self, width: int, height: int) -> "BoundingBox":
        """
        Convert normalized coordinates to pixel coordinates.

        Args:
            width: Surface width in pixels
            height: Surface height in pixels

        Returns:
            New BoundingBox with pixel coordinates
        """
        return BoundingBox(
            x=self.x * width,
            y=self.y * height,
            width=self.width * width,
            height=self.height * height,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class Detection:
    """Single classified, localized object returned by a detector."""

    class_name: str
    score: float
    bbox: BoundingBox

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "class": self.class_name,
            "score": self.score,
            "bbox": self.bbox.to_dict(),
        }

    def __str__(self) -> str:
        return (
            f"{self.class_name} ({self.score:.2f}) "
            f"at ({self.bbox.center_x:.2f}, {self.bbox.center_y:.2f})"
        )


@dataclass(frozen=True)
class FrameTick:
    """Marker for one polling cycle of the sampler."""

    sequence: int
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class DetectionFrame:
    """Collection of detections produced for a single tick."""

    tick: FrameTick
    detections: list[Detection]
    frame_size: tuple[int, int] = (0, 0)  # (width, height)
    inference_time_ms: float = 0.0

    def contains_class(self, class_name: str) -> bool:
        """Check whether any detection carries the given label."""
        return any(d.class_name == class_name for d in self.detections)

    def get_by_class(self, class_name: str) -> list[Detection]:
        """Get all detections of a specific class."""
        return [d for d in self.detections if d.class_name == class_name]

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "sequence": self.tick.sequence,
            "timestamp": self.tick.timestamp.isoformat(),
            "frame_size": list(self.frame_size),
            "inference_time_ms": self.inference_time_ms,
            "detections": [d.to_dict() for d in self.detections],
        }
