"""
Detection Overlay Rendering

Paints detection boxes and labels onto a transparent render surface that
sits on top of the live preview. Boxes of the target class are drawn in
the highlight color, everything else in the secondary color.

Uses PIL ImageDraw for drawing.
"""

import logging
from io import BytesIO

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from camwatch.inference.detection import Detection

logger = logging.getLogger(__name__)

# Cached font instance
_cached_font: ImageFont.FreeTypeFont | ImageFont.ImageFont | None = None

TARGET_COLOR = (255, 0, 0)  # Red
OTHER_COLOR = (0, 255, 0)  # Green
TRANSPARENT = (0, 0, 0, 0)
LINE_WIDTH = 3


def _get_font(size: int = 16) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Get font for label rendering, with caching and fallback."""
    global _cached_font
    if _cached_font is not None:
        return _cached_font

    try:
        _cached_font = ImageFont.truetype(
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf", size
        )
    except OSError:
        logger.debug("DejaVuSans-Bold not found, using PIL default font")
        _cached_font = ImageFont.load_default()

    return _cached_font


class RenderSurface:
    """Transparent RGBA drawing surface sized to the source frame."""

    def __init__(self, width: int = 0, height: int = 0):
        self._image = Image.new("RGBA", (max(width, 1), max(height, 1)), TRANSPARENT)
        self.width = width
        self.height = height

    @property
    def image(self) -> Image.Image:
        return self._image

    def resize(self, width: int, height: int) -> None:
        """Match the surface to the frame dimensions. Idempotent."""
        if (width, height) == (self.width, self.height):
            return
        self.width = width
        self.height = height
        self._image = Image.new("RGBA", (max(width, 1), max(height, 1)), TRANSPARENT)
        logger.debug(f"Render surface resized to {width}x{height}")

    def clear(self) -> None:
        """Erase everything drawn so far."""
        self._image.paste(TRANSPARENT, (0, 0, self._image.width, self._image.height))

    def to_array(self) -> np.ndarray:
        """RGBA pixels as a numpy array (H, W, 4)."""
        return np.array(self._image)


class OverlayRenderer:
    """
    Draws one tick's detections onto a render surface.

    Every call repaints the whole surface; nothing carries over between
    ticks.
    """

    def __init__(self, surface: RenderSurface, target_class: str = "person"):
        self.surface = surface
        self.target_class = target_class

    def color_for(self, class_name: str) -> tuple[int, int, int]:
        """Two-bucket color rule: target class vs everything else."""
        return TARGET_COLOR if class_name == self.target_class else OTHER_COLOR

    def box_pixels(self, detection: Detection, mirrored: bool) -> tuple[int, int, int, int]:
        """
        Pixel rectangle (x1, y1, x2, y2) for a detection on the current surface.

        Args:
            detection: Detection with a normalized bbox
            mirrored: Reflect about the surface's vertical center
        """
        bbox = detection.bbox.mirrored() if mirrored else detection.bbox
        pixel_box = bbox.to_pixels(self.surface.width, self.surface.height)
        x1, y1 = int(round(pixel_box.x)), int(round(pixel_box.y))
        x2, y2 = int(round(pixel_box.right)), int(round(pixel_box.bottom))
        return x1, y1, x2, y2

    def render(self, detections: list[Detection], mirrored: bool) -> None:
        """
        Repaint the surface with the given detections.

        Args:
            detections: Detections for the current tick
            mirrored: Whether the video underneath is horizontally mirrored
        """
        self.surface.clear()
        if not detections or self.surface.width == 0 or self.surface.height == 0:
            return

        draw = ImageDraw.Draw(self.surface.image)
        font = _get_font()

        for det in detections:
            x1, y1, x2, y2 = self.box_pixels(det, mirrored)
            color = self.color_for(det.class_name)

            draw.rectangle([x1, y1, x2, y2], outline=color, width=LINE_WIDTH)

            label = f"{det.class_name} {det.score:.0%}"
            # Place label above box, or below top edge if near surface top
            label_y = y1 - 20 if y1 >= 20 else y1 + LINE_WIDTH + 2
            label_bbox = draw.textbbox((x1, label_y), label, font=font)
            draw.rectangle(label_bbox, fill=color)
            draw.text((x1, label_y), label, fill=(0, 0, 0), font=font)


def compose_preview(frame: np.ndarray, surface: RenderSurface, mirrored: bool) -> np.ndarray:
    """
    Build the operator preview: the video (mirrored when requested) with
    the overlay composited on top.

    Args:
        frame: RGB numpy array (H, W, 3)
        surface: Overlay rendered for the same tick
        mirrored: Same flag the overlay was rendered with

    Returns:
        Composited RGB numpy array
    """
    video = frame[:, ::-1] if mirrored else frame
    base = Image.fromarray(np.ascontiguousarray(video)).convert("RGBA")

    overlay = surface.image
    if overlay.size != base.size:
        overlay = overlay.resize(base.size)

    return np.array(Image.alpha_composite(base, overlay).convert("RGB"))


def encode_jpeg(frame: np.ndarray, quality: int = 85) -> bytes:
    """Encode an RGB frame as JPEG bytes."""
    img = Image.fromarray(frame)
    buf = BytesIO()
    img.save(buf, "JPEG", quality=quality)
    return buf.getvalue()


def encode_png(frame: np.ndarray) -> bytes:
    """Encode an RGB frame as PNG bytes."""
    img = Image.fromarray(frame)
    buf = BytesIO()
    img.save(buf, "PNG")
    return buf.getvalue()
