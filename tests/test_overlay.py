"""
Tests for overlay rendering and preview composition.
"""

import numpy as np
import pytest

from camwatch.camera.overlay import (
    OTHER_COLOR,
    TARGET_COLOR,
    OverlayRenderer,
    RenderSurface,
    compose_preview,
    encode_jpeg,
    encode_png,
)
from camwatch.inference.detection import BoundingBox, Detection

from conftest import FakeSource


@pytest.fixture
def surface():
    return RenderSurface(200, 200)


@pytest.fixture
def person():
    # Pixel box on a 200x200 surface: (20, 40) - (80, 120)
    return Detection(
        class_name="person",
        score=0.9,
        bbox=BoundingBox(x=0.1, y=0.2, width=0.3, height=0.4),
    )


def _pixel(surface: RenderSurface, x: int, y: int) -> tuple:
    return tuple(surface.to_array()[y, x])


class TestRenderSurface:
    def test_resize_idempotent(self):
        surface = RenderSurface()
        surface.resize(64, 48)
        image = surface.image
        surface.resize(64, 48)
        assert surface.image is image
        assert surface.image.size == (64, 48)

    def test_resize_changes_dimensions(self):
        surface = RenderSurface(10, 10)
        surface.resize(32, 16)
        assert (surface.width, surface.height) == (32, 16)
        assert surface.to_array().shape == (16, 32, 4)

    def test_starts_transparent(self, surface):
        assert surface.to_array()[..., 3].max() == 0


class TestOverlayRenderer:
    def test_color_rule(self, surface):
        renderer = OverlayRenderer(surface, target_class="person")
        assert renderer.color_for("person") == TARGET_COLOR
        assert renderer.color_for("dog") == OTHER_COLOR
        assert renderer.color_for("Person") == OTHER_COLOR

    def test_color_rule_follows_target_class(self, surface):
        renderer = OverlayRenderer(surface, target_class="dog")
        assert renderer.color_for("dog") == TARGET_COLOR
        assert renderer.color_for("person") == OTHER_COLOR

    def test_box_pixels_unmirrored(self, surface, person):
        renderer = OverlayRenderer(surface)
        assert renderer.box_pixels(person, mirrored=False) == (20, 40, 80, 120)

    def test_box_pixels_mirrored(self, surface, person):
        """Left edge lands at W - x - w."""
        renderer = OverlayRenderer(surface)
        assert renderer.box_pixels(person, mirrored=True) == (120, 40, 180, 120)

    def test_render_target_in_red(self, surface, person):
        renderer = OverlayRenderer(surface)
        renderer.render([person], mirrored=False)
        assert _pixel(surface, 20, 80) == (*TARGET_COLOR, 255)

    def test_render_other_in_green(self, surface):
        renderer = OverlayRenderer(surface)
        dog = Detection(
            class_name="dog",
            score=0.7,
            bbox=BoundingBox(x=0.1, y=0.2, width=0.3, height=0.4),
        )
        renderer.render([dog], mirrored=False)
        assert _pixel(surface, 20, 80) == (*OTHER_COLOR, 255)

    def test_render_mirrored_position(self, surface, person):
        renderer = OverlayRenderer(surface)
        renderer.render([person], mirrored=True)
        # Right edge of the mirrored box sits at x=180
        assert _pixel(surface, 180, 80) == (*TARGET_COLOR, 255)
        # Nothing at the unmirrored location
        assert _pixel(surface, 20, 80)[3] == 0

    def test_interior_stays_transparent(self, surface, person):
        renderer = OverlayRenderer(surface)
        renderer.render([person], mirrored=False)
        assert _pixel(surface, 50, 80)[3] == 0

    def test_render_clears_previous_tick(self, surface, person):
        """Boxes never accumulate across ticks."""
        renderer = OverlayRenderer(surface)
        renderer.render([person], mirrored=False)
        assert surface.to_array()[..., 3].max() == 255

        renderer.render([], mirrored=False)
        assert surface.to_array()[..., 3].max() == 0

    def test_render_replaces_with_new_detections(self, surface, person):
        renderer = OverlayRenderer(surface)
        renderer.render([person], mirrored=False)
        renderer.render([person], mirrored=True)
        assert _pixel(surface, 20, 80)[3] == 0
        assert _pixel(surface, 180, 80) == (*TARGET_COLOR, 255)

    def test_render_on_empty_surface(self, person):
        renderer = OverlayRenderer(RenderSurface())
        renderer.render([person], mirrored=False)  # Must not raise


class TestComposePreview:
    def test_unmirrored_keeps_orientation(self):
        source = FakeSource(width=64, height=48)
        surface = RenderSurface(64, 48)
        preview = compose_preview(source.frame, surface, mirrored=False)
        assert preview.shape == (48, 64, 3)
        assert tuple(preview[0, 0]) == (10, 20, 30)
        assert tuple(preview[0, 63]) == (200, 100, 50)

    def test_mirrored_flips_video(self):
        source = FakeSource(width=64, height=48)
        surface = RenderSurface(64, 48)
        preview = compose_preview(source.frame, surface, mirrored=True)
        assert tuple(preview[0, 0]) == (200, 100, 50)
        assert tuple(preview[0, 63]) == (10, 20, 30)

    def test_overlay_on_top(self, person):
        frame = np.zeros((200, 200, 3), dtype=np.uint8)
        surface = RenderSurface(200, 200)
        OverlayRenderer(surface).render([person], mirrored=False)
        preview = compose_preview(frame, surface, mirrored=False)
        assert tuple(preview[80, 20]) == TARGET_COLOR
        assert tuple(preview[80, 50]) == (0, 0, 0)


class TestEncoding:
    def test_encode_png(self):
        frame = np.zeros((8, 8, 3), dtype=np.uint8)
        assert encode_png(frame).startswith(b"\x89PNG")

    def test_encode_jpeg(self):
        frame = np.zeros((8, 8, 3), dtype=np.uint8)
        assert encode_jpeg(frame, 70).startswith(b"\xff\xd8")
