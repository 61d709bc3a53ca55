"""
Unit tests for selection_ops module.

Tests the magic wand flood fill, the erase/restore brush, the tolerance
(magic) brush and the lasso/polygon cut.
"""

import numpy as np
import pytest
from PIL import Image

from OC_Libs.ImageEditingLib.image_models import BrushMode, ViewTransform
from OC_Libs.ImageEditingLib.pixel_buffer import PixelBuffer
from OC_Libs.ImageEditingLib.selection_ops import (
    apply_brush,
    apply_lasso,
    apply_polygon,
    apply_tolerance_brush,
    flood_fill,
    init_tolerance_brush,
    tolerance_to_threshold,
)


def alpha_of(buffer):
    return buffer.pixels[..., 3]


class TestToleranceToThreshold:
    """Tests for tolerance_to_threshold function."""

    def test_zero_tolerance(self):
        assert tolerance_to_threshold(0) == 0

    def test_full_tolerance_covers_color_cube(self):
        """100 should allow the full distance between black and white."""
        assert tolerance_to_threshold(100) == pytest.approx(255 * 255 * 3)

    def test_formula(self):
        assert tolerance_to_threshold(10) == pytest.approx((10 * 2.55) ** 2 * 3)

    def test_clamps_out_of_range(self):
        assert tolerance_to_threshold(150) == tolerance_to_threshold(100)
        assert tolerance_to_threshold(-5) == 0


class TestFloodFill:
    """Tests for flood_fill function."""

    def test_uniform_image_fully_erased(self, gray_buffer):
        """4x4 uniform gray, seed (0, 0), tolerance 10 -> all 16 pixels transparent."""
        changed = flood_fill(gray_buffer, (0, 0), 10)

        assert changed
        assert int(np.count_nonzero(alpha_of(gray_buffer) == 0)) == 16

    def test_keeps_rgb_channels(self, gray_buffer):
        flood_fill(gray_buffer, (0, 0), 10)

        assert gray_buffer.read(2, 2) == (100, 100, 100, 0)

    def test_second_fill_is_noop(self, gray_buffer):
        """Filling again at the same seed should do nothing: the seed is transparent."""
        flood_fill(gray_buffer, (1, 1), 10)
        after_first = gray_buffer.snapshot()

        changed = flood_fill(gray_buffer, (1, 1), 10)

        assert not changed
        np.testing.assert_array_equal(gray_buffer.pixels, after_first)

    def test_stops_at_dissimilar_color(self, split_image):
        """Filling the red half should leave the blue half opaque."""
        buffer = PixelBuffer(split_image)

        flood_fill(buffer, (0, 0), 20)

        alpha = alpha_of(buffer)
        assert np.all(alpha[:, :5] == 0)
        assert np.all(alpha[:, 5:] == 255)

    def test_does_not_wrap_across_rows(self):
        """A region touching the right edge must not leak into the next row's left edge."""
        pixels = np.zeros((3, 3, 4), dtype=np.uint8)
        pixels[...] = (0, 0, 0, 255)
        pixels[0, 2] = (255, 255, 255, 255)
        pixels[1, 0] = (255, 255, 255, 255)
        buffer = PixelBuffer(pixels)

        flood_fill(buffer, (2, 0), 5)

        assert buffer.read(2, 0)[3] == 0
        assert buffer.read(0, 1)[3] == 255

    def test_uses_four_connectivity(self):
        """Diagonal neighbours are not connected."""
        pixels = np.zeros((2, 2, 4), dtype=np.uint8)
        pixels[...] = (0, 0, 0, 255)
        pixels[0, 0] = (255, 255, 255, 255)
        pixels[1, 1] = (255, 255, 255, 255)
        buffer = PixelBuffer(pixels)

        flood_fill(buffer, (0, 0), 5)

        assert buffer.read(1, 1)[3] == 255

    def test_same_color_elsewhere_is_kept(self):
        """Only the component holding the seed is erased, not every matching pixel."""
        pixels = np.zeros((1, 5, 4), dtype=np.uint8)
        pixels[...] = (255, 0, 0, 255)
        pixels[0, 2] = (0, 0, 255, 255)
        buffer = PixelBuffer(pixels)

        flood_fill(buffer, (0, 0), 10)

        np.testing.assert_array_equal(alpha_of(buffer)[0], [0, 0, 255, 255, 255])

    def test_large_uniform_image(self):
        """A multi-megapixel region is erased in one pass."""
        buffer = PixelBuffer(np.full((2000, 2000, 4), (90, 120, 30, 255), dtype=np.uint8))

        assert flood_fill(buffer, (0, 0), 10)
        assert not alpha_of(buffer).any()

    def test_skips_transparent_neighbours(self):
        """An already transparent gap should block the fill."""
        pixels = np.zeros((1, 5, 4), dtype=np.uint8)
        pixels[...] = (50, 50, 50, 255)
        pixels[0, 2] = (50, 50, 50, 0)
        buffer = PixelBuffer(pixels)

        flood_fill(buffer, (0, 0), 10)

        assert buffer.read(1, 0)[3] == 0
        assert buffer.read(3, 0)[3] == 255
        assert buffer.read(4, 0)[3] == 255

    def test_tolerance_includes_close_colors(self):
        pixels = np.zeros((1, 3, 4), dtype=np.uint8)
        pixels[0, 0] = (100, 100, 100, 255)
        pixels[0, 1] = (110, 110, 110, 255)  # distance^2 = 300
        pixels[0, 2] = (160, 160, 160, 255)  # distance^2 = 10800 from reference
        buffer = PixelBuffer(pixels)

        flood_fill(buffer, (0, 0), 5)  # threshold ~ 487.7

        assert buffer.read(1, 0)[3] == 0
        assert buffer.read(2, 0)[3] == 255

    def test_out_of_bounds_seed_is_noop(self, gray_buffer):
        before = gray_buffer.snapshot()

        assert not flood_fill(gray_buffer, (4, 0), 50)
        assert not flood_fill(gray_buffer, (-1, 2), 50)
        assert not flood_fill(gray_buffer, (-0.5, 0), 50)
        np.testing.assert_array_equal(gray_buffer.pixels, before)

    def test_missing_buffer_raises(self):
        with pytest.raises(TypeError):
            flood_fill(None, (0, 0), 10)


class TestApplyBrush:
    """Tests for apply_brush function."""

    def test_erase_disc(self, gray_buffer):
        """Radius 1 at (1, 1) erases the cross of pixels within distance 1."""
        changed = apply_brush(gray_buffer, (1, 1), 1, BrushMode.ERASE)

        assert changed
        erased = {(x, y) for y in range(4) for x in range(4) if gray_buffer.read(x, y)[3] == 0}
        assert erased == {(1, 0), (0, 1), (1, 1), (2, 1), (1, 2)}
        assert gray_buffer.read(3, 3) == (100, 100, 100, 255)

    def test_erase_leaves_outside_untouched(self):
        buffer = PixelBuffer(Image.new("RGBA", (20, 20), (10, 20, 30, 255)))

        apply_brush(buffer, (10, 10), 4, BrushMode.ERASE)

        for y in range(20):
            for x in range(20):
                dist_sq = (x - 10) ** 2 + (y - 10) ** 2
                alpha = buffer.read(x, y)[3]
                if dist_sq <= 16:
                    assert alpha == 0
                else:
                    assert alpha == 255

    def test_brush_partly_outside_image(self, gray_buffer):
        """A brush centered just off the edge still erases the overlap."""
        changed = apply_brush(gray_buffer, (-1, 0), 1.5, BrushMode.ERASE)

        assert changed
        assert gray_buffer.read(0, 0)[3] == 0
        assert gray_buffer.read(1, 0)[3] == 255

    def test_brush_far_outside_is_noop(self, gray_buffer):
        before = gray_buffer.snapshot()

        assert not apply_brush(gray_buffer, (50, 50), 3, BrushMode.ERASE)
        np.testing.assert_array_equal(gray_buffer.pixels, before)

    def test_zero_radius_is_noop(self, gray_buffer):
        assert not apply_brush(gray_buffer, (1, 1), 0, BrushMode.ERASE)

    def test_restore_copies_backing(self, gray_buffer):
        """Restore should bring back erased pixels from the original image."""
        flood_fill(gray_buffer, (0, 0), 10)

        apply_brush(gray_buffer, (2, 2), 1, BrushMode.RESTORE)

        assert gray_buffer.read(2, 2) == (100, 100, 100, 255)
        assert gray_buffer.read(2, 1) == (100, 100, 100, 255)
        assert gray_buffer.read(0, 0)[3] == 0

    def test_restore_overwrites_all_channels(self):
        buffer = PixelBuffer(Image.new("RGBA", (3, 3), (1, 2, 3, 255)))
        buffer.pixels[1, 1] = (9, 9, 9, 9)

        apply_brush(buffer, (1, 1), 0.5, BrushMode.RESTORE)

        assert buffer.read(1, 1) == (1, 2, 3, 255)

    def test_rejects_unknown_mode(self, gray_buffer):
        with pytest.raises(ValueError):
            apply_brush(gray_buffer, (1, 1), 1, "erase")


class TestToleranceBrush:
    """Tests for init_tolerance_brush and apply_tolerance_brush."""

    def test_init_captures_reference(self, split_image):
        buffer = PixelBuffer(split_image)

        assert init_tolerance_brush(buffer, (1, 1)) == (255, 0, 0, 255)

    def test_init_out_of_bounds(self, split_image):
        buffer = PixelBuffer(split_image)

        assert init_tolerance_brush(buffer, (-1, 1)) is None
        assert init_tolerance_brush(buffer, (-0.5, 1)) is None

    def test_erases_only_matching_pixels(self, split_image):
        """A brush over the red/blue boundary erases red and keeps blue."""
        buffer = PixelBuffer(split_image)
        reference = init_tolerance_brush(buffer, (0, 0))

        changed = apply_tolerance_brush(buffer, (5, 5), 3, 20, reference)

        assert changed
        assert buffer.read(4, 5)[3] == 0
        assert buffer.read(3, 5)[3] == 0
        assert buffer.read(5, 5)[3] == 255
        assert buffer.read(6, 5)[3] == 255
        # outside the brush circle
        assert buffer.read(0, 0)[3] == 255

    def test_no_reference_is_noop(self, split_image):
        buffer = PixelBuffer(split_image)

        assert not apply_tolerance_brush(buffer, (5, 5), 3, 20, None)

    def test_no_matching_pixels_returns_false(self, split_image):
        buffer = PixelBuffer(split_image)

        assert not apply_tolerance_brush(buffer, (8, 5), 1, 10, (255, 0, 0, 255))


class TestPolygonAndLasso:
    """Tests for apply_polygon and apply_lasso."""

    def test_square_polygon(self):
        buffer = PixelBuffer(Image.new("RGBA", (10, 10), (10, 10, 10, 255)))

        changed = apply_polygon(buffer, [(2, 2), (7, 2), (7, 7), (2, 7)])

        assert changed
        alpha = alpha_of(buffer)
        assert np.all(alpha[3:7, 3:7] == 0)
        assert np.all(alpha[:, :2] == 255)
        assert np.all(alpha[:, 8:] == 255)
        assert np.all(alpha[:2, :] == 255)
        assert np.all(alpha[8:, :] == 255)

    def test_lasso_square_in_screen_space(self, identity_view):
        """With an identity view, a screen-space square cuts the same image square."""
        view_size, transform = identity_view
        buffer = PixelBuffer(Image.new("RGBA", (10, 10), (10, 10, 10, 255)))

        changed = apply_lasso(buffer, [(2, 2), (7, 2), (7, 7), (2, 7), (2, 2)], transform, view_size)

        assert changed
        alpha = alpha_of(buffer)
        assert np.all(alpha[3:7, 3:7] == 0)
        assert alpha[0, 0] == 255
        assert alpha[9, 9] == 255

    def test_lasso_maps_through_zoom(self):
        """At 2x zoom the screen square covers half as many image pixels."""
        buffer = PixelBuffer(Image.new("RGBA", (10, 10), (10, 10, 10, 255)))
        transform = ViewTransform(scale=2.0)
        # view 20x20: screen (10, 10) is the image center (5, 5)
        points = [(10, 10), (16, 10), (16, 16), (10, 16)]

        apply_lasso(buffer, points, transform, (20, 20))

        alpha = alpha_of(buffer)
        assert alpha[6, 6] == 0
        assert alpha[2, 2] == 255

    def test_empty_lasso_is_noop(self, identity_view):
        view_size, transform = identity_view
        buffer = PixelBuffer(Image.new("RGBA", (10, 10), (10, 10, 10, 255)))

        assert not apply_lasso(buffer, [], transform, view_size)

    def test_degenerate_path_is_noop(self):
        buffer = PixelBuffer(Image.new("RGBA", (10, 10), (10, 10, 10, 255)))

        assert not apply_polygon(buffer, [(1, 1), (5, 5)])
        assert np.all(alpha_of(buffer) == 255)

    def test_self_intersecting_path(self):
        """A bow-tie path should cut without raising."""
        buffer = PixelBuffer(Image.new("RGBA", (20, 20), (10, 10, 10, 255)))

        changed = apply_polygon(buffer, [(2, 2), (17, 17), (17, 2), (2, 17)])

        assert changed
        alpha = alpha_of(buffer)
        # left and right lobes of the bow tie
        assert alpha[10, 4] == 0
        assert alpha[10, 15] == 0
        assert alpha[0, 0] == 255

    def test_polygon_outside_image(self):
        buffer = PixelBuffer(Image.new("RGBA", (10, 10), (10, 10, 10, 255)))

        assert not apply_polygon(buffer, [(50, 50), (60, 50), (60, 60)])
