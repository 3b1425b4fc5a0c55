"""Unit tests for glow halo raster helpers."""

from __future__ import annotations

import numpy as np
from PIL import Image, ImageDraw

from patternmap.effects import (
    build_glow_layer,
    composite_clipped,
    dilate_alpha,
    glow_padding,
    level_alpha,
)
from patternmap.styles import GlowStyle


class TestGlowPadding:
    """Tests for glow_padding."""

    def test_formula(self) -> None:
        """ceil(6 * blur) + 2 * widen + max offset + 8."""
        assert glow_padding(GlowStyle(widen_radius=3, blur_radius=5.0)) == 30 + 6 + 8
        assert glow_padding(GlowStyle(widen_radius=0, blur_radius=1.1, offset_x=-4, offset_y=2)) == 7 + 0 + 4 + 8


class TestDilateAlpha:
    """Tests for dilate_alpha."""

    def test_single_pixel_grows_as_diamond(self) -> None:
        """Two iterations of a 3x3 cross produce a radius-2 diamond."""
        alpha = np.zeros((7, 7), dtype=np.uint8)
        alpha[3, 3] = 255
        grown = dilate_alpha(alpha, 2)
        expected = np.array(
            [[255 if abs(r - 3) + abs(c - 3) <= 2 else 0 for c in range(7)] for r in range(7)],
            dtype=np.uint8,
        )
        np.testing.assert_array_equal(grown, expected)

    def test_zero_iterations_is_identity(self) -> None:
        """No dilation leaves the mask untouched."""
        alpha = np.arange(16, dtype=np.uint8).reshape(4, 4)
        np.testing.assert_array_equal(dilate_alpha(alpha, 0), alpha)

    def test_input_not_modified(self) -> None:
        """The source array is never written to."""
        alpha = np.zeros((3, 3), dtype=np.uint8)
        alpha[1, 1] = 9
        dilate_alpha(alpha, 1)
        assert alpha.sum() == 9


class TestLevelAlpha:
    """Tests for level_alpha."""

    def test_faint_values_cleared(self) -> None:
        """Anything under 7% of full opacity becomes transparent."""
        alpha = np.array([0, 10, 17, 255], dtype=np.uint8)
        result = level_alpha(alpha)
        assert result[0] == 0
        assert result[1] == 0
        assert result[2] == 0
        assert result[3] == 255

    def test_monotonic(self) -> None:
        """Levelling preserves ordering."""
        alpha = np.arange(256, dtype=np.uint8)
        result = level_alpha(alpha)
        assert np.all(np.diff(result.astype(int)) >= 0)


class TestBuildGlowLayer:
    """Tests for build_glow_layer."""

    def make_mask(self) -> Image.Image:
        mask = Image.new("L", (60, 40), 0)
        ImageDraw.Draw(mask).rectangle((25, 15, 35, 25), fill=255)
        return mask

    def test_halo_spreads_beyond_glyphs(self) -> None:
        """Blur and dilation reach pixels the glyphs did not cover."""
        layer = build_glow_layer(self.make_mask(), GlowStyle(color=(0, 0, 255, 255), blur_radius=2.0))
        assert layer.mode == "RGBA"
        assert layer.size == (60, 40)
        assert layer.getpixel((22, 20))[3] > 0
        assert layer.getpixel((0, 0))[3] == 0
        assert layer.getpixel((30, 20))[:3] == (0, 0, 255)

    def test_opacity_scales_alpha(self) -> None:
        """Half opacity halves the halo alpha."""
        full = build_glow_layer(self.make_mask(), GlowStyle(blur_radius=0.0, widen_radius=0))
        half = build_glow_layer(
            self.make_mask(), GlowStyle(blur_radius=0.0, widen_radius=0, opacity_percent=50)
        )
        assert full.getpixel((30, 20))[3] == 255
        assert half.getpixel((30, 20))[3] in (127, 128)

    def test_zero_opacity_is_transparent(self) -> None:
        """Opacity 0 produces an empty layer."""
        layer = build_glow_layer(self.make_mask(), GlowStyle(opacity_percent=0))
        assert layer.getchannel("A").getbbox() is None


class TestCompositeClipped:
    """Tests for composite_clipped."""

    def test_negative_offset_is_clipped(self) -> None:
        """Layers hanging off the top-left edge are cropped, not shifted."""
        canvas = Image.new("RGBA", (10, 10), (0, 0, 0, 255))
        layer = Image.new("RGBA", (4, 4), (255, 0, 0, 255))
        assert composite_clipped(canvas, layer, -2, -2) is True
        assert canvas.getpixel((0, 0)) == (255, 0, 0, 255)
        assert canvas.getpixel((1, 1)) == (255, 0, 0, 255)
        assert canvas.getpixel((2, 2)) == (0, 0, 0, 255)

    def test_overflow_bottom_right(self) -> None:
        """Layers hanging off the bottom-right edge are cropped."""
        canvas = Image.new("RGBA", (10, 10), (0, 0, 0, 255))
        layer = Image.new("RGBA", (4, 4), (255, 0, 0, 255))
        assert composite_clipped(canvas, layer, 8, 8) is True
        assert canvas.getpixel((9, 9)) == (255, 0, 0, 255)
        assert canvas.getpixel((7, 7)) == (0, 0, 0, 255)

    def test_fully_outside(self) -> None:
        """Nothing is drawn when the layer misses the canvas."""
        canvas = Image.new("RGBA", (10, 10), (0, 0, 0, 255))
        layer = Image.new("RGBA", (4, 4), (255, 0, 0, 255))
        assert composite_clipped(canvas, layer, 20, 0) is False
        assert composite_clipped(canvas, layer, -4, 0) is False
