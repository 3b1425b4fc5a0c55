"""Tests for text layout and glow label drawing."""

from __future__ import annotations

import numpy as np
import pytest
from PIL import Image

from patternmap.fonts import FontLoader, get_fallback_font_path
from patternmap.styles import GlowStyle, TextStyle
from patternmap.text import Anchor, GlyphLayoutEngine, split_lines


BG = (40, 60, 80, 255)


@pytest.fixture
def engine() -> GlyphLayoutEngine:
    return GlyphLayoutEngine(FontLoader())


@pytest.fixture
def style() -> TextStyle:
    font = get_fallback_font_path()
    assert font is not None
    return TextStyle(font_path=str(font), size_px=24, fill=(255, 255, 255, 255), glow=None)


def blank_canvas(size: tuple[int, int] = (400, 200)) -> Image.Image:
    return Image.new("RGBA", size, BG)


def changed_mask(before: Image.Image, after: Image.Image) -> np.ndarray:
    return np.any(np.asarray(before) != np.asarray(after), axis=2)


class TestSplitLines:
    """Tests for split_lines."""

    def test_all_break_spellings(self) -> None:
        """CRLF, LF and the literal backslash-n all split."""
        assert split_lines("a\r\nb\nc\\nd") == ["a", "b", "c", "d"]

    def test_single_line(self) -> None:
        """Text without breaks is one line."""
        assert split_lines("Stormhill") == ["Stormhill"]


class TestAnchor:
    """Tests for Anchor parsing."""

    def test_parse(self) -> None:
        """Values are case-insensitive; unknown values are None."""
        assert Anchor.parse("Left") is Anchor.LEFT
        assert Anchor.parse(" right ") is Anchor.RIGHT
        assert Anchor.parse("center") is Anchor.CENTER
        assert Anchor.parse("middle") is None
        assert Anchor.parse(None) is None


class TestMeasurement:
    """Tests for measuring text."""

    def test_two_line_block_height(self, engine: GlyphLayoutEngine, style: TextStyle) -> None:
        """Block height is the sum of line heights plus one spacing."""
        first = engine.measure_line("Castle", style)
        second = engine.measure_line("Morne", style)
        block = engine.measure_block("Castle\nMorne", style)
        assert block.height == first.height + second.height + 4
        assert block.width == max(first.width, second.width)

    def test_custom_spacing(self, engine: GlyphLayoutEngine, style: TextStyle) -> None:
        """The gap between lines is configurable."""
        assert (
            engine.measure_block("a\nb", style, spacing=10).height
            == engine.measure_block("a\nb", style, spacing=0).height + 10
        )

    def test_wider_text_measures_wider(self, engine: GlyphLayoutEngine, style: TextStyle) -> None:
        """Width is the advance of the string."""
        assert engine.measure_line("WWWW", style).width > engine.measure_line("ii", style).width

    def test_anchored_center(self) -> None:
        """Left anchors shift right, right anchors shift left."""
        assert GlyphLayoutEngine.anchored_center(100, 40, Anchor.LEFT) == 120
        assert GlyphLayoutEngine.anchored_center(100, 40, Anchor.RIGHT) == 80
        assert GlyphLayoutEngine.anchored_center(100, 40, None) == 100


class TestDrawing:
    """Tests for drawing labels onto a canvas."""

    def test_blank_text_is_noop(self, engine: GlyphLayoutEngine, style: TextStyle) -> None:
        """Empty or whitespace text draws nothing."""
        canvas = blank_canvas()
        before = canvas.copy()
        assert engine.draw_multiline(canvas, "   ", style, 200, 100) is None
        assert engine.draw_text(canvas, "", style, 200, 100) is None
        assert not changed_mask(before, canvas).any()

    def test_two_line_block_centred(self, engine: GlyphLayoutEngine, style: TextStyle) -> None:
        """The block is centred on the anchor within a pixel."""
        canvas = blank_canvas()
        box = engine.draw_multiline(canvas, "Castle\nMorne", style, 200, 100)
        assert box is not None
        cx, cy = box.center
        assert abs(cx - 200) <= 1
        assert abs(cy - 100) <= 1

    def test_pixels_land_inside_box_without_glow(self, engine: GlyphLayoutEngine, style: TextStyle) -> None:
        """With no glow only the text rectangle changes."""
        canvas = blank_canvas()
        before = canvas.copy()
        box = engine.draw_text(canvas, "Stormhill", style, 200, 100)
        assert box is not None
        changed = changed_mask(before, canvas)
        assert changed.any()
        ys, xs = np.nonzero(changed)
        assert xs.min() >= box.left
        assert xs.max() < box.left + box.width
        assert ys.min() >= box.top
        assert ys.max() < box.top + box.height

    def test_zero_opacity_glow_leaves_surroundings(self, engine: GlyphLayoutEngine, style: TextStyle) -> None:
        """A halo at 0% opacity does not touch pixels outside the glyphs."""
        canvas = blank_canvas()
        before = canvas.copy()
        hidden = TextStyle(style.font_path, style.size_px, style.fill, GlowStyle(opacity_percent=0))
        box = engine.draw_text(canvas, "Stormhill", hidden, 200, 100)
        assert box is not None
        changed = changed_mask(before, canvas)
        changed[box.top : box.top + box.height, box.left : box.left + box.width] = False
        assert not changed.any()

    def test_visible_glow_reaches_outside_box(self, engine: GlyphLayoutEngine, style: TextStyle) -> None:
        """A visible halo darkens pixels around the text."""
        canvas = blank_canvas()
        before = canvas.copy()
        glowing = TextStyle(style.font_path, style.size_px, style.fill, GlowStyle(color=(255, 0, 0, 255)))
        box = engine.draw_text(canvas, "Stormhill", glowing, 200, 100)
        assert box is not None
        changed = changed_mask(before, canvas)
        changed[box.top : box.top + box.height, box.left : box.left + box.width] = False
        assert changed.any()

    def test_left_anchor_starts_at_anchor(self, engine: GlyphLayoutEngine, style: TextStyle) -> None:
        """With a left anchor the block's left edge sits on cx."""
        box = engine.draw_multiline(blank_canvas(), "Stormhill", style, 100, 100, anchor=Anchor.LEFT)
        assert box is not None
        assert box.left == 100

    def test_right_anchor_ends_at_anchor(self, engine: GlyphLayoutEngine, style: TextStyle) -> None:
        """With a right anchor the block's right edge sits on cx."""
        box = engine.draw_multiline(blank_canvas(), "Stormhill", style, 300, 100, anchor=Anchor.RIGHT)
        assert box is not None
        assert abs(box.left + box.width - 300) <= 1

    def test_text_near_edge_is_clipped(self, engine: GlyphLayoutEngine, style: TextStyle) -> None:
        """Labels partly off the canvas draw without error."""
        canvas = blank_canvas((100, 50))
        glowing = TextStyle(style.font_path, style.size_px, style.fill, GlowStyle())
        box = engine.draw_text(canvas, "Limveld", glowing, 0, 0)
        assert box is not None
        assert box.left < 0

    def test_stacked_blocks_centred_as_unit(self, engine: GlyphLayoutEngine, style: TextStyle) -> None:
        """Mixed-size blocks share one vertical centre."""
        small = TextStyle(style.font_path, 14, style.fill, None)
        box = engine.draw_stacked(blank_canvas(), [("Day 1", small), ("Gladius", style)], 200, 100)
        assert box is not None
        first = engine.measure_line("Day 1", small)
        second = engine.measure_line("Gladius", style)
        assert box.height == first.height + second.height + 4
        assert abs(box.center[1] - 100) <= 1

    def test_stacked_skips_blank_blocks(self, engine: GlyphLayoutEngine, style: TextStyle) -> None:
        """Blank blocks do not add spacing."""
        box = engine.draw_stacked(blank_canvas(), [("", style), ("Gladius", style)], 200, 100)
        assert box is not None
        assert box.height == engine.measure_line("Gladius", style).height
        assert engine.draw_stacked(blank_canvas(), [(" ", style)], 200, 100) is None

    def test_spans_laid_out_left_to_right(self, engine: GlyphLayoutEngine, style: TextStyle) -> None:
        """Runs are placed side by side and centred together."""
        bold = TextStyle(style.font_path, 30, (255, 0, 0, 255), None)
        spans = [("Extra Night ", style), ("BOSS", bold), (" - Adel", style)]
        box = engine.draw_spans(blank_canvas(), spans, 200, 100)
        assert box is not None
        assert box.width == sum(engine.measure_line(t, s).width for t, s in spans)
        assert abs(box.center[0] - 200) <= 1
