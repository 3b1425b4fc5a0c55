"""Text measurement and glow-haloed label compositing."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from PIL import Image, ImageDraw

from .effects import build_glow_layer, composite_clipped, glow_padding
from .fonts import FontLoader, FontType
from .render_constants import LINE_SPACING
from .styles import GlowStyle, TextStyle


__all__ = [
    "Anchor",
    "BlockMetrics",
    "GlyphLayoutEngine",
    "LineMetrics",
    "TextBox",
    "split_lines",
]

logger = logging.getLogger(__name__)

# CRLF, LF, and the two-character escape "\n" left in some JSON sources
_LINE_BREAK = re.compile(r"\r\n|\\n|\n")


class Anchor(str, Enum):
    """Horizontal alignment of a label relative to its anchor point."""

    CENTER = "center"
    LEFT = "left"
    RIGHT = "right"

    @classmethod
    def parse(cls, value: object) -> Anchor | None:
        """Parse a config value; None for missing or unknown values."""
        if isinstance(value, Anchor):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


def split_lines(text: str) -> list[str]:
    """Split ``text`` on normalised line breaks."""
    return _LINE_BREAK.split(text)


@dataclass(frozen=True)
class LineMetrics:
    """Measured advance width and vertical metrics of one line."""

    text: str
    width: int
    ascent: int
    descent: int

    @property
    def height(self) -> int:
        return self.ascent + self.descent


@dataclass(frozen=True)
class BlockMetrics:
    """Measured block of lines stacked with a fixed spacing."""

    lines: tuple[LineMetrics, ...]
    spacing: int

    @property
    def width(self) -> int:
        return max((line.width for line in self.lines), default=0)

    @property
    def height(self) -> int:
        if not self.lines:
            return 0
        return sum(line.height for line in self.lines) + self.spacing * (len(self.lines) - 1)


@dataclass(frozen=True)
class TextBox:
    """Canvas rectangle covered by a drawn label (excluding its halo)."""

    left: int
    top: int
    width: int
    height: int

    @property
    def center(self) -> tuple[float, float]:
        return self.left + self.width / 2.0, self.top + self.height / 2.0


@dataclass(frozen=True)
class _PlacedLine:
    metrics: LineMetrics
    style: TextStyle
    font: FontType
    left: int
    top: int


def _font_metrics(font: FontType) -> tuple[int, int]:
    getmetrics = getattr(font, "getmetrics", None)
    if getmetrics is not None:
        ascent, descent = getmetrics()
        return int(ascent), int(descent)
    _, _, _, bottom = font.getbbox("Ag")
    return int(bottom), 0


class GlyphLayoutEngine:
    """Measure and draw single-line, multi-line, stacked and span labels.

    Every label is rendered on an offscreen layer sized to its measured
    bounds and composited at ``center - size // 2``. Halos are rendered on a
    separate padded layer underneath the crisp text.
    """

    def __init__(self, fonts: FontLoader, line_spacing: int = LINE_SPACING) -> None:
        self.fonts = fonts
        self.line_spacing = line_spacing

    # -------------------------------------------------------------------------
    # Measurement
    # -------------------------------------------------------------------------

    def font_for(self, style: TextStyle) -> FontType:
        return self.fonts.load(style.font_path, style.size_px)

    def measure_line(self, text: str, style: TextStyle) -> LineMetrics:
        """Measure one line of text in ``style``."""
        font = self.font_for(style)
        ascent, descent = _font_metrics(font)
        width = math.ceil(font.getlength(text)) if text else 0
        return LineMetrics(text=text, width=width, ascent=ascent, descent=descent)

    def measure_block(self, text: str, style: TextStyle, spacing: int | None = None) -> BlockMetrics:
        """Measure every line of ``text`` independently.

        Args:
            text: Label text, possibly containing line breaks.
            style: Text style used for every line.
            spacing: Gap between lines; defaults to the engine's line spacing.

        Returns:
            The block metrics.
        """
        gap = self.line_spacing if spacing is None else spacing
        lines = tuple(self.measure_line(line, style) for line in split_lines(text))
        return BlockMetrics(lines=lines, spacing=gap)

    @staticmethod
    def anchored_center(cx: int, width: int, anchor: Anchor | None) -> int:
        """Shift ``cx`` so the text edge, not its middle, sits on the anchor."""
        if anchor is Anchor.LEFT:
            return cx + width // 2
        if anchor is Anchor.RIGHT:
            return cx - width // 2
        return cx

    # -------------------------------------------------------------------------
    # Drawing
    # -------------------------------------------------------------------------

    def draw_text(
        self,
        canvas: Image.Image,
        text: str,
        style: TextStyle,
        cx: int,
        cy: int,
    ) -> TextBox | None:
        """Draw a single line centred at ``(cx, cy)``.

        Returns:
            The covered rectangle, or None if ``text`` is blank.
        """
        if not text or not text.strip():
            return None
        metrics = self.measure_line(text, style)
        left = cx - metrics.width // 2
        top = cy - metrics.height // 2
        placed = [_PlacedLine(metrics, style, self.font_for(style), left, top)]
        self._composite(canvas, placed)
        return TextBox(left, top, metrics.width, metrics.height)

    def draw_multiline(
        self,
        canvas: Image.Image,
        text: str,
        style: TextStyle,
        cx: int,
        cy: int,
        anchor: Anchor | None = None,
        spacing: int | None = None,
    ) -> TextBox | None:
        """Draw a block of lines centred at ``(cx, cy)``.

        Each line is centred horizontally within the block; the block is
        centred vertically. With a left/right anchor the block edge sits on
        ``cx`` instead.

        Args:
            canvas: RGBA canvas, modified in place.
            text: Label text, possibly containing line breaks.
            style: Text style.
            cx: Anchor x in canvas pixels.
            cy: Vertical centre in canvas pixels.
            anchor: Optional horizontal anchor.
            spacing: Gap between lines.

        Returns:
            The covered rectangle, or None if ``text`` is blank.
        """
        if not text or not text.strip():
            return None
        block = self.measure_block(text, style, spacing)
        cx = self.anchored_center(cx, block.width, anchor)
        left = cx - block.width // 2
        top = cy - block.height // 2

        font = self.font_for(style)
        placed: list[_PlacedLine] = []
        y = top
        for line in block.lines:
            placed.append(_PlacedLine(line, style, font, left + (block.width - line.width) // 2, y))
            y += line.height + block.spacing
        self._composite(canvas, placed)
        return TextBox(left, top, block.width, block.height)

    def draw_stacked(
        self,
        canvas: Image.Image,
        blocks: Sequence[tuple[str, TextStyle]],
        cx: int,
        cy: int,
        anchor: Anchor | None = None,
        spacing: int | None = None,
    ) -> TextBox | None:
        """Stack differently styled blocks and centre the whole as one unit.

        Args:
            canvas: RGBA canvas, modified in place.
            blocks: ``(text, style)`` pairs from top to bottom.
            cx: Horizontal centre.
            cy: Vertical centre of the combined block.
            anchor: Optional horizontal anchor for the combined block.
            spacing: Gap between consecutive lines.

        Returns:
            The covered rectangle, or None if every block is blank.
        """
        gap = self.line_spacing if spacing is None else spacing
        lines: list[tuple[LineMetrics, TextStyle]] = []
        for text, style in blocks:
            if not text or not text.strip():
                continue
            lines.extend((self.measure_line(line, style), style) for line in split_lines(text))
        if not lines:
            return None

        width = max(metrics.width for metrics, _ in lines)
        height = sum(metrics.height for metrics, _ in lines) + gap * (len(lines) - 1)
        cx = self.anchored_center(cx, width, anchor)
        left = cx - width // 2
        top = cy - height // 2

        placed: list[_PlacedLine] = []
        y = top
        for metrics, style in lines:
            placed.append(
                _PlacedLine(metrics, style, self.font_for(style), cx - metrics.width // 2, y)
            )
            y += metrics.height + gap
        self._composite(canvas, placed)
        return TextBox(left, top, width, height)

    def draw_spans(
        self,
        canvas: Image.Image,
        spans: Sequence[tuple[str, TextStyle]],
        cx: int,
        cy: int,
    ) -> TextBox | None:
        """Lay out styled runs left to right, centred on ``(cx, cy)``.

        Each run is vertically centred on ``cy`` on its own.

        Returns:
            The covered rectangle, or None if every span is empty.
        """
        measured = [(self.measure_line(text, style), style) for text, style in spans if text]
        if not measured or not "".join(m.text for m, _ in measured).strip():
            return None

        total = sum(metrics.width for metrics, _ in measured)
        left = cx - total // 2
        placed: list[_PlacedLine] = []
        x = left
        for metrics, style in measured:
            placed.append(
                _PlacedLine(metrics, style, self.font_for(style), x, cy - metrics.height // 2)
            )
            x += metrics.width
        self._composite(canvas, placed)
        top = min(p.top for p in placed)
        bottom = max(p.top + p.metrics.height for p in placed)
        return TextBox(left, top, total, bottom - top)

    # -------------------------------------------------------------------------
    # Layers
    # -------------------------------------------------------------------------

    def _composite(self, canvas: Image.Image, placed: Sequence[_PlacedLine]) -> None:
        # Halos first, then crisp text on top of all of them.
        for line in placed:
            glow = line.style.glow
            if glow is not None and glow.is_visible and line.metrics.text.strip():
                self._draw_glow(canvas, line, glow)
        for line in placed:
            if line.metrics.text.strip():
                self._draw_crisp(canvas, line)

    def _draw_glow(self, canvas: Image.Image, line: _PlacedLine, glow: GlowStyle) -> None:
        pad = glow_padding(glow)
        metrics = line.metrics
        mask = Image.new("L", (metrics.width + pad * 2, metrics.height + pad * 2), 0)
        ImageDraw.Draw(mask).text(
            (pad + glow.offset_x, pad + metrics.ascent + glow.offset_y),
            metrics.text,
            font=line.font,
            fill=255,
            anchor="ls",
        )
        layer = build_glow_layer(mask, glow)
        composite_clipped(canvas, layer, line.left - pad, line.top - pad)

    def _draw_crisp(self, canvas: Image.Image, line: _PlacedLine) -> None:
        metrics = line.metrics
        layer = Image.new("RGBA", (max(1, metrics.width), max(1, metrics.height)), (0, 0, 0, 0))
        ImageDraw.Draw(layer).text(
            (0, metrics.ascent),
            metrics.text,
            font=line.font,
            fill=line.style.fill,
            anchor="ls",
        )
        composite_clipped(canvas, layer, line.left, line.top)
