"""Raster helpers for glow halos and clipped compositing."""

from __future__ import annotations

import math

import numpy as np
from PIL import Image, ImageFilter

from .render_constants import ALPHA_FLOOR_PERCENT, GLOW_GUARD_PX
from .styles import GlowStyle


__all__ = [
    "build_glow_layer",
    "composite_clipped",
    "dilate_alpha",
    "glow_padding",
    "level_alpha",
]


def glow_padding(glow: GlowStyle) -> int:
    """Transparent margin needed around text so the halo never clips.

    Gaussian energy is negligible beyond six sigma; dilation grows the
    shape one pixel per iteration on each side.
    """
    offset = max(abs(glow.offset_x), abs(glow.offset_y))
    return math.ceil(glow.blur_radius * 6) + glow.widen_radius * 2 + offset + GLOW_GUARD_PX


def dilate_alpha(alpha: np.ndarray, iterations: int) -> np.ndarray:
    """Grow an alpha mask with a 3x3 diamond kernel ``iterations`` times."""
    result = alpha
    for _ in range(max(0, iterations)):
        grown = result.copy()
        np.maximum(grown[1:, :], result[:-1, :], out=grown[1:, :])
        np.maximum(grown[:-1, :], result[1:, :], out=grown[:-1, :])
        np.maximum(grown[:, 1:], result[:, :-1], out=grown[:, 1:])
        np.maximum(grown[:, :-1], result[:, 1:], out=grown[:, :-1])
        result = grown
    return result


def level_alpha(alpha: np.ndarray, floor_percent: float = ALPHA_FLOOR_PERCENT) -> np.ndarray:
    """Stretch ``[floor, 255]`` to ``[0, 255]`` so faint fringes vanish.

    Args:
        alpha: Alpha channel as a uint8 array.
        floor_percent: Values below this share of full opacity become 0.

    Returns:
        A new uint8 array.
    """
    floor = 255.0 * floor_percent / 100.0
    if floor <= 0:
        return alpha.copy()
    scaled = (alpha.astype(np.float32) - floor) * (255.0 / (255.0 - floor))
    return np.clip(np.rint(scaled), 0, 255).astype(np.uint8)


def build_glow_layer(mask: Image.Image, glow: GlowStyle) -> Image.Image:
    """Turn a glyph coverage mask into a coloured, blurred halo layer.

    ``mask`` must already be padded by :func:`glow_padding` with the glyphs
    drawn at their glow offset; the returned RGBA layer has the same size.

    Args:
        mask: Glyph coverage as an ``L`` mode image.
        glow: Halo settings.

    Returns:
        The RGBA halo layer.
    """
    alpha = np.asarray(mask.convert("L"), dtype=np.uint8)
    alpha = dilate_alpha(alpha, glow.widen_radius)

    blurred = Image.fromarray(alpha)
    if glow.blur_radius > 0:
        blurred = blurred.filter(ImageFilter.GaussianBlur(radius=glow.blur_radius))
    alpha = level_alpha(np.asarray(blurred, dtype=np.uint8))

    strength = (glow.opacity_percent / 100.0) * (glow.color[3] / 255.0)
    strength = min(max(strength, 0.0), 1.0)
    alpha = np.clip(np.rint(alpha.astype(np.float32) * strength), 0, 255).astype(np.uint8)

    layer = Image.new("RGBA", mask.size, (*glow.color[:3], 0))
    layer.putalpha(Image.fromarray(alpha))
    return layer


def composite_clipped(canvas: Image.Image, layer: Image.Image, left: int, top: int) -> bool:
    """Alpha-composite ``layer`` onto ``canvas`` at ``(left, top)`` in place.

    Parts of the layer outside the canvas are clipped, including negative
    offsets.

    Returns:
        True if any part of the layer landed on the canvas.
    """
    x0 = max(left, 0)
    y0 = max(top, 0)
    x1 = min(left + layer.width, canvas.width)
    y1 = min(top + layer.height, canvas.height)
    if x1 <= x0 or y1 <= y0:
        return False
    if layer.mode != "RGBA":
        layer = layer.convert("RGBA")
    canvas.alpha_composite(layer, dest=(x0, y0), source=(x0 - left, y0 - top, x1 - left, y1 - top))
    return True
