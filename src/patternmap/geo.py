"""World to pixel coordinate projection."""

from __future__ import annotations

import math

from .render_constants import WORLD_SPAN


__all__ = [
    "CANVAS_SIZE",
    "project",
    "project_exact",
    "round_half_away",
]

CANVAS_SIZE = int(WORLD_SPAN)


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero.

    ``2.5`` becomes 3 and ``-2.5`` becomes -3.
    """
    if value >= 0:
        return int(math.floor(value + 0.5))
    return -int(math.floor(-value + 0.5))


def project_exact(
    x: float,
    z: float,
    canvas_w: int = CANVAS_SIZE,
    canvas_h: int = CANVAS_SIZE,
) -> tuple[float, float]:
    """Project a world coordinate to unrounded canvas pixels.

    The world origin sits at the canvas centre; the z axis points up while
    pixel rows grow downwards.

    Args:
        x: World x coordinate.
        z: World z coordinate.
        canvas_w: Canvas width in pixels.
        canvas_h: Canvas height in pixels.

    Returns:
        A tuple of (px, py) as floats.
    """
    px = canvas_w / 2.0 + x * canvas_w / WORLD_SPAN
    py = canvas_h / 2.0 - z * canvas_h / WORLD_SPAN
    return px, py


def project(
    x: float,
    z: float,
    canvas_w: int = CANVAS_SIZE,
    canvas_h: int = CANVAS_SIZE,
) -> tuple[int, int]:
    """Project a world coordinate to integer canvas pixels.

    Args:
        x: World x coordinate.
        z: World z coordinate.
        canvas_w: Canvas width in pixels.
        canvas_h: Canvas height in pixels.

    Returns:
        A tuple of (px, py) rounded half away from zero.
    """
    px, py = project_exact(x, z, canvas_w, canvas_h)
    return round_half_away(px), round_half_away(py)
