"""Shared render constants."""

from __future__ import annotations


__all__ = [
    "ALPHA_FLOOR_PERCENT",
    "BANNER_BOTTOM_MARGIN",
    "DAY_PREFIX_STYLE",
    "DEFAULT_EPSILON_PX",
    "DEFAULT_EPSILON_WORLD",
    "DEFAULT_FILL",
    "DEFAULT_FONT_SIZE",
    "DEFAULT_LANG",
    "DEFAULT_STYLE",
    "GLOW_BLUR_RADIUS",
    "GLOW_GUARD_PX",
    "GLOW_WIDEN_RADIUS",
    "LINE_SPACING",
    "SHIFTING_EARTH_EPSILON_WORLD",
    "SPECIAL_ICON_BOX",
    "SPECIAL_ICON_MARGIN_ONLY",
    "SPECIAL_ICON_MARGIN_WITH_BANNER",
    "WORLD_SPAN",
]

# World units covered by the full canvas width/height
WORLD_SPAN = 1536.0

# Typography defaults
DEFAULT_FONT_SIZE = 24
DEFAULT_FILL = (255, 255, 255, 255)
LINE_SPACING = 4
DEFAULT_STYLE = "poiStandard"
DAY_PREFIX_STYLE = "poiNightBossDayPrefix"

# Glow halo
GLOW_WIDEN_RADIUS = 3
GLOW_BLUR_RADIUS = 5.0
GLOW_GUARD_PX = 8
ALPHA_FLOOR_PERCENT = 7.0  # residual blur fringe below this is cleared

# Coordinate override tolerances
DEFAULT_EPSILON_WORLD = 0.25
SHIFTING_EARTH_EPSILON_WORLD = 1.0
DEFAULT_EPSILON_PX = 0.0

# Localisation
DEFAULT_LANG = "en"

# Bottom-of-canvas furniture
BANNER_BOTTOM_MARGIN = 24
SPECIAL_ICON_BOX = (172, 70)
SPECIAL_ICON_MARGIN_ONLY = 28
SPECIAL_ICON_MARGIN_WITH_BANNER = 36
