"""Text and glow style resolution from the ``Text`` config section."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from .config import as_float, as_int, as_mapping, as_str, lookup
from .render_constants import (
    DEFAULT_FILL,
    DEFAULT_FONT_SIZE,
    DEFAULT_STYLE,
    GLOW_BLUR_RADIUS,
    GLOW_WIDEN_RADIUS,
)


__all__ = [
    "RGBA",
    "GlowStyle",
    "StyleResolver",
    "TextStyle",
    "get_available_styles",
    "parse_hex_color",
]

logger = logging.getLogger(__name__)

RGBA = tuple[int, int, int, int]


def parse_hex_color(value: str | None, default: RGBA = DEFAULT_FILL) -> RGBA:
    """Parse ``#RRGGBB`` or ``#RRGGBBAA`` into an RGBA tuple.

    Eight-digit values are always read as RRGGBBAA. Anything else yields
    ``default``.
    """
    if not value or not value.strip():
        return default
    digits = value.strip().removeprefix("#")
    if len(digits) not in (6, 8):
        logger.debug("Unsupported colour %r, using default", value)
        return default
    try:
        channels = [int(digits[i : i + 2], 16) for i in range(0, len(digits), 2)]
    except ValueError:
        logger.debug("Invalid colour %r, using default", value)
        return default
    if len(channels) == 3:
        channels.append(255)
    return channels[0], channels[1], channels[2], channels[3]


@dataclass(frozen=True)
class GlowStyle:
    """Soft halo drawn behind text."""

    color: RGBA = (0, 0, 0, 255)
    opacity_percent: float = 100.0
    widen_radius: int = GLOW_WIDEN_RADIUS
    blur_radius: float = GLOW_BLUR_RADIUS
    offset_x: int = 0
    offset_y: int = 0

    @property
    def is_visible(self) -> bool:
        return self.opacity_percent > 0 and self.color[3] > 0

    @classmethod
    def from_mapping(cls, value: Any) -> GlowStyle | None:
        """Parse a ``Glow`` object; None if ``value`` is not an object."""
        if not isinstance(value, Mapping):
            return None
        defaults = cls()
        return cls(
            color=parse_hex_color(as_str(lookup(value, "Color")), defaults.color),
            opacity_percent=as_float(lookup(value, "OpacityPercent"), defaults.opacity_percent)
            or 0.0,
            widen_radius=max(0, as_int(lookup(value, "WideningRadius"), defaults.widen_radius) or 0),
            blur_radius=max(0.0, as_float(lookup(value, "BlurRadius"), defaults.blur_radius) or 0.0),
            offset_x=as_int(lookup(value, "OffsetX"), 0) or 0,
            offset_y=as_int(lookup(value, "OffsetY"), 0) or 0,
        )


@dataclass(frozen=True)
class TextStyle:
    """Resolved font, size, fill and optional glow for a label."""

    font_path: str | None = None
    size_px: int = DEFAULT_FONT_SIZE
    fill: RGBA = DEFAULT_FILL
    glow: GlowStyle | None = None

    def merged(self, value: Mapping[str, Any]) -> TextStyle:
        """Return a copy with the fields present in ``value`` applied."""
        font_path = as_str(lookup(value, "FontPath"))
        size_px = as_int(lookup(value, "FontSizePx"))
        fill = as_str(lookup(value, "Fill"))
        glow = GlowStyle.from_mapping(lookup(value, "Glow"))
        return replace(
            self,
            font_path=font_path or self.font_path,
            size_px=size_px if size_px and size_px > 0 else self.size_px,
            fill=parse_hex_color(fill) if fill else self.fill,
            glow=glow or self.glow,
        )


class StyleResolver:
    """Resolve named text styles against the ``Text`` config section.

    Resolution starts from the ``Text`` level defaults, then merges the first
    of ``name``, the fallbacks and ``poiStandard`` that exists in
    ``Text.Styles``.
    """

    def __init__(self, tree: Mapping[str, Any]) -> None:
        self._text = as_mapping(lookup(tree, "Text"))
        self._styles = as_mapping(lookup(self._text, "Styles"))
        self._label_styles = as_mapping(lookup(tree, "LabelStyles"))
        self._base = TextStyle().merged(self._text)
        self._resolved: dict[tuple[str, ...], TextStyle] = {}

    @property
    def base(self) -> TextStyle:
        """The ``Text`` level defaults with no named style applied."""
        return self._base

    def has_style(self, name: str) -> bool:
        return isinstance(lookup(self._styles, name), Mapping)

    def resolve(self, name: str | None, *fallbacks: str | None) -> TextStyle:
        """Resolve a style by name.

        Args:
            name: The requested style name.
            *fallbacks: Names tried in order when ``name`` is not defined.

        Returns:
            The merged TextStyle.
        """
        chain = tuple(n for n in (name, *fallbacks, DEFAULT_STYLE) if n)
        cached = self._resolved.get(chain)
        if cached is not None:
            return cached

        style = self._base
        for candidate in chain:
            entry = lookup(self._styles, candidate)
            if isinstance(entry, Mapping):
                style = style.merged(entry)
                break
        else:
            logger.debug("No text style found for %s, using Text defaults", chain)

        self._resolved[chain] = style
        return style

    def style_name_for(self, group: str, subtype: str) -> str | None:
        """Return the ``LabelStyles[group][subtype]`` style name, if any."""
        return as_str(lookup(as_mapping(lookup(self._label_styles, group)), subtype))


def get_available_styles(tree: Mapping[str, Any]) -> list[str]:
    """Return the sorted names defined under ``Text.Styles``."""
    styles = as_mapping(lookup(as_mapping(lookup(tree, "Text")), "Styles"))
    return sorted(str(name) for name, value in styles.items() if isinstance(value, Mapping))
