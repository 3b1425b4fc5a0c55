"""Label placement: default offsets, per-coordinate overrides and reanchors.

Overrides are configured per category group under ``LabelOverrides``::

    "LabelOverrides": {
      "FieldBoss": {
        "EpsilonWorld": 0.25,
        "EpsilonPx": 0,
        "ByCoord": {
          "-412.5,88.0": {"dx": 0, "dy": -30, "Anchor": "Left", "Style": "poiSmall"},
          "1024,310":    {"dx": 12, "dy": 0}
        }
      }
    }

A key containing a decimal point is a world coordinate, anything else is a
canvas pixel. Keys are parsed once into :class:`WorldCoordKey` or
:class:`PixelCoordKey`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .classify import CategoryTag
from .config import as_float, as_int, as_mapping, as_str, lookup
from .render_constants import (
    DEFAULT_EPSILON_PX,
    DEFAULT_EPSILON_WORLD,
    SHIFTING_EARTH_EPSILON_WORLD,
)
from .text import Anchor


__all__ = [
    "CoordKey",
    "CoordOverride",
    "OverrideResolver",
    "OverrideTable",
    "PixelCoordKey",
    "Placement",
    "WorldCoordKey",
    "parse_coord_key",
    "parse_offset",
]

logger = logging.getLogger(__name__)

SHIFTING_EARTH_GROUP = "Shifting_Earth"


@dataclass(frozen=True)
class WorldCoordKey:
    """Override key in world units."""

    x: float
    z: float

    def matches(self, x: float, z: float, epsilon: float) -> bool:
        return abs(self.x - x) <= epsilon and abs(self.z - z) <= epsilon


@dataclass(frozen=True)
class PixelCoordKey:
    """Override key in canvas pixels."""

    px: int
    py: int

    def matches(self, px: float, py: float, epsilon: float) -> bool:
        return abs(self.px - px) <= epsilon and abs(self.py - py) <= epsilon


CoordKey = WorldCoordKey | PixelCoordKey


def parse_coord_key(raw: str) -> CoordKey | None:
    """Parse an ``"x,z"`` override key.

    A trailing comma is ignored. A ``.`` in either part makes it a world
    key; otherwise both parts must be integers and it is a pixel key.

    Returns:
        The parsed key, or None if malformed.
    """
    text = raw.strip().rstrip(",").strip()
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 2 or not all(parts):
        return None
    try:
        if "." in parts[0] or "." in parts[1]:
            return WorldCoordKey(float(parts[0]), float(parts[1]))
        return PixelCoordKey(int(parts[0]), int(parts[1]))
    except ValueError:
        return None


def parse_offset(value: Any) -> tuple[int, int] | None:
    """Parse an offset given as ``{"dx": .., "dy": ..}`` or ``[dx, dy]``."""
    if isinstance(value, Mapping):
        dx = as_int(lookup(value, "dx"), 0)
        dy = as_int(lookup(value, "dy"), 0)
        return (dx or 0, dy or 0)
    if isinstance(value, Sequence) and not isinstance(value, str) and len(value) >= 2:
        dx = as_int(value[0])
        dy = as_int(value[1])
        if dx is None or dy is None:
            return None
        return dx, dy
    return None


@dataclass(frozen=True)
class Placement:
    """Offset, anchor and style chosen for one label."""

    dx: int = 0
    dy: int = 0
    anchor: Anchor | None = None
    style: str | None = None
    overridden: bool = False


@dataclass(frozen=True)
class CoordOverride:
    """A single ``ByCoord`` entry."""

    key: CoordKey
    dx: int = 0
    dy: int = 0
    anchor: Anchor | None = None
    style: str | None = None
    requires_poi: WorldCoordKey | None = None

    @classmethod
    def from_mapping(cls, raw_key: str, value: Any) -> CoordOverride | None:
        key = parse_coord_key(raw_key)
        if key is None or not isinstance(value, Mapping):
            return None
        requires: WorldCoordKey | None = None
        requires_raw = as_str(lookup(value, "RequiresPoi"))
        if requires_raw is not None:
            parsed = parse_coord_key(requires_raw)
            if parsed is None:
                return None
            # Pixel-looking keys ("10,20") still name a world position here.
            requires = (
                parsed
                if isinstance(parsed, WorldCoordKey)
                else WorldCoordKey(float(parsed.px), float(parsed.py))
            )
        return cls(
            key=key,
            dx=as_int(lookup(value, "dx"), 0) or 0,
            dy=as_int(lookup(value, "dy"), 0) or 0,
            anchor=Anchor.parse(lookup(value, "anchor")),
            style=as_str(lookup(value, "style")),
            requires_poi=requires,
        )

    def as_placement(self) -> Placement:
        return Placement(self.dx, self.dy, self.anchor, self.style, overridden=True)


@dataclass(frozen=True)
class OverrideTable:
    """Ordered overrides and tolerances for one category group."""

    entries: tuple[CoordOverride, ...] = ()
    epsilon_world: float = DEFAULT_EPSILON_WORLD
    epsilon_px: float = DEFAULT_EPSILON_PX

    @classmethod
    def from_mapping(cls, value: Any, default_epsilon_world: float = DEFAULT_EPSILON_WORLD) -> OverrideTable:
        if not isinstance(value, Mapping):
            return cls(epsilon_world=default_epsilon_world)
        epsilon_world = as_float(
            lookup(value, "EpsilonWorld", lookup(value, "Epsilon")), default_epsilon_world
        )
        epsilon_px = as_float(lookup(value, "EpsilonPx"), DEFAULT_EPSILON_PX)

        entries: list[CoordOverride] = []
        for raw_key, entry in as_mapping(lookup(value, "ByCoord")).items():
            parsed = CoordOverride.from_mapping(str(raw_key), entry)
            if parsed is None:
                logger.debug("Ignoring malformed override %r", raw_key)
                continue
            entries.append(parsed)
        return cls(
            entries=tuple(entries),
            epsilon_world=abs(epsilon_world if epsilon_world is not None else default_epsilon_world),
            epsilon_px=abs(epsilon_px if epsilon_px is not None else DEFAULT_EPSILON_PX),
        )

    def match(
        self,
        x: float | None,
        z: float | None,
        px: float | None,
        py: float | None,
        present: Sequence[tuple[float, float]] = (),
    ) -> CoordOverride | None:
        """Return the first entry matching the world or pixel position."""
        for entry in self.entries:
            key = entry.key
            if isinstance(key, WorldCoordKey):
                if x is None or z is None or not key.matches(x, z, self.epsilon_world):
                    continue
            elif px is None or py is None or not key.matches(px, py, self.epsilon_px):
                continue
            if entry.requires_poi is not None and not any(
                entry.requires_poi.matches(ox, oz, self.epsilon_world) for ox, oz in present
            ):
                continue
            return entry
        return None


class OverrideResolver:
    """Resolve label offsets, anchors and styles for a render.

    Built once per render from the ``LabelOffsets``, ``LabelOverrides`` and
    ``LabelReanchors`` config sections. Never raises on malformed entries;
    they are skipped and defaults apply.
    """

    def __init__(
        self,
        tree: Mapping[str, Any],
        poi_positions: Iterable[tuple[float, float]] = (),
    ) -> None:
        self._offsets = as_mapping(lookup(tree, "LabelOffsets"))
        self._overrides = as_mapping(lookup(tree, "LabelOverrides"))
        self._reanchors = as_mapping(lookup(tree, "LabelReanchors"))
        self._tables: dict[str, OverrideTable] = {}
        self.poi_positions = tuple(poi_positions)

    def table(self, group: str) -> OverrideTable:
        """Return the parsed override table for ``group``."""
        table = self._tables.get(group)
        if table is None:
            default_eps = (
                SHIFTING_EARTH_EPSILON_WORLD if group == SHIFTING_EARTH_GROUP else DEFAULT_EPSILON_WORLD
            )
            table = OverrideTable.from_mapping(lookup(self._overrides, group), default_eps)
            self._tables[group] = table
        return table

    def default_offset(self, group: str, subtype: str | None = None) -> tuple[int, int]:
        """Return the configured default offset, (0, 0) if none.

        ``LabelOffsets[group]`` may hold per-subtype entries, a ``Default``
        entry, or be an offset itself.
        """
        section = lookup(self._offsets, group)
        if subtype is not None:
            offset = parse_offset(lookup(section, subtype))
            if offset is not None:
                return offset
        offset = parse_offset(lookup(section, "Default"))
        if offset is not None:
            return offset
        if isinstance(section, Mapping) and ("dx" in section or "dy" in section):
            return parse_offset(section) or (0, 0)
        if isinstance(section, Sequence) and not isinstance(section, str):
            return parse_offset(section) or (0, 0)
        return 0, 0

    def reanchor(self, tag: CategoryTag, x: float, z: float) -> tuple[float, float]:
        """Return the effective world coordinate for ``tag``.

        ``LabelReanchors[group][subtype] = {"x": .., "z": ..}`` replaces the
        POI's coordinate outright.
        """
        entry = lookup(as_mapping(lookup(self._reanchors, tag.group)), tag.subtype)
        new_x = as_float(lookup(entry, "x"))
        new_z = as_float(lookup(entry, "z"))
        if new_x is None or new_z is None:
            return x, z
        return new_x, new_z

    def resolve(
        self,
        category: CategoryTag | str,
        x: float | None,
        z: float | None,
        pixel_x: float | None,
        pixel_y: float | None,
    ) -> Placement:
        """Resolve the placement of one label.

        Args:
            category: The category tag, or a bare group name.
            x: The POI's world x (None if only pixels are known).
            z: The POI's world z.
            pixel_x: The POI's projected pixel x.
            pixel_y: The POI's projected pixel y.

        Returns:
            The matching override's placement, or the category default.
        """
        if isinstance(category, CategoryTag):
            group, subtype = category.group, category.subtype
        else:
            group, subtype = category, None

        entry = self.table(group).match(x, z, pixel_x, pixel_y, self.poi_positions)
        if entry is not None:
            return entry.as_placement()

        dx, dy = self.default_offset(group, subtype)
        return Placement(dx, dy)
