"""Backdrop and overlay selection and compositing.

Each overlay is chosen from a pattern's summary entry by a small lookup
table. Unknown values select nothing; missing files are logged and skipped.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from PIL import Image

from .cache import ExistsCache, fit_within
from .config import AppConfig, IconSettings
from .data import SummaryPattern
from .effects import composite_clipped


__all__ = [
    "NIGHTLORD_EMBLEMS",
    "anchored_position",
    "apply_overlays",
    "castle_applies",
    "composite_anchored",
    "composite_full_canvas",
    "composite_no_resize",
    "frenzy_overlay",
    "nightlord_emblem",
    "parse_code",
    "raw_overlay_for_special",
    "rot_blessing_overlay",
    "shifting_attach_points_for_special",
    "shifting_overlay_for_special",
    "spawn_overlay",
    "treasure_code",
]

logger = logging.getLogger(__name__)

_RAW_BY_SPECIAL = {
    0: "default.png",
    1: "mountaintop.png",
    2: "crater.png",
    3: "rotted_wood.png",
    5: "noklateo.png",
}

_SHIFTING_BY_SPECIAL = {
    1: "mountaintop_overlay.png",
    2: "crater_overlay.png",
    3: "rotted_wood_overlay.png",
    5: "noklateo_overlay.png",
}

_ATTACH_POINTS_BY_SPECIAL = {
    1: "mountaintop_overlay.json",
    2: "crater_overlay.json",
    5: "noklateo_overlay.json",
}

_ATTACH_POINTS_BY_NAME = {
    "mountaintop": "mountaintop_overlay.json",
    "crater": "crater_overlay.json",
    "noklateo": "noklateo_overlay.json",
}

_FRENZY = {"north": "frenzy_north.png", "south": "frenzy_south.png"}

_ROT_BLESSING = {
    "west": "blessing_west.png",
    "northeast": "blessing_northeast.png",
    "southwest": "blessing_southwest.png",
}

NIGHTLORD_EMBLEMS = (
    "Gladius.png",
    "Adel.png",
    "Gnoster.png",
    "Maris.png",
    "Libra.png",
    "Fulghor.png",
    "Caligo.png",
    "Heolstor.png",
)

_CASTLE_SPECIALS = frozenset({0, 1, 2, 3})


def parse_code(value: str | None) -> int | None:
    """Parse a summary code such as ``"2"``; None if not an integer."""
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def raw_overlay_for_special(special: str | None) -> str | None:
    code = parse_code(special)
    return _RAW_BY_SPECIAL.get(code) if code is not None else None


def shifting_overlay_for_special(special: str | None) -> str | None:
    code = parse_code(special)
    return _SHIFTING_BY_SPECIAL.get(code) if code is not None else None


def shifting_attach_points_for_special(special: str | None) -> str | None:
    """Attach-point file listing shifting-earth label positions."""
    code = parse_code(special)
    if code is not None:
        return _ATTACH_POINTS_BY_SPECIAL.get(code)
    if special is None:
        return None
    return _ATTACH_POINTS_BY_NAME.get(special.strip().lower())


def castle_applies(special: str | None) -> bool:
    return parse_code(special) in _CASTLE_SPECIALS


def frenzy_overlay(direction: str | None) -> str | None:
    if not direction:
        return None
    return _FRENZY.get(direction.strip().lower())


def rot_blessing_overlay(direction: str | None) -> str | None:
    if not direction:
        return None
    return _ROT_BLESSING.get(direction.strip().lower())


def spawn_overlay(spawn_point_id: str | None) -> str | None:
    """``start_<n>.png`` from an id such as ``"3"`` or ``"spawn_3"``."""
    if not spawn_point_id or not spawn_point_id.strip():
        return None
    code = parse_code(spawn_point_id)
    if code is None:
        digits = re.sub(r"\D", "", spawn_point_id)
        if not digits:
            return None
        code = int(digits)
    return f"start_{code}.png"


def treasure_code(treasure: str | None, special: str | None) -> int | None:
    """Combined treasure code ``treasure * 10 + special``."""
    t = parse_code(treasure)
    s = parse_code(special)
    if t is None or s is None:
        return None
    return t * 10 + s


def nightlord_emblem(nightlord: str | None) -> str | None:
    """Emblem filename from a nightlord index (0-7) or name."""
    if not nightlord or not nightlord.strip():
        return None
    code = parse_code(nightlord)
    if code is not None:
        return NIGHTLORD_EMBLEMS[code] if 0 <= code < len(NIGHTLORD_EMBLEMS) else None
    wanted = f"{nightlord.strip().lower()}.png"
    for emblem in NIGHTLORD_EMBLEMS:
        if emblem.lower() == wanted:
            return emblem
    return None


# -----------------------------------------------------------------------------
# Compositing
# -----------------------------------------------------------------------------


def _open_rgba(path: Path) -> Image.Image | None:
    """Open an overlay as RGBA; None (with a warning) if it cannot be decoded."""
    try:
        with Image.open(path) as img:
            return img.convert("RGBA")
    except OSError as e:
        logger.warning("Overlay not readable: %s (%s)", path, e)
        return None


def composite_full_canvas(canvas: Image.Image, path: Path, exists: ExistsCache) -> bool:
    """Composite ``path`` over the whole canvas, stretching it to fit."""
    if not exists.exists(path):
        logger.warning("Overlay not found: %s", path)
        return False
    overlay = _open_rgba(path)
    if overlay is None:
        return False
    if overlay.size != canvas.size:
        overlay = overlay.resize(canvas.size, Image.Resampling.LANCZOS)
    canvas.alpha_composite(overlay)
    logger.debug("Applied overlay: %s", path.name)
    return True


def composite_no_resize(canvas: Image.Image, path: Path, exists: ExistsCache) -> bool:
    """Composite ``path`` at the canvas origin at its native size."""
    if not exists.exists(path):
        logger.warning("Overlay not found: %s", path)
        return False
    overlay = _open_rgba(path)
    if overlay is None:
        return False
    composite_clipped(canvas, overlay, 0, 0)
    logger.debug("Applied (no-resize) overlay: %s", path.name)
    return True


def anchored_position(
    canvas_size: tuple[int, int],
    obj_size: tuple[int, int],
    anchor: str,
    margin_x: int,
    margin_y: int,
) -> tuple[int, int]:
    """Top-left position of an object anchored to a canvas corner or centre."""
    canvas_w, canvas_h = canvas_size
    obj_w, obj_h = obj_size
    positions = {
        "top-left": (margin_x, margin_y),
        "top-right": (canvas_w - obj_w - margin_x, margin_y),
        "bottom-left": (margin_x, canvas_h - obj_h - margin_y),
        "bottom-right": (canvas_w - obj_w - margin_x, canvas_h - obj_h - margin_y),
        "center": ((canvas_w - obj_w) // 2, (canvas_h - obj_h) // 2),
    }
    return positions.get(anchor.strip().lower(), positions["bottom-left"])


def composite_anchored(
    canvas: Image.Image,
    path: Path,
    settings: IconSettings,
    exists: ExistsCache,
) -> bool:
    """Scale an emblem into its box and composite it at the configured anchor."""
    if not exists.exists(path):
        logger.warning("Icon not found: %s", path)
        return False

    icon = _open_rgba(path)
    if icon is None:
        return False
    canvas_w, canvas_h = canvas.size
    unbounded = canvas_h * 4

    if settings.fixed_width_px is not None or settings.fixed_height_px is not None:
        box_w = settings.fixed_width_px or settings.fixed_height_px or icon.width
        box_h = settings.fixed_height_px or settings.fixed_width_px or icon.height
        bounded_h = True
    else:
        box_w = settings.max_width_px or round(settings.width_percent * canvas_w)
        box_h = settings.max_height_px or unbounded
        bounded_h = settings.max_height_px is not None

    if settings.preserve_aspect and settings.fit_inside_box:
        new_w, new_h = fit_within(icon.size, (box_w, box_h))
    elif settings.preserve_aspect:
        scale = max(box_w / icon.width, box_h / icon.height if bounded_h else 0.0)
        new_w, new_h = max(1, round(icon.width * scale)), max(1, round(icon.height * scale))
    else:
        new_w, new_h = max(1, box_w), max(1, box_h if bounded_h else icon.height)

    if (new_w, new_h) != icon.size:
        icon = icon.resize((new_w, new_h), Image.Resampling.LANCZOS)

    obj_h = min(box_h, canvas_h) if bounded_h else new_h
    box_x, box_y = anchored_position(
        canvas.size,
        (min(box_w, canvas_w), obj_h),
        settings.anchor,
        settings.margin_x,
        settings.margin_y,
    )
    place_x = box_x + max(0, (box_w - new_w) // 2)
    place_y = box_y + (max(0, (box_h - new_h) // 2) if bounded_h else 0)
    composite_clipped(canvas, icon, place_x, place_y)
    logger.debug("Anchored %s at %d,%d (%dx%d)", path.name, place_x, place_y, new_w, new_h)
    return True


def apply_overlays(
    canvas: Image.Image,
    config: AppConfig,
    summary: SummaryPattern,
    exists: ExistsCache,
) -> list[str]:
    """Apply backdrop, terrain, event, treasure, spawn and emblem overlays.

    Order matters: each overlay covers the previous ones.

    Returns:
        Filenames of the overlays that were composited.
    """
    applied: list[str] = []
    map_assets = config.assets_folder / "map"

    def _full(folder: Path | None, name: str | None) -> None:
        if folder is None or name is None:
            return
        if composite_full_canvas(canvas, folder / name, exists):
            applied.append(name)

    if summary.nightlord:
        _full(config.nightlord_folder, f"backdrop_{summary.nightlord}.png")
    _full(config.map_raw_folder, raw_overlay_for_special(summary.special))
    _full(map_assets / "shifting_earth", shifting_overlay_for_special(summary.special))
    _full(map_assets / "event", frenzy_overlay(summary.frenzy_tower))
    _full(map_assets / "event", rot_blessing_overlay(summary.rot_blessing))

    if castle_applies(summary.special) and composite_no_resize(
        canvas, map_assets / "castle.png", exists
    ):
        applied.append("castle.png")

    if summary.treasure and summary.special:
        code = treasure_code(summary.treasure, summary.special)
        if code is None:
            logger.warning(
                "Could not parse treasure/special (treasure=%r, special=%r)",
                summary.treasure,
                summary.special,
            )
        else:
            _full(config.treasure_folder, f"treasure_{code:05d}.png")

    _full(map_assets / "spawn_point", spawn_overlay(summary.spawn_point_id))

    emblem = nightlord_emblem(summary.nightlord)
    if config.nightlord_folder is not None and emblem is not None:
        if composite_anchored(canvas, config.nightlord_folder / emblem, config.nightlord_icon, exists):
            applied.append(emblem)

    return applied
