"""Configuration and path management."""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from .render_constants import (
    DEFAULT_LANG,
    SPECIAL_ICON_BOX,
    SPECIAL_ICON_MARGIN_ONLY,
    SPECIAL_ICON_MARGIN_WITH_BANNER,
)


__all__ = [
    "AppConfig",
    "ConfigError",
    "IconSettings",
    "SizeBox",
    "SpecialIconSettings",
    "as_float",
    "as_int",
    "as_mapping",
    "as_str",
    "generate_output_filename",
    "get_default_config_path",
    "load_config",
    "lookup",
    "resolve_path",
]

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when the configuration file is missing or unusable."""

    pass


# Keys that every configuration file must provide
REQUIRED_CONFIG_KEYS = frozenset({"BackgroundPath", "SummaryPath"})

_EMPTY: Mapping[str, Any] = MappingProxyType({})
_MISSING = object()


def get_default_config_path() -> Path:
    """Get the configuration path from ``PATTERNMAP_CONFIG`` or the cwd."""
    env_path = os.environ.get("PATTERNMAP_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return Path.cwd() / "appsettings.json"


# -----------------------------------------------------------------------------
# Lenient accessors for the JSON tree
# -----------------------------------------------------------------------------


def lookup(mapping: Any, key: str, default: Any = None) -> Any:
    """Get ``key`` from ``mapping``, falling back to a case-insensitive match."""
    if not isinstance(mapping, Mapping):
        return default
    if key in mapping:
        return mapping[key]
    folded = key.casefold()
    for candidate, value in mapping.items():
        if isinstance(candidate, str) and candidate.casefold() == folded:
            return value
    return default


def as_mapping(value: Any) -> Mapping[str, Any]:
    """Return ``value`` if it is a mapping, otherwise an empty one."""
    return value if isinstance(value, Mapping) else _EMPTY


def as_int(value: Any, default: int | None = None) -> int | None:
    """Coerce a JSON number or numeric string to int."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(round(value))
    if isinstance(value, str):
        try:
            return int(round(float(value.strip())))
        except ValueError:
            return default
    return default


def _int_or(value: Any, default: int) -> int:
    parsed = as_int(value)
    return default if parsed is None else parsed


def as_float(value: Any, default: float | None = None) -> float | None:
    """Coerce a JSON number or numeric string to float."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return default
    return default


def as_str(value: Any, default: str | None = None) -> str | None:
    """Return a stripped non-empty string or ``default``."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _freeze(value: Any) -> Any:
    """Recursively convert JSON containers into read-only equivalents."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, Sequence) and not isinstance(value, str):
        return tuple(_freeze(v) for v in value)
    return value


# -----------------------------------------------------------------------------
# Typed views
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class SizeBox:
    """Icon render bounds for one category subtype."""

    width: int
    height: int

    @classmethod
    def from_mapping(cls, value: Any) -> SizeBox | None:
        """Parse ``{"WidthPx": .., "HeightPx": ..}``; None when malformed."""
        width = as_int(lookup(value, "WidthPx"))
        height = as_int(lookup(value, "HeightPx"))
        if width is None or height is None or width <= 0 or height <= 0:
            return None
        return cls(width, height)

    def as_tuple(self) -> tuple[int, int]:
        return self.width, self.height


@dataclass(frozen=True)
class IconSettings:
    """Placement of an anchored emblem (e.g. the nightlord icon)."""

    width_percent: float = 0.18
    anchor: str = "bottom-left"
    margin_x: int = 0
    margin_y: int = 0
    max_width_px: int | None = None
    max_height_px: int | None = None
    fixed_width_px: int | None = 356
    fixed_height_px: int | None = 356
    preserve_aspect: bool = True
    fit_inside_box: bool = True

    @classmethod
    def from_mapping(cls, value: Any) -> IconSettings:
        if not isinstance(value, Mapping):
            return cls()
        defaults = cls()

        def _opt_int(key: str, fallback: int | None) -> int | None:
            raw = lookup(value, key, _MISSING)
            if raw is _MISSING:
                return fallback
            return as_int(raw)

        return cls(
            width_percent=as_float(lookup(value, "WidthPercent"), defaults.width_percent)
            or defaults.width_percent,
            anchor=as_str(lookup(value, "Anchor"), defaults.anchor) or defaults.anchor,
            margin_x=_int_or(lookup(value, "MarginX"), 0),
            margin_y=_int_or(lookup(value, "MarginY"), 0),
            max_width_px=_opt_int("MaxWidthPx", None),
            max_height_px=_opt_int("MaxHeightPx", None),
            fixed_width_px=_opt_int("FixedWidthPx", defaults.fixed_width_px),
            fixed_height_px=_opt_int("FixedHeightPx", defaults.fixed_height_px),
            preserve_aspect=bool(lookup(value, "PreserveAspect", True)),
            fit_inside_box=bool(lookup(value, "FitInsideBox", True)),
        )


@dataclass(frozen=True)
class SpecialIconSettings:
    """Box and bottom margins of the spawn-hint icon."""

    box: tuple[int, int] = SPECIAL_ICON_BOX
    margin_icon_only: int = SPECIAL_ICON_MARGIN_ONLY
    margin_with_banner: int = SPECIAL_ICON_MARGIN_WITH_BANNER

    @classmethod
    def from_mapping(cls, value: Any) -> SpecialIconSettings:
        margins = as_mapping(lookup(value, "BottomMargins"))
        box = as_mapping(lookup(value, "IconBox"))
        return cls(
            box=(
                _int_or(lookup(box, "Width"), SPECIAL_ICON_BOX[0]),
                _int_or(lookup(box, "Height"), SPECIAL_ICON_BOX[1]),
            ),
            margin_icon_only=_int_or(lookup(margins, "IconOnly"), SPECIAL_ICON_MARGIN_ONLY),
            margin_with_banner=_int_or(
                lookup(margins, "IconAndBanner"), SPECIAL_ICON_MARGIN_WITH_BANNER
            ),
        )


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration for one render.

    Paths are absolute, resolved against ``base_dir`` (the directory of the
    configuration file). The full JSON tree is kept read-only in ``tree``
    for the style, offset and override sections.
    """

    base_dir: Path
    background_path: Path
    summary_path: Path
    output_folder: Path
    index_path: Path
    assets_folder: Path
    attach_points_folder: Path
    i18n_folder: Path
    nightlord_folder: Path | None = None
    map_raw_folder: Path | None = None
    treasure_folder: Path | None = None
    lang: str = DEFAULT_LANG
    verbose: bool = False
    tree: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], base_dir: Path) -> AppConfig:
        """Build a config from a parsed JSON object.

        Raises:
            ConfigError: If a required key is missing.
        """
        missing = sorted(k for k in REQUIRED_CONFIG_KEYS if as_str(lookup(data, k)) is None)
        if missing:
            raise ConfigError(f"Configuration is missing required keys: {', '.join(missing)}")

        def _path(key: str, default: str = "") -> Path:
            return resolve_path(as_str(lookup(data, key), default) or default, base_dir)

        def _opt_path(key: str) -> Path | None:
            value = as_str(lookup(data, key))
            return resolve_path(value, base_dir) if value else None

        return cls(
            base_dir=base_dir,
            background_path=_path("BackgroundPath"),
            summary_path=_path("SummaryPath"),
            output_folder=_path("OutputFolder", "output"),
            index_path=_path("IndexPath", "../data/index.json"),
            assets_folder=_path("AssetsFolder", "../assets"),
            attach_points_folder=_path("AttachPointsFolder", "../data/param/attach_points"),
            i18n_folder=_path("I18nFolder", "../i18n"),
            nightlord_folder=_opt_path("NightlordFolder"),
            map_raw_folder=_opt_path("MapRawFolder"),
            treasure_folder=_opt_path("TreasureFolder"),
            lang=as_str(lookup(data, "I18nLang"), DEFAULT_LANG) or DEFAULT_LANG,
            verbose=lookup(data, "Verbose") is True,
            tree=_freeze(data),
        )

    def section(self, name: str) -> Mapping[str, Any]:
        """Return a top-level section, or an empty mapping."""
        return as_mapping(lookup(self.tree, name))

    def size_box(self, group: str, subtype: str) -> SizeBox | None:
        """Return the configured icon box for ``group``/``subtype``."""
        return SizeBox.from_mapping(lookup(self.section(group), subtype))

    def icon_override(self, name: str) -> str | None:
        """Return the configured icon override for a POI name."""
        return as_str(lookup(self.section("IconOverrides"), name.strip()))

    def asset_path(self, value: str) -> Path:
        """Resolve an asset reference from the index or config.

        References of the form ``assets/...`` live under ``assets_folder``;
        anything else resolves against ``base_dir``.
        """
        raw = value.strip().replace("\\", "/")
        if Path(raw).is_absolute():
            return Path(raw)
        if raw.lower().startswith("assets/"):
            return self.assets_folder / raw[len("assets/") :]
        return resolve_path(raw, self.base_dir)

    @property
    def nightlord_icon(self) -> IconSettings:
        return IconSettings.from_mapping(lookup(self.tree, "NightlordIcon"))

    @property
    def special_icon(self) -> SpecialIconSettings:
        return SpecialIconSettings.from_mapping(lookup(self.tree, "SpecialEventIcon"))

    def get_output_path(self, pattern_id: str) -> Path:
        """Generate the output file path for a pattern."""
        return generate_output_filename(pattern_id, self.output_folder)


def resolve_path(value: str, base_dir: Path) -> Path:
    """Resolve ``value`` against ``base_dir`` unless it is absolute."""
    path = Path(value).expanduser()
    if path.is_absolute():
        return path
    return (base_dir / path).resolve()


def load_config(path: str | os.PathLike[str] | None = None) -> AppConfig:
    """Load the render configuration from a JSON file.

    Args:
        path: Path to the configuration file. Defaults to
            :func:`get_default_config_path`.

    Returns:
        The parsed configuration.

    Raises:
        ConfigError: If the file is missing, unreadable, not a JSON object,
            or lacks required keys.
    """
    config_path = Path(path).expanduser() if path is not None else get_default_config_path()
    if not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8-sig") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to parse config file '{config_path}': {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{config_path}' is not a JSON object.")

    config = AppConfig.from_mapping(data, config_path.resolve().parent)
    logger.info("Loaded config: %s", config_path)
    return config


def _sanitize_filename(name: str) -> str:
    """Sanitize string for use in filenames across platforms.

    Replaces invalid characters and handles Windows reserved names.

    Args:
        name: The string to sanitize.

    Returns:
        A safe filename string.
    """
    sanitized = re.sub(r'[<>:"/\\|?*\s,\']', "_", name)
    sanitized = sanitized.strip(". ")
    sanitized = re.sub(r"_+", "_", sanitized)

    reserved = {"CON", "PRN", "AUX", "NUL"}
    reserved.update(f"COM{i}" for i in range(1, 10))
    reserved.update(f"LPT{i}" for i in range(1, 10))

    if sanitized.upper() in reserved:
        sanitized = f"_{sanitized}"

    return sanitized or "unnamed"


def generate_output_filename(pattern_id: str, output_dir: Path) -> Path:
    """Return ``<output_dir>/<pattern_id>.png``, creating the directory.

    Args:
        pattern_id: The pattern identifier (e.g. ``"042"``).
        output_dir: Directory the image is written to.

    Returns:
        The full path to the output file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir / f"{_sanitize_filename(pattern_id)}.png"
