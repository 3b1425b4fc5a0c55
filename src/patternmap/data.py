"""Pattern, metadata index and summary loading."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from .config import as_float, as_int, as_str, lookup


__all__ = [
    "DataError",
    "IndexEntry",
    "MissingResourceError",
    "PatternDoc",
    "PatternIdentityError",
    "Poi",
    "PoiIndex",
    "SummaryPattern",
    "find_summary",
    "load_index",
    "load_json",
    "load_pattern",
    "load_summary",
    "normalize_pattern_id",
    "resolve_pattern_id",
    "split_name",
]

logger = logging.getLogger(__name__)

_PATTERN_FILE_ID = re.compile(r"pattern_(\d+)", re.IGNORECASE)


class DataError(Exception):
    """Base exception for data loading errors."""


class MissingResourceError(DataError, FileNotFoundError):
    """Raised when a required core file (pattern, index, summary, background) is missing."""


class PatternIdentityError(DataError, ValueError):
    """Raised when a pattern's identifier cannot be determined or matched."""


def split_name(name: str) -> tuple[str, str] | None:
    """Split a ``"Type - Detail"`` POI name at the first separator.

    Returns:
        ``(type, detail)`` with both parts stripped, or None if the name has
        no separator.
    """
    head, sep, tail = name.partition(" - ")
    if not sep:
        return None
    return head.strip(), tail.strip()


@dataclass(frozen=True)
class Poi:
    """A named point of interest at a world coordinate."""

    name: str
    x: float
    z: float
    alias_count: int | None = None

    @property
    def key(self) -> str:
        """Trimmed name used for index lookups."""
        return self.name.strip()

    @classmethod
    def from_mapping(cls, value: Any) -> Poi | None:
        """Parse ``{name, x, z, dupCount?}``; None when malformed."""
        name = lookup(value, "name")
        x = as_float(lookup(value, "x"))
        z = as_float(lookup(value, "z"))
        if not isinstance(name, str) or x is None or z is None:
            return None
        return cls(name=name, x=x, z=z, alias_count=as_int(lookup(value, "dupCount")))


@dataclass(frozen=True)
class IndexEntry:
    """Per-name metadata from the index file."""

    name: str
    category: str | None = None
    icon: str | None = None
    i18n_key: str | None = None
    id: str | None = None
    cid: str | None = None

    @property
    def localization_key(self) -> str | None:
        """The explicit ``i18nKey``, else ``poi.<id>``."""
        if self.i18n_key:
            return self.i18n_key
        if self.id:
            return f"poi.{self.id}"
        return None

    @classmethod
    def from_mapping(cls, value: Any, name: str | None = None) -> IndexEntry | None:
        if not isinstance(value, Mapping):
            return IndexEntry(name=name) if name else None
        entry_name = as_str(lookup(value, "name"), name)
        if not entry_name:
            return None

        def _text(key: str) -> str | None:
            raw = lookup(value, key)
            if isinstance(raw, (int, float)) and not isinstance(raw, bool):
                return str(raw)
            return as_str(raw)

        return cls(
            name=entry_name,
            category=_text("category"),
            icon=_text("icon"),
            i18n_key=_text("i18nKey"),
            id=_text("id"),
            cid=_text("cid"),
        )


class PoiIndex(Mapping[str, IndexEntry]):
    """Read-only name to :class:`IndexEntry` mapping.

    Keys are the trimmed entry names; ``get`` trims the requested name too.
    """

    def __init__(self, entries: Mapping[str, IndexEntry] | None = None) -> None:
        self._entries = MappingProxyType(dict(entries or {}))

    def __getitem__(self, name: str) -> IndexEntry:
        return self._entries[name.strip()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip() in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def find_by_name(self, raw_name: str) -> IndexEntry | None:
        """Scan entries for one whose ``name`` field equals ``raw_name``."""
        wanted = raw_name.strip()
        for entry in self._entries.values():
            if entry.name.strip() == wanted:
                return entry
        return None


@dataclass(frozen=True)
class SummaryPattern:
    """One entry of the summary file describing a pattern's variations."""

    id: str
    nightlord: str | None = None
    special: str | None = None
    treasure: str | None = None
    frenzy_tower: str | None = None
    rot_blessing: str | None = None
    spawn_point_id: str | None = None
    special_event_key: str | None = None
    special_event: str | None = None
    extra_boss_key: str | None = None

    @property
    def has_special_event(self) -> bool:
        return bool(self.special_event_key or self.special_event)

    @classmethod
    def from_mapping(cls, value: Any) -> SummaryPattern | None:
        if not isinstance(value, Mapping):
            return None

        def _text(key: str) -> str | None:
            raw = lookup(value, key)
            if isinstance(raw, (int, float)) and not isinstance(raw, bool):
                return str(raw)
            return as_str(raw)

        pattern_id = _text("id")
        if pattern_id is None:
            return None
        return cls(
            id=normalize_pattern_id(pattern_id) or pattern_id,
            nightlord=_text("nightlord"),
            special=_text("special"),
            treasure=_text("treasure"),
            frenzy_tower=_text("frenzy_tower"),
            rot_blessing=_text("rot_blessing"),
            spawn_point_id=_text("spawn_point_id"),
            special_event_key=_text("special_event_key"),
            special_event=_text("special_event"),
            extra_boss_key=_text("extra_boss_key"),
        )


@dataclass(frozen=True)
class PatternDoc:
    """A loaded pattern: its identifier and POI list."""

    pattern_id: str
    pois: tuple[Poi, ...] = field(default_factory=tuple)
    source: Path | None = None


def load_json(path: Path, what: str) -> Any:
    """Read a JSON file that the render cannot do without.

    Args:
        path: File to read.
        what: Human readable name used in error messages.

    Returns:
        The parsed JSON value.

    Raises:
        MissingResourceError: If the file does not exist.
        DataError: If the file is not valid JSON.
    """
    if not path.is_file():
        raise MissingResourceError(f"{what} not found: {path}")
    try:
        with path.open("r", encoding="utf-8-sig") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise DataError(f"{what} is not valid JSON: {path} ({e})") from e


def normalize_pattern_id(value: Any) -> str | None:
    """Normalise a numeric identifier to three digits.

    Non-numeric strings are returned stripped; other types give None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return f"{value:03d}"
    if isinstance(value, float):
        return f"{int(round(value)):03d}"
    if isinstance(value, str) and value.strip():
        text = value.strip()
        return f"{int(text):03d}" if text.isdigit() else text
    return None


def resolve_pattern_id(path: Path, data: Any = None) -> str:
    """Determine a pattern's identifier.

    Uses ``patternId`` or ``id`` from the JSON body, then ``pattern_<n>`` in
    the filename, then the bare file stem.

    Raises:
        PatternIdentityError: If no identifier can be derived.
    """
    if isinstance(data, Mapping):
        for key in ("patternId", "id"):
            if key in data:
                normalized = normalize_pattern_id(data[key])
                if normalized:
                    return normalized

    match = _PATTERN_FILE_ID.search(path.stem)
    if match:
        return match.group(1).zfill(3)
    if path.stem.strip():
        return path.stem.strip()
    raise PatternIdentityError(f"Could not determine a pattern id from: {path}")


def load_pattern(path: Path) -> PatternDoc:
    """Load a pattern file.

    Raises:
        MissingResourceError: If the file does not exist.
        PatternIdentityError: If no identifier can be derived.
    """
    data = load_json(path, "Pattern JSON")
    pattern_id = resolve_pattern_id(path, data)

    raw_pois = lookup(data, "pois") if isinstance(data, Mapping) else None
    pois: list[Poi] = []
    skipped = 0
    for item in raw_pois if isinstance(raw_pois, list) else []:
        poi = Poi.from_mapping(item)
        if poi is None:
            skipped += 1
            continue
        pois.append(poi)
    if skipped:
        logger.warning("Skipped %d malformed POIs in %s", skipped, path)

    return PatternDoc(pattern_id=pattern_id, pois=tuple(pois), source=path)


def load_index(path: Path) -> PoiIndex:
    """Load the metadata index.

    Accepts ``{"entries": [...]}``, a plain array of entries, or an object
    keyed by name.

    Raises:
        MissingResourceError: If the file does not exist.
    """
    data = load_json(path, "Index JSON")
    entries: dict[str, IndexEntry] = {}

    items: list[Any] | None = None
    if isinstance(data, Mapping) and isinstance(data.get("entries"), list):
        items = data["entries"]
        shape = "object.entries"
    elif isinstance(data, list):
        items = data
        shape = "array"

    if items is not None:
        for item in items:
            entry = IndexEntry.from_mapping(item)
            if entry is not None and entry.name.strip():
                entries[entry.name.strip()] = entry
    elif isinstance(data, Mapping):
        shape = "object map"
        for key, value in data.items():
            name = str(key).strip()
            if not name or name.lower() == "entries":
                continue
            entry = IndexEntry.from_mapping(value, name=name)
            if entry is not None:
                entries[name] = entry
    else:
        shape = "unrecognised"

    logger.info("Index entries loaded: %d (%s)", len(entries), shape)
    return PoiIndex(entries)


def load_summary(path: Path) -> tuple[SummaryPattern, ...]:
    """Load the ``patterns`` list of the summary file.

    Raises:
        MissingResourceError: If the file does not exist.
    """
    data = load_json(path, "Summary JSON")
    raw = lookup(data, "patterns")
    items = raw if isinstance(raw, list) else []
    patterns = (SummaryPattern.from_mapping(item) for item in items)
    return tuple(p for p in patterns if p is not None)


def find_summary(patterns: tuple[SummaryPattern, ...], pattern_id: str) -> SummaryPattern:
    """Return the summary entry for ``pattern_id`` (case-insensitive).

    Raises:
        PatternIdentityError: If no entry matches.
    """
    wanted = pattern_id.casefold()
    for pattern in patterns:
        if pattern.id.casefold() == wanted:
            return pattern
    raise PatternIdentityError(f"Pattern '{pattern_id}' not found in summary.")
