"""Localised label text lookup."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType

from .data import PoiIndex, split_name
from .render_constants import DEFAULT_LANG


__all__ = ["POI_TABLE", "LabelTextResolver", "strip_type_prefix"]

logger = logging.getLogger(__name__)

POI_TABLE = "poi.json"


def strip_type_prefix(raw_name: str) -> str:
    """Drop a leading ``"Type - "`` from a POI name."""
    head, sep, tail = raw_name.partition(" - ")
    return tail if sep and tail else raw_name


class LabelTextResolver:
    """Resolve display text for raw POI names.

    Keys come from the metadata index; strings come from
    ``<i18n_folder>/<lang>/<table>.json``. Tables are read once per
    language and kept until :meth:`clear`.
    """

    def __init__(
        self,
        index: PoiIndex,
        i18n_folder: Path,
        lang: str = DEFAULT_LANG,
        default_lang: str = DEFAULT_LANG,
    ) -> None:
        self.index = index
        self.i18n_folder = i18n_folder
        self.lang = lang.strip() or DEFAULT_LANG
        self.default_lang = default_lang.strip() or DEFAULT_LANG
        self._tables: dict[tuple[str, str], Mapping[str, str]] = {}

    def table(self, lang: str, filename: str = POI_TABLE) -> Mapping[str, str]:
        """Load (once) and return a string table.

        A missing or unreadable table is treated as empty.
        """
        cache_key = (lang.strip().lower(), filename)
        cached = self._tables.get(cache_key)
        if cached is not None:
            return cached

        path = self.i18n_folder / lang.strip() / filename
        strings: dict[str, str] = {}
        if path.is_file():
            try:
                with path.open("r", encoding="utf-8-sig") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Failed to read string table %s: %s", path, e)
                data = None
            if isinstance(data, Mapping):
                strings = {str(k): v for k, v in data.items() if isinstance(v, str)}
        else:
            logger.debug("String table not found: %s", path)

        table = MappingProxyType(strings)
        self._tables[cache_key] = table
        return table

    def localize(self, key: str, filename: str = POI_TABLE) -> str | None:
        """Look ``key`` up in the active language, then the default one."""
        for lang in dict.fromkeys((self.lang, self.default_lang)):
            text = self.table(lang, filename).get(key)
            if text and text.strip():
                return text
        return None

    def candidate_keys(self, raw_name: str) -> list[str]:
        """Localisation keys for ``raw_name`` in lookup order.

        Tries the exact index entry, the ``Detail`` of ``"Type - Detail"``,
        then any entry whose ``name`` equals the raw name.
        """
        keys: list[str] = []
        entry = self.index.get(raw_name)
        if entry is not None and entry.localization_key:
            keys.append(entry.localization_key)

        parts = split_name(raw_name)
        if parts is not None and parts[1]:
            detail_entry = self.index.get(parts[1])
            if detail_entry is not None and detail_entry.localization_key:
                keys.append(detail_entry.localization_key)

        named = self.index.find_by_name(raw_name)
        if named is not None and named.localization_key:
            keys.append(named.localization_key)

        return list(dict.fromkeys(keys))

    def resolve_with_status(self, raw_name: str) -> tuple[str, bool]:
        """Resolve display text and report whether a localisation was found.

        Returns:
            ``(text, localized)``; when nothing resolves the text is the raw
            name with its ``"Type - "`` prefix stripped.
        """
        if not raw_name or not raw_name.strip():
            return "", False
        for key in self.candidate_keys(raw_name):
            text = self.localize(key)
            if text is not None:
                return text, True
        return strip_type_prefix(raw_name), False

    def resolve(self, raw_name: str) -> str:
        """Resolve display text for ``raw_name``."""
        return self.resolve_with_status(raw_name)[0]

    def clear(self) -> None:
        """Drop all cached string tables."""
        self._tables.clear()
