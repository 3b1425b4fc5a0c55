"""Tests for localised label text lookup."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from patternmap.data import IndexEntry, PoiIndex
from patternmap.i18n import LabelTextResolver, strip_type_prefix


def write_table(root: Path, lang: str, data: object, filename: str = "poi.json") -> None:
    folder = root / lang
    folder.mkdir(parents=True, exist_ok=True)
    (folder / filename).write_text(json.dumps(data), encoding="utf-8")


@pytest.fixture
def index() -> PoiIndex:
    return PoiIndex(
        {
            "Camp - Stormhill": IndexEntry(name="Camp - Stormhill", id="101"),
            "Morne": IndexEntry(name="Morne", i18n_key="castle.morne"),
            "alias": IndexEntry(name="Evergaol - Limgrave", i18n_key="gaol.limgrave"),
            "Fort - Nokron": IndexEntry(name="Fort - Nokron"),
        }
    )


class TestStripTypePrefix:
    """Tests for strip_type_prefix."""

    def test_strips_first_prefix_only(self) -> None:
        """Only the leading type is removed."""
        assert strip_type_prefix("Camp - North - East") == "North - East"

    def test_no_prefix(self) -> None:
        """Names without a separator are unchanged."""
        assert strip_type_prefix("Stormhill") == "Stormhill"
        assert strip_type_prefix("Camp - ") == "Camp - "


class TestLabelTextResolver:
    """Tests for LabelTextResolver."""

    def test_exact_entry_by_id(self, tmp_path: Path, index: PoiIndex) -> None:
        """An entry without i18nKey uses ``poi.<id>``."""
        write_table(tmp_path, "en", {"poi.101": "Stormhill Camp"})
        resolver = LabelTextResolver(index, tmp_path)
        assert resolver.resolve_with_status("Camp - Stormhill") == ("Stormhill Camp", True)

    def test_detail_part(self, tmp_path: Path, index: PoiIndex) -> None:
        """The detail of ``Type - Detail`` is looked up when the full name is not indexed."""
        write_table(tmp_path, "en", {"castle.morne": "Castle Morne"})
        assert LabelTextResolver(index, tmp_path).resolve("Castle - Morne") == "Castle Morne"

    def test_entry_name_scan(self, tmp_path: Path, index: PoiIndex) -> None:
        """Entries whose ``name`` field equals the raw name are found too."""
        write_table(tmp_path, "en", {"gaol.limgrave": "Limgrave Evergaol"})
        assert LabelTextResolver(index, tmp_path).resolve("Evergaol - Limgrave") == "Limgrave Evergaol"

    def test_active_language_then_default(self, tmp_path: Path, index: PoiIndex) -> None:
        """Keys missing from the active language fall back to English."""
        write_table(tmp_path, "en", {"poi.101": "Stormhill Camp", "castle.morne": "Castle Morne"})
        write_table(tmp_path, "fr", {"poi.101": "Camp de Stormhill"})
        resolver = LabelTextResolver(index, tmp_path, lang="fr")
        assert resolver.resolve("Camp - Stormhill") == "Camp de Stormhill"
        assert resolver.resolve("Castle - Morne") == "Castle Morne"

    def test_missing_localization_falls_back_to_stripped_name(self, tmp_path: Path, index: PoiIndex) -> None:
        """Unresolvable names show their detail part."""
        resolver = LabelTextResolver(index, tmp_path)
        assert resolver.resolve_with_status("Fort - Nokron") == ("Nokron", False)
        assert resolver.resolve_with_status("Field Boss - Troll") == ("Troll", False)

    def test_blank_name(self, tmp_path: Path, index: PoiIndex) -> None:
        """Blank names resolve to nothing."""
        assert LabelTextResolver(index, tmp_path).resolve_with_status("  ") == ("", False)

    def test_blank_translation_ignored(self, tmp_path: Path, index: PoiIndex) -> None:
        """Whitespace-only strings count as missing."""
        write_table(tmp_path, "en", {"poi.101": "  "})
        assert LabelTextResolver(index, tmp_path).resolve_with_status("Camp - Stormhill")[1] is False

    def test_tables_cached_per_language(self, tmp_path: Path, index: PoiIndex) -> None:
        """Tables are read once until cleared."""
        write_table(tmp_path, "en", {"poi.101": "Old"})
        resolver = LabelTextResolver(index, tmp_path)
        assert resolver.resolve("Camp - Stormhill") == "Old"
        write_table(tmp_path, "en", {"poi.101": "New"})
        assert resolver.resolve("Camp - Stormhill") == "Old"
        resolver.clear()
        assert resolver.resolve("Camp - Stormhill") == "New"

    def test_invalid_table_treated_as_empty(self, tmp_path: Path, index: PoiIndex) -> None:
        """A corrupt table is logged and ignored."""
        (tmp_path / "en").mkdir()
        (tmp_path / "en" / "poi.json").write_text("{broken", encoding="utf-8")
        assert LabelTextResolver(index, tmp_path).resolve("Camp - Stormhill") == "Stormhill"

    def test_other_tables(self, tmp_path: Path, index: PoiIndex) -> None:
        """localize reads any table in the language folder."""
        write_table(tmp_path, "en", {"meteor": "Meteor Strike"}, filename="special_event.json")
        resolver = LabelTextResolver(index, tmp_path)
        assert resolver.localize("meteor", "special_event.json") == "Meteor Strike"
        assert resolver.localize("meteor") is None
