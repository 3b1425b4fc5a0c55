"""Tests for the config module."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from patternmap.config import (
    AppConfig,
    ConfigError,
    IconSettings,
    SizeBox,
    SpecialIconSettings,
    as_int,
    generate_output_filename,
    get_default_config_path,
    load_config,
    lookup,
)


def write_config(tmp_path: Path, data: object) -> Path:
    path = tmp_path / "appsettings.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


MINIMAL = {"BackgroundPath": "bg.png", "SummaryPath": "summary.json"}


class TestLoadConfig:
    """Tests for load_config."""

    def test_relative_paths_resolve_against_config_dir(self, tmp_path: Path) -> None:
        """Paths are relative to the configuration file, not the cwd."""
        config = load_config(write_config(tmp_path, MINIMAL))
        assert config.background_path == (tmp_path / "bg.png").resolve()
        assert config.summary_path == (tmp_path / "summary.json").resolve()
        assert config.base_dir == tmp_path.resolve()

    def test_defaults(self, tmp_path: Path) -> None:
        """Optional folders fall back to their documented defaults."""
        config = load_config(write_config(tmp_path, MINIMAL))
        assert config.output_folder == (tmp_path / "output").resolve()
        assert config.index_path == (tmp_path / "../data/index.json").resolve()
        assert config.assets_folder == (tmp_path / "../assets").resolve()
        assert config.attach_points_folder == (tmp_path / "../data/param/attach_points").resolve()
        assert config.i18n_folder == (tmp_path / "../i18n").resolve()
        assert config.lang == "en"
        assert config.nightlord_folder is None
        assert config.verbose is False

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        """A missing configuration file is fatal."""
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.json")

    def test_invalid_json_raises(self, tmp_path: Path) -> None:
        """Unparseable JSON is fatal."""
        path = tmp_path / "appsettings.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Failed to parse"):
            load_config(path)

    def test_non_object_raises(self, tmp_path: Path) -> None:
        """A JSON array is not a configuration."""
        with pytest.raises(ConfigError, match="not a JSON object"):
            load_config(write_config(tmp_path, [1, 2, 3]))

    def test_missing_required_key_raises(self, tmp_path: Path) -> None:
        """BackgroundPath and SummaryPath are required."""
        with pytest.raises(ConfigError, match="BackgroundPath"):
            load_config(write_config(tmp_path, {"SummaryPath": "s.json"}))

    def test_env_var_selects_default_path(self, tmp_path: Path) -> None:
        """PATTERNMAP_CONFIG overrides ./appsettings.json."""
        path = write_config(tmp_path, MINIMAL)
        with patch.dict("os.environ", {"PATTERNMAP_CONFIG": str(path)}):
            assert get_default_config_path() == path
            assert load_config().background_path == (tmp_path / "bg.png").resolve()

    def test_default_path_is_cwd(self) -> None:
        """Without the env var the cwd file is used."""
        with patch.dict("os.environ", {}, clear=True):
            assert get_default_config_path() == Path.cwd() / "appsettings.json"

    def test_tree_is_read_only(self, tmp_path: Path) -> None:
        """The JSON tree cannot be mutated during a render."""
        config = load_config(write_config(tmp_path, {**MINIMAL, "Text": {"FontSizePx": 20}}))
        with pytest.raises(TypeError):
            config.tree["Text"]["FontSizePx"] = 99  # type: ignore[index]

    def test_verbose_flag(self, tmp_path: Path) -> None:
        """Verbose is only enabled by a literal true."""
        assert load_config(write_config(tmp_path, {**MINIMAL, "Verbose": True})).verbose is True


class TestAppConfig:
    """Tests for AppConfig accessors."""

    def make(self, tmp_path: Path, **extra: object) -> AppConfig:
        return AppConfig.from_mapping({**MINIMAL, **extra}, tmp_path)

    def test_size_box(self, tmp_path: Path) -> None:
        """Per group/subtype boxes are read from the group section."""
        config = self.make(tmp_path, MajorBase={"Camp": {"WidthPx": 48, "HeightPx": 40}})
        assert config.size_box("MajorBase", "Camp") == SizeBox(48, 40)
        assert config.size_box("MajorBase", "Fort") is None

    def test_malformed_size_box_ignored(self, tmp_path: Path) -> None:
        """Boxes without positive sizes are ignored."""
        config = self.make(tmp_path, MajorBase={"Camp": {"WidthPx": 0, "HeightPx": 40}})
        assert config.size_box("MajorBase", "Camp") is None

    def test_asset_path_under_assets_folder(self, tmp_path: Path) -> None:
        """``assets/...`` references resolve under AssetsFolder."""
        config = self.make(tmp_path, AssetsFolder="art")
        assert config.asset_path("assets/icons/camp.png") == (tmp_path / "art").resolve() / "icons/camp.png"
        assert config.asset_path("assets\\icons\\camp.png") == (tmp_path / "art").resolve() / "icons/camp.png"

    def test_asset_path_other_relative(self, tmp_path: Path) -> None:
        """Anything else is relative to the config directory."""
        config = self.make(tmp_path)
        assert config.asset_path("icons/camp.png") == (tmp_path / "icons/camp.png").resolve()

    def test_icon_override(self, tmp_path: Path) -> None:
        """IconOverrides are keyed by trimmed POI name."""
        config = self.make(tmp_path, IconOverrides={"Camp - Stormhill": "assets/special.png"})
        assert config.icon_override(" Camp - Stormhill ") == "assets/special.png"
        assert config.icon_override("Fort - Nowhere") is None

    def test_output_path(self, tmp_path: Path) -> None:
        """Output is <OutputFolder>/<id>.png."""
        config = self.make(tmp_path, OutputFolder="out")
        assert config.get_output_path("042") == (tmp_path / "out").resolve() / "042.png"
        assert (tmp_path / "out").is_dir()


class TestIconSettings:
    """Tests for IconSettings and SpecialIconSettings."""

    def test_defaults(self) -> None:
        """The nightlord emblem defaults to a 356px square box."""
        settings = IconSettings.from_mapping(None)
        assert settings.fixed_width_px == 356
        assert settings.fixed_height_px == 356
        assert settings.anchor == "bottom-left"

    def test_zero_margins_are_kept(self) -> None:
        """A configured margin of 0 is not treated as missing."""
        settings = IconSettings.from_mapping({"MarginX": 0, "MarginY": 12, "Anchor": "top-right"})
        assert settings.margin_x == 0
        assert settings.margin_y == 12
        assert settings.anchor == "top-right"

    def test_explicit_null_fixed_size(self) -> None:
        """A null fixed size switches to percentage sizing."""
        settings = IconSettings.from_mapping({"FixedWidthPx": None, "FixedHeightPx": None})
        assert settings.fixed_width_px is None
        assert settings.fixed_height_px is None

    def test_special_icon_defaults(self) -> None:
        """The spawn-hint icon box defaults to 172x70 with 28/36 margins."""
        settings = SpecialIconSettings.from_mapping(None)
        assert settings.box == (172, 70)
        assert settings.margin_icon_only == 28
        assert settings.margin_with_banner == 36

    def test_special_icon_overrides(self) -> None:
        """Box and margins are read from their sub-objects."""
        settings = SpecialIconSettings.from_mapping(
            {"IconBox": {"Width": 100, "Height": 50}, "BottomMargins": {"IconOnly": 10}}
        )
        assert settings.box == (100, 50)
        assert settings.margin_icon_only == 10
        assert settings.margin_with_banner == 36


class TestHelpers:
    """Tests for the lenient JSON accessors."""

    def test_lookup_is_case_insensitive(self) -> None:
        """Exact keys win, otherwise case is ignored."""
        data = {"Style": "a", "style": "b", "Anchor": "left"}
        assert lookup(data, "style") == "b"
        assert lookup(data, "anchor") == "left"
        assert lookup(data, "missing", 5) == 5
        assert lookup(None, "x") is None

    def test_as_int(self) -> None:
        """Numbers and numeric strings coerce, booleans do not."""
        assert as_int(3) == 3
        assert as_int(2.6) == 3
        assert as_int(" 7 ") == 7
        assert as_int(True) is None
        assert as_int("x", 0) == 0


class TestOutputFilename:
    """Tests for filename generation."""

    def test_generate_output_filename(self, tmp_path: Path) -> None:
        """The pattern id becomes the file stem."""
        path = generate_output_filename("042", tmp_path / "out")
        assert path == tmp_path / "out" / "042.png"

    def test_unsafe_characters_replaced(self, tmp_path: Path) -> None:
        """Path separators cannot escape the output folder."""
        path = generate_output_filename("a/b:c", tmp_path)
        assert path.parent == tmp_path
        assert "/" not in path.name
        assert ":" not in path.name
