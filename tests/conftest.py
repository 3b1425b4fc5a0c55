"""Shared fixtures: a small on-disk render scenario."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from PIL import Image


GRAY = (90, 90, 90, 255)
RED = (255, 0, 0, 255)


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


def _write_png(path: Path, size: tuple[int, int], color: tuple[int, int, int, int]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGBA", size, color).save(path)


@pytest.fixture
def scenario(tmp_path: Path) -> tuple[Path, Path]:
    """Write a config, inputs and assets for pattern 042.

    Returns:
        The (config path, pattern path) pair.
    """
    root = tmp_path / "config"
    config_path = root / "appsettings.json"
    _write_json(
        config_path,
        {
            "BackgroundPath": "bg.png",
            "SummaryPath": "summary.json",
            "IndexPath": "index.json",
            "OutputFolder": "out",
            "AssetsFolder": "assets",
            "I18nFolder": "i18n",
            "AttachPointsFolder": "attach",
            "MapRawFolder": "raw",
            "MajorBase": {"Camp": {"WidthPx": 20, "HeightPx": 20}},
            "LabelOffsets": {"MajorBase": {"Camp": {"dx": 0, "dy": 60}}},
            "Text": {"Styles": {"poiStandard": {"FontSizePx": 14, "Fill": "#FFFFFF"}}},
        },
    )
    _write_png(root / "bg.png", (256, 256), GRAY)
    _write_png(root / "assets" / "camp.png", (10, 10), RED)
    _write_png(root / "raw" / "crater.png", (8, 8), (0, 0, 0, 0))
    _write_json(
        root / "index.json",
        {"entries": [{"name": "Camp - Stormhill", "category": "Camp", "icon": "assets/camp.png", "id": 101}]},
    )
    _write_json(root / "summary.json", {"patterns": [{"id": "042", "special": "2", "nightlord": "1"}]})
    _write_json(root / "i18n" / "en" / "poi.json", {"poi.101": "Stormhill Camp"})
    _write_json(root / "i18n" / "fr" / "poi.json", {"poi.101": "Camp de Stormhill"})

    pattern_path = tmp_path / "pattern_042.json"
    _write_json(
        pattern_path,
        {
            "pois": [
                {"name": "Camp - Stormhill", "x": 0, "z": 0},
                {"name": "Castle - Morne", "x": 300, "z": 300},
                {"name": "Mystery", "x": 10, "z": 10},
            ]
        },
    )
    return config_path, pattern_path
