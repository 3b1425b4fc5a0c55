"""Font management utilities."""

from __future__ import annotations

import logging
from pathlib import Path

from matplotlib.font_manager import FontProperties, findfont
from PIL import ImageFont


__all__ = ["FontLoader", "get_fallback_font_path"]

logger = logging.getLogger(__name__)

FontType = ImageFont.FreeTypeFont | ImageFont.ImageFont


def get_fallback_font_path() -> Path | None:
    """Locate the DejaVu Sans TrueType font bundled with matplotlib.

    Matplotlib ships DejaVu Sans, so this resolves on any installation.

    Returns:
        Path to the font file, or None if no font could be found.
    """
    try:
        path = findfont(FontProperties(family=["DejaVu Sans"]), fallback_to_default=True)
    except ValueError:
        return None
    return Path(path) if path else None


class FontLoader:
    """Load and memoise Pillow fonts by (path, size).

    A missing or unreadable font falls back to the default sans-serif font,
    then to Pillow's built-in font. Each missing path is logged once.
    """

    def __init__(self, base_dir: Path | None = None) -> None:
        self.base_dir = base_dir
        self._fonts: dict[tuple[str, int], FontType] = {}
        self._warned: set[str] = set()

    def _resolve(self, font_path: str | None) -> Path | None:
        if not font_path:
            return None
        path = Path(font_path).expanduser()
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        return path

    def load(self, font_path: str | None, size: int) -> FontType:
        """Get a font for ``font_path`` at ``size`` pixels.

        Args:
            font_path: Path to a TrueType/OpenType font, or None for the default.
            size: Font size in pixels.

        Returns:
            A Pillow font object.
        """
        size = max(1, int(size))
        key = (font_path or "", size)
        cached = self._fonts.get(key)
        if cached is not None:
            return cached

        font: FontType | None = None
        path = self._resolve(font_path)
        if path is not None:
            try:
                font = ImageFont.truetype(str(path), size)
            except OSError as e:
                if str(path) not in self._warned:
                    self._warned.add(str(path))
                    logger.warning("Font not usable: %s (%s); using default font", path, e)

        if font is None:
            font = self._load_default(size)

        self._fonts[key] = font
        return font

    def _load_default(self, size: int) -> FontType:
        fallback = get_fallback_font_path()
        if fallback is not None:
            try:
                return ImageFont.truetype(str(fallback), size)
            except OSError as e:
                logger.warning("Default font not usable: %s (%s)", fallback, e)
        return ImageFont.load_default(size=size)

    def clear(self) -> None:
        """Drop all loaded fonts."""
        self._fonts.clear()
