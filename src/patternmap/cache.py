"""In-memory caches for decoded image assets and file lookups.

Caches are owned by a render session rather than the module, so every
render starts cold and releases its images when the session closes.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Any

from PIL import Image


__all__ = [
    "ExistsCache",
    "IconCache",
    "fit_within",
    "normalize_cache_path",
]


logger = logging.getLogger(__name__)


def normalize_cache_path(path: str | os.PathLike[str]) -> str:
    """Return a case-insensitive absolute key for ``path``."""
    return os.path.normcase(os.path.abspath(os.fspath(path))).casefold()


def fit_within(size: tuple[int, int], box: tuple[int, int]) -> tuple[int, int]:
    """Compute the aspect-preserving size that fits ``size`` inside ``box``.

    Args:
        size: The source (width, height).
        box: The bounding (width, height).

    Returns:
        The target (width, height), each at least 1 pixel.
    """
    src_w, src_h = size
    box_w, box_h = box
    if src_w <= 0 or src_h <= 0:
        return max(1, box_w), max(1, box_h)
    scale = min(box_w / src_w, box_h / src_h)
    new_w = max(1, min(box_w, int(round(src_w * scale))))
    new_h = max(1, min(box_h, int(round(src_h * scale))))
    return new_w, new_h


class IconCache:
    """Two-tier memo of decoded icons and their resized variants.

    Originals are keyed by absolute path (case-insensitive); resized images
    by the exact ``(path, width, height)``. Returned images belong to the
    cache and must not be modified by callers.
    """

    def __init__(self) -> None:
        self._originals: dict[str, Image.Image] = {}
        self._resized: dict[tuple[str, int, int], Image.Image] = {}
        self._lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0}

    def get_original(self, path: str | os.PathLike[str]) -> Image.Image:
        """Decode ``path`` once and return the shared RGBA image.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        key = normalize_cache_path(path)
        with self._lock:
            cached = self._originals.get(key)
            if cached is not None:
                self._stats["hits"] += 1
                return cached
            self._stats["misses"] += 1

        logger.debug("Icon cache miss", extra={"path": key, "tier": "original"})
        with Image.open(path) as img:
            decoded = img.convert("RGBA")
        decoded.load()

        with self._lock:
            # Another thread may have populated the entry meanwhile; keep the first.
            existing = self._originals.setdefault(key, decoded)
        if existing is not decoded:
            decoded.close()
        return existing

    def get_resized(self, path: str | os.PathLike[str], width: int, height: int) -> Image.Image:
        """Return ``path`` resized to exactly ``width`` x ``height``.

        Callers compute the aspect-preserving target size first (see
        :func:`fit_within`); no fuzzy size matching is done here.

        Args:
            path: Path to the image asset.
            width: Target width in pixels.
            height: Target height in pixels.

        Returns:
            The cached resized image.
        """
        key = (normalize_cache_path(path), int(width), int(height))
        with self._lock:
            cached = self._resized.get(key)
            if cached is not None:
                self._stats["hits"] += 1
                return cached
            self._stats["misses"] += 1

        original = self.get_original(path)
        if original.size == (key[1], key[2]):
            resized = original.copy()
        else:
            resized = original.resize((key[1], key[2]), Image.Resampling.LANCZOS)
        logger.debug("Icon cache miss", extra={"path": key[0], "tier": "resized"})

        with self._lock:
            existing = self._resized.setdefault(key, resized)
        if existing is not resized:
            resized.close()
        return existing

    def get_fitted(self, path: str | os.PathLike[str], box: tuple[int, int]) -> Image.Image:
        """Return ``path`` scaled to fit inside ``box`` with its aspect kept."""
        original = self.get_original(path)
        width, height = fit_within(original.size, box)
        return self.get_resized(path, width, height)

    def stats(self) -> dict[str, Any]:
        """Get statistics about the cache.

        Returns:
            Dict with hit/miss counters and the entry count of each tier.
        """
        with self._lock:
            return {
                "hits": self._stats["hits"],
                "misses": self._stats["misses"],
                "originals": len(self._originals),
                "resized": len(self._resized),
            }

    def clear(self) -> int:
        """Close and drop every cached image.

        Returns:
            Number of images released.
        """
        with self._lock:
            images = list(self._originals.values()) + list(self._resized.values())
            self._originals.clear()
            self._resized.clear()
        for image in images:
            image.close()
        logger.debug("Cleared %d cached images", len(images))
        return len(images)


class ExistsCache:
    """Memo of file-existence checks for asset paths."""

    def __init__(self) -> None:
        self._known: dict[str, bool] = {}
        self._lock = threading.Lock()

    def exists(self, path: str | os.PathLike[str] | None) -> bool:
        """Return whether ``path`` is an existing file, caching the answer."""
        if path is None or not os.fspath(path).strip():
            return False
        key = normalize_cache_path(path)
        with self._lock:
            known = self._known.get(key)
        if known is not None:
            return known
        found = Path(path).is_file()
        with self._lock:
            self._known[key] = found
        return found

    def clear(self) -> None:
        """Forget all cached answers."""
        with self._lock:
            self._known.clear()
