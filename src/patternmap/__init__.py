"""patternmap - Render composite maps for generated level patterns.

This package composites backdrop art, terrain overlays, point-of-interest
icons and glow-haloed labels onto a background image, driven by JSON
configuration, pattern, index and localisation files.
"""

from importlib.metadata import PackageNotFoundError, version


try:
    __version__ = version("patternmap")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = ["__version__"]
