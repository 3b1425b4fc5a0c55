"""Top-level render: load inputs, composite overlays, run passes, save."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from PIL import Image

from .config import AppConfig, generate_output_filename
from .data import (
    MissingResourceError,
    PatternDoc,
    PoiIndex,
    SummaryPattern,
    find_summary,
    load_index,
    load_pattern,
    load_summary,
)
from .overlays import apply_overlays
from .pipeline import PassStats, RenderPass, RenderSession, build_default_passes, run_passes, summarize


__all__ = ["MapRenderer", "RenderResult", "create_map", "load_background"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderResult:
    """Outcome of one render."""

    output_path: Path
    pattern_id: str
    overlays: tuple[str, ...] = ()
    stats: dict[str, PassStats] = field(default_factory=dict)
    unclassified: int = 0

    @property
    def totals(self) -> PassStats:
        return summarize(self.stats)


def load_background(path: Path) -> Image.Image:
    """Open the background image as a fresh RGBA canvas.

    Raises:
        MissingResourceError: If the file does not exist.
    """
    if not path.is_file():
        raise MissingResourceError(f"Background not found: {path}")
    with Image.open(path) as img:
        return img.convert("RGBA")


class MapRenderer:
    """Render one pattern into a composite map image."""

    def __init__(self, config: AppConfig, passes: list[RenderPass] | None = None) -> None:
        self.config = config
        self.passes = passes if passes is not None else build_default_passes()

    def load_inputs(self, pattern_path: Path) -> tuple[PatternDoc, SummaryPattern, PoiIndex]:
        """Load everything a render cannot do without.

        Raises:
            MissingResourceError: If the pattern, summary or index is missing.
            PatternIdentityError: If the pattern has no usable identifier or
                no summary entry.
        """
        pattern = load_pattern(pattern_path)
        summary = find_summary(load_summary(self.config.summary_path), pattern.pattern_id)
        index = load_index(self.config.index_path)
        return pattern, summary, index

    def render(
        self,
        pattern_path: str | os.PathLike[str],
        output_dir: Path | None = None,
        show_progress: bool = True,
    ) -> RenderResult:
        """Render a pattern and save it as PNG.

        Fatal errors are raised before anything is written. Once the core
        inputs are loaded the image is always saved, even if some passes
        failed.

        Args:
            pattern_path: The pattern JSON file.
            output_dir: Directory for the image; defaults to ``OutputFolder``.
            show_progress: Whether to display a progress bar (TTY only).

        Returns:
            The output path and per-pass counters.
        """
        pattern, summary, index = self.load_inputs(Path(pattern_path))
        canvas = load_background(self.config.background_path)

        logger.info(
            "Rendering pattern %s (%d POIs, %dx%d)...",
            pattern.pattern_id,
            len(pattern.pois),
            canvas.width,
            canvas.height,
        )

        with RenderSession(canvas, self.config, pattern, index, summary) as session:
            overlays = apply_overlays(canvas, self.config, summary, session.exists)
            logger.info("Applied %d overlays", len(overlays))

            unclassified = [item.poi.name for item in session.classified if item.tag is None]
            if unclassified:
                logger.info("%d POIs matched no category", len(unclassified))
                logger.debug("Unclassified POIs: %s", ", ".join(unclassified))

            stats = run_passes(self.passes, session, show_progress=show_progress)

        output_path = generate_output_filename(
            pattern.pattern_id, output_dir if output_dir is not None else self.config.output_folder
        )
        logger.info("Saving to %s...", output_path)
        canvas.save(output_path, format="PNG")
        logger.info("Done! Map saved as %s", output_path)

        return RenderResult(
            output_path=output_path,
            pattern_id=pattern.pattern_id,
            overlays=tuple(overlays),
            stats=stats,
            unclassified=len(unclassified),
        )


def create_map(
    config: AppConfig,
    pattern_path: str | os.PathLike[str],
    output_dir: Path | None = None,
    show_progress: bool = True,
) -> RenderResult:
    """Render a pattern with the default passes.

    This is a convenience function that wraps MapRenderer.

    Args:
        config: The loaded configuration.
        pattern_path: The pattern JSON file.
        output_dir: Directory for the image; defaults to ``OutputFolder``.
        show_progress: Whether to display a progress bar (TTY only).

    Returns:
        The render result.
    """
    return MapRenderer(config).render(pattern_path, output_dir=output_dir, show_progress=show_progress)
