"""Ordered icon and label passes over a shared render session."""

from __future__ import annotations

import logging
import re
import sys
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import asdict, dataclass
from functools import cached_property
from pathlib import Path
from typing import Any, Protocol

from PIL import Image
from tqdm import tqdm

from .cache import ExistsCache, IconCache, fit_within
from .classify import CATEGORY_DESCRIPTORS, CategoryClassifier, CategoryDescriptor, CategoryTag
from .config import AppConfig, as_float, as_int, as_str, lookup
from .data import IndexEntry, PatternDoc, Poi, PoiIndex, SummaryPattern, load_json
from .effects import composite_clipped
from .fonts import FontLoader
from .geo import project, project_exact, round_half_away
from .i18n import LabelTextResolver
from .overlays import shifting_attach_points_for_special
from .overrides import SHIFTING_EARTH_GROUP, OverrideResolver, Placement
from .render_constants import BANNER_BOTTOM_MARGIN, DAY_PREFIX_STYLE, DEFAULT_STYLE
from .styles import StyleResolver, TextStyle
from .text import GlyphLayoutEngine


__all__ = [
    "ClassifiedPoi",
    "IconPass",
    "LabelPass",
    "PassStats",
    "RenderPass",
    "RenderSession",
    "ShiftingEarthPass",
    "SpecialEventBannerPass",
    "SpecialIconPass",
    "build_default_passes",
    "run_passes",
    "summarize",
]

logger = logging.getLogger(__name__)

_DAY_TOKEN = re.compile(r"\s*\(Day ([12])\)")
_BOSS_TOKEN = re.compile("boss", re.IGNORECASE)

SPECIAL_EVENT_TABLE = "special_event.json"
EXTRA_BOSS_EVENTS = frozenset({"day1_extra_night_boss", "day2_extra_night_boss"})
TOWNSHIP_POI = "Township - Township"
MERCHANT_POI = "Event - Scale-Bearing Merchant"


@dataclass
class PassStats:
    """Counters reported by one pass."""

    seen: int = 0
    matched_index: int = 0
    drawn: int = 0
    skipped_category: int = 0
    missing_icon: int = 0
    missing_localization: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class ClassifiedPoi:
    """A POI together with its index entry and category."""

    poi: Poi
    entry: IndexEntry | None
    tag: CategoryTag | None


class RenderSession:
    """Everything one render shares between passes.

    Owns the canvas and every cache; :meth:`close` releases them. Usable as a
    context manager.
    """

    def __init__(
        self,
        canvas: Image.Image,
        config: AppConfig,
        pattern: PatternDoc,
        index: PoiIndex,
        summary: SummaryPattern,
    ) -> None:
        self.canvas = canvas
        self.config = config
        self.pattern = pattern
        self.index = index
        self.summary = summary

        self.icons = IconCache()
        self.exists = ExistsCache()
        self.fonts = FontLoader(config.base_dir)
        self.text = GlyphLayoutEngine(self.fonts)
        self.styles = StyleResolver(config.tree)
        self.overrides = OverrideResolver(config.tree, ((p.x, p.z) for p in pattern.pois))
        self.labels = LabelTextResolver(index, config.i18n_folder, config.lang)
        self.classifier = CategoryClassifier()

    @property
    def size(self) -> tuple[int, int]:
        return self.canvas.size

    @cached_property
    def classified(self) -> tuple[ClassifiedPoi, ...]:
        """Every POI of the pattern, classified once."""
        items = []
        for poi in self.pattern.pois:
            entry = self.index.get(poi.key)
            items.append(ClassifiedPoi(poi, entry, self.classifier.classify(poi, entry)))
        return tuple(items)

    def pois_in(self, group: str) -> list[ClassifiedPoi]:
        return [item for item in self.classified if item.tag is not None and item.tag.group == group]

    def has_poi(self, name: str) -> bool:
        wanted = name.strip()
        return any(poi.key == wanted for poi in self.pattern.pois)

    def close(self) -> None:
        """Release cached images, fonts and string tables."""
        released = self.icons.clear()
        self.exists.clear()
        self.fonts.clear()
        self.labels.clear()
        logger.debug("Render session closed", extra={"released_images": released})

    def __enter__(self) -> RenderSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class RenderPass(Protocol):
    """One step of the label pipeline."""

    name: str

    def run(self, session: RenderSession, stats: PassStats | None = None) -> PassStats:
        """Draw onto ``session.canvas`` and report counters.

        Counters are accumulated into ``stats`` when given, so a caller
        keeps what was counted before a failure.
        """
        ...


# -----------------------------------------------------------------------------
# Icons
# -----------------------------------------------------------------------------


class IconPass:
    """Composite the icons of one category group."""

    def __init__(self, descriptor: CategoryDescriptor) -> None:
        self.descriptor = descriptor
        self.name = f"{descriptor.group} icons"

    @staticmethod
    def icon_path(session: RenderSession, item: ClassifiedPoi) -> Path | None:
        """The ``IconOverrides`` file if it exists, else the index icon."""
        config = session.config
        override = config.icon_override(item.poi.name)
        if override:
            path = config.asset_path(override)
            if session.exists.exists(path):
                return path
            logger.warning("Icon override not found for %s: %s", item.poi.name, path)

        icon_ref = item.entry.icon if item.entry is not None else None
        if not icon_ref:
            return None
        path = config.asset_path(icon_ref)
        if not session.exists.exists(path):
            logger.warning("Icon not found for %s: %s", item.poi.name, path)
            return None
        return path

    def run(self, session: RenderSession, stats: PassStats | None = None) -> PassStats:
        stats = PassStats() if stats is None else stats
        config = session.config
        for item in session.pois_in(self.descriptor.group):
            tag = item.tag
            if tag is None:
                continue
            stats.seen += 1
            if item.entry is not None:
                stats.matched_index += 1

            box = config.size_box(tag.group, tag.subtype)
            if box is None:
                logger.debug("No icon box for %s (%s)", tag, item.poi.name)
                stats.skipped_category += 1
                continue

            icon_path = self.icon_path(session, item)
            if icon_path is None:
                stats.missing_icon += 1
                continue

            try:
                icon = session.icons.get_fitted(icon_path, box.as_tuple())
            except OSError as e:
                logger.warning("Icon not readable for %s: %s (%s)", item.poi.name, icon_path, e)
                stats.missing_icon += 1
                continue
            ex, ey = project_exact(item.poi.x, item.poi.z, *session.size)
            left = round_half_away(ex - icon.width / 2.0)
            top = round_half_away(ey - icon.height / 2.0)
            if composite_clipped(session.canvas, icon, left, top):
                stats.drawn += 1
        return stats


# -----------------------------------------------------------------------------
# Labels
# -----------------------------------------------------------------------------


class LabelPass:
    """Draw the labels of one category group."""

    def __init__(self, descriptor: CategoryDescriptor) -> None:
        self.descriptor = descriptor
        self.name = f"{descriptor.group} labels"

    def style_for(self, session: RenderSession, tag: CategoryTag, placement: Placement) -> TextStyle:
        """Override style, then ``LabelStyles``, then the group default."""
        name = placement.style or session.styles.style_name_for(tag.group, tag.subtype)
        return session.styles.resolve(name, self.descriptor.default_style)

    def run(self, session: RenderSession, stats: PassStats | None = None) -> PassStats:
        stats = PassStats() if stats is None else stats
        width, height = session.size
        for item in session.pois_in(self.descriptor.group):
            tag = item.tag
            if tag is None:
                continue
            stats.seen += 1
            if item.entry is not None:
                stats.matched_index += 1
            if not self.descriptor.labels(tag.subtype):
                stats.skipped_category += 1
                continue

            text, localized = session.labels.resolve_with_status(item.poi.name)
            if not localized:
                stats.missing_localization += 1
                logger.debug("No localisation for %s", item.poi.name)

            day = _DAY_TOKEN.search(item.poi.name)
            if day is not None:
                text = _DAY_TOKEN.sub("", text)
            if not text.strip():
                continue

            x, z = session.overrides.reanchor(tag, item.poi.x, item.poi.z)
            px, py = project(x, z, width, height)
            opx, opy = project(item.poi.x, item.poi.z, width, height)
            placement = session.overrides.resolve(tag, item.poi.x, item.poi.z, opx, opy)
            style = self.style_for(session, tag, placement)
            cx, cy = px + placement.dx, py + placement.dy

            if day is not None:
                day_style = session.styles.resolve(DAY_PREFIX_STYLE, placement.style, self.descriptor.default_style)
                box = session.text.draw_stacked(
                    session.canvas,
                    [(f"Day {day.group(1)}", day_style), (text, style)],
                    cx,
                    cy,
                    anchor=placement.anchor,
                )
            else:
                box = session.text.draw_multiline(session.canvas, text, style, cx, cy, anchor=placement.anchor)
            if box is not None:
                stats.drawn += 1
        return stats


class ShiftingEarthPass:
    """Label the attach points of the active shifting-earth variant."""

    name = "Shifting earth labels"

    def run(self, session: RenderSession, stats: PassStats | None = None) -> PassStats:
        stats = PassStats() if stats is None else stats
        filename = shifting_attach_points_for_special(session.summary.special)
        if filename is None:
            return stats
        path = session.config.attach_points_folder / filename
        if not session.exists.exists(path):
            logger.warning("Attach points not found: %s", path)
            return stats

        points = load_json(path, "Attach points JSON")
        if not isinstance(points, list):
            logger.warning("Attach points file is not an array: %s", path)
            return stats

        styles = session.styles
        style_name = "poiShiftingEarth" if styles.has_style("poiShiftingEarth") else DEFAULT_STYLE

        for point in points:
            px = as_int(lookup(point, "px"))
            py = as_int(lookup(point, "py"))
            if px is None or py is None:
                continue
            stats.seen += 1

            text = self._text_for(session, point, stats)
            if not text or not text.strip():
                continue

            x = as_float(lookup(point, "x"))
            z = as_float(lookup(point, "z"))
            placement = session.overrides.resolve(SHIFTING_EARTH_GROUP, x, z, px, py)
            style = styles.resolve(placement.style or style_name)
            box = session.text.draw_multiline(
                session.canvas,
                text,
                style,
                px + placement.dx,
                py + placement.dy,
                anchor=placement.anchor,
            )
            if box is not None:
                stats.drawn += 1
        return stats

    @staticmethod
    def _text_for(session: RenderSession, point: Any, stats: PassStats) -> str | None:
        key = as_str(lookup(point, "i18nKey"))
        if key is not None:
            text = session.labels.localize(key)
            if text is not None:
                stats.matched_index += 1
                return text
        name = as_str(lookup(point, "name"))
        if name is None:
            stats.missing_localization += 1
            return None
        text, localized = session.labels.resolve_with_status(name)
        if localized:
            stats.matched_index += 1
        else:
            stats.missing_localization += 1
        return text


class SpecialEventBannerPass:
    """Draw the special-event banner along the bottom edge."""

    name = "Special event banner"

    def event_key(self, session: RenderSession) -> str | None:
        """The summary's event key, else a reverse lookup of its display value."""
        summary = session.summary
        if summary.special_event_key:
            return summary.special_event_key
        if not summary.special_event:
            return None
        labels = session.labels
        wanted = summary.special_event.strip()
        for lang in dict.fromkeys((labels.lang, labels.default_lang)):
            for key, value in labels.table(lang, SPECIAL_EVENT_TABLE).items():
                if value.strip() == wanted:
                    return key
        return None

    def banner_spans(self, session: RenderSession, text: str, key: str | None) -> list[tuple[str, TextStyle]]:
        styles = session.styles
        banner = styles.resolve("poiBanner")
        if key not in EXTRA_BOSS_EVENTS:
            return [(text, banner)]
        match = _BOSS_TOKEN.search(text)
        if match is None:
            return [(text, banner)]
        boss = styles.resolve("poiBannerBoss", "poiBanner")
        return [
            (text[: match.start()], banner),
            (match.group(0), boss),
            (text[match.end() :], banner),
        ]

    def run(self, session: RenderSession, stats: PassStats | None = None) -> PassStats:
        stats = PassStats() if stats is None else stats
        summary = session.summary
        if not summary.has_special_event:
            return stats
        stats.seen += 1

        key = self.event_key(session)
        text = session.labels.localize(key, SPECIAL_EVENT_TABLE) if key else None
        if text is None:
            stats.missing_localization += 1
            text = summary.special_event or key
        else:
            stats.matched_index += 1
        if not text or not text.strip():
            return stats

        if key in EXTRA_BOSS_EVENTS and summary.extra_boss_key:
            boss_name = session.labels.localize(summary.extra_boss_key)
            if boss_name:
                text = f"{text} - {boss_name}"
            else:
                stats.missing_localization += 1

        spans = self.banner_spans(session, text, key)
        width, height = session.size
        size = max(style.size_px for _, style in spans)
        cy = height - BANNER_BOTTOM_MARGIN - size // 2
        if session.text.draw_spans(session.canvas, spans, width // 2, cy) is not None:
            stats.drawn += 1
        return stats


class SpecialIconPass:
    """Draw the spawn-hint icon for townships and the merchant."""

    name = "Special icon"

    @staticmethod
    def icon_name(has_township: bool, has_merchant: bool) -> str | None:
        if has_township and has_merchant:
            return "spawn_both.png"
        if has_township:
            return "spawn_village.png"
        if has_merchant:
            return "spawn_merchant.png"
        return None

    def run(self, session: RenderSession, stats: PassStats | None = None) -> PassStats:
        stats = PassStats() if stats is None else stats
        name = self.icon_name(session.has_poi(TOWNSHIP_POI), session.has_poi(MERCHANT_POI))
        if name is None:
            return stats
        stats.seen += 1

        path = session.config.assets_folder / "misc" / name
        if not session.exists.exists(path):
            logger.warning("Special icon not found: %s", path)
            stats.missing_icon += 1
            return stats

        settings = session.config.special_icon
        try:
            original = session.icons.get_original(path)
            new_w, new_h = fit_within(original.size, settings.box)
            icon = session.icons.get_resized(path, new_w, new_h)
        except OSError as e:
            logger.warning("Special icon not readable: %s (%s)", path, e)
            stats.missing_icon += 1
            return stats

        width, height = session.size
        margin = settings.margin_with_banner if session.summary.has_special_event else settings.margin_icon_only
        left = width // 2 - new_w // 2
        top = (height - margin) - new_h // 2
        if composite_clipped(session.canvas, icon, left, top):
            stats.drawn += 1
        return stats


def build_default_passes(
    descriptors: Sequence[CategoryDescriptor] = CATEGORY_DESCRIPTORS,
) -> list[RenderPass]:
    """Icons for every group, then labels, then the bottom-edge furniture."""
    passes: list[RenderPass] = [IconPass(d) for d in descriptors if d.draws_icons]
    passes.extend(LabelPass(d) for d in descriptors if d.draws_labels)
    passes.extend([ShiftingEarthPass(), SpecialEventBannerPass(), SpecialIconPass()])
    return passes


def run_passes(
    passes: Iterable[RenderPass],
    session: RenderSession,
    show_progress: bool = True,
) -> dict[str, PassStats]:
    """Run every pass in order.

    A pass that raises is logged with its name and the remaining passes
    still run.

    Args:
        passes: The passes to run.
        session: The shared render session.
        show_progress: Whether to display a progress bar (TTY only).

    Returns:
        Counters per pass name. A failed pass reports what it counted
        before the error.
    """
    passes = list(passes)
    results: dict[str, PassStats] = {}
    show_progress = show_progress and sys.stderr.isatty()
    with tqdm(
        total=len(passes),
        desc="Rendering",
        unit="pass",
        bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt}",
        disable=not show_progress,
    ) as pbar:
        for render_pass in passes:
            pbar.set_description(render_pass.name)
            stats = PassStats()
            try:
                stats = render_pass.run(session, stats)
            except Exception:
                logger.exception("Pass '%s' failed; continuing", render_pass.name)
            results[render_pass.name] = stats
            logger.info("[%s] %s", render_pass.name, _format_stats(stats))
            pbar.update(1)
    return results


def _format_stats(stats: PassStats) -> str:
    return " ".join(f"{key}={value}" for key, value in stats.as_dict().items())


def summarize(results: Mapping[str, PassStats]) -> PassStats:
    """Sum the counters of every pass."""
    total = PassStats()
    for stats in results.values():
        for key, value in stats.as_dict().items():
            setattr(total, key, getattr(total, key) + value)
    return total
