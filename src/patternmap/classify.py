"""POI classification and the per-category descriptor table."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .data import IndexEntry, Poi
from .render_constants import DEFAULT_STYLE


__all__ = [
    "CATEGORY_DESCRIPTORS",
    "INDEX_CATEGORIES",
    "NAME_PREFIXES",
    "CategoryClassifier",
    "CategoryDescriptor",
    "CategoryTag",
    "NamePrefix",
    "get_descriptor",
    "normalize_type",
]

logger = logging.getLogger(__name__)


def normalize_type(value: str) -> str:
    """Collapse spaces and hyphens to underscores (``"Great Church"`` -> ``"Great_Church"``)."""
    return value.strip().replace(" ", "_").replace("-", "_")


@dataclass(frozen=True)
class CategoryTag:
    """Semantic classification of a POI: a category group and its subtype."""

    group: str
    subtype: str

    def __str__(self) -> str:
        return f"{self.group}/{self.subtype}"


@dataclass(frozen=True)
class CategoryDescriptor:
    """Declarative description of how one category group is rendered.

    Attributes:
        group: Group name; also the config section holding size boxes and
            the key under ``LabelOffsets``, ``LabelStyles`` and
            ``LabelOverrides``.
        subtypes: Known subtypes, used for listing and validation.
        default_style: Text style used when nothing more specific applies.
        draws_icons: Whether an icon pass runs for this group.
        draws_labels: Whether a label pass runs for this group.
        labeled_subtypes: Subtypes that get labels; None means all.
    """

    group: str
    subtypes: tuple[str, ...]
    default_style: str = DEFAULT_STYLE
    draws_icons: bool = True
    draws_labels: bool = True
    labeled_subtypes: frozenset[str] | None = None

    def labels(self, subtype: str) -> bool:
        if not self.draws_labels:
            return False
        return self.labeled_subtypes is None or subtype in self.labeled_subtypes


# Ordered as the passes run: later groups draw over earlier ones.
CATEGORY_DESCRIPTORS: tuple[CategoryDescriptor, ...] = (
    CategoryDescriptor("MajorBase", ("Camp", "Fort", "Great_Church", "Ruins")),
    CategoryDescriptor(
        "MinorBase",
        ("Church", "Small_Camp", "Sorcerers_Rise", "Township"),
        labeled_subtypes=frozenset({"Sorcerers_Rise"}),
    ),
    CategoryDescriptor(
        "Event",
        ("Scale_Bearing_Merchant", "Meteor_Strike", "Walking_Mausoleum"),
        draws_labels=False,
    ),
    CategoryDescriptor("Evergaol", ("Default",)),
    CategoryDescriptor("FieldBoss", ("Arena_Boss", "Field_Boss", "Strong_Field_Boss", "Castle")),
    CategoryDescriptor("NightBoss", ("Default",), default_style="poiNightBoss"),
)

_DESCRIPTORS_BY_GROUP = {d.group: d for d in CATEGORY_DESCRIPTORS}

# Index ``category`` values (normalised) carried by the metadata index
INDEX_CATEGORIES: dict[str, CategoryTag] = {
    "Camp": CategoryTag("MajorBase", "Camp"),
    "Fort": CategoryTag("MajorBase", "Fort"),
    "Great_Church": CategoryTag("MajorBase", "Great_Church"),
    "Ruins": CategoryTag("MajorBase", "Ruins"),
    "Church": CategoryTag("MinorBase", "Church"),
    "Small_Camp": CategoryTag("MinorBase", "Small_Camp"),
    "Sorcerers_Rise": CategoryTag("MinorBase", "Sorcerers_Rise"),
    "Township": CategoryTag("MinorBase", "Township"),
}


@dataclass(frozen=True)
class NamePrefix:
    """A ``"{Type} -"`` name prefix for categories not carried in the index.

    ``subtype`` None means the subtype is the normalised detail part of the
    name (used for events).
    """

    type_name: str
    group: str
    subtype: str | None

    def spellings(self) -> tuple[str, ...]:
        spaced = self.type_name.casefold()
        underscored = spaced.replace(" ", "_")
        return (spaced,) if spaced == underscored else (spaced, underscored)


# First match wins.
NAME_PREFIXES: tuple[NamePrefix, ...] = (
    NamePrefix("Event", "Event", None),
    NamePrefix("Evergaol", "Evergaol", "Default"),
    NamePrefix("Arena Boss", "FieldBoss", "Arena_Boss"),
    NamePrefix("Strong Field Boss", "FieldBoss", "Strong_Field_Boss"),
    NamePrefix("Field Boss", "FieldBoss", "Field_Boss"),
    NamePrefix("Castle", "FieldBoss", "Castle"),
    NamePrefix("Night Boss", "NightBoss", "Default"),
)


def get_descriptor(group: str) -> CategoryDescriptor | None:
    """Return the descriptor for ``group``."""
    return _DESCRIPTORS_BY_GROUP.get(group)


class CategoryClassifier:
    """Map a raw POI name (and optional index entry) to a category tag."""

    def __init__(
        self,
        index_categories: dict[str, CategoryTag] | None = None,
        prefixes: tuple[NamePrefix, ...] = NAME_PREFIXES,
    ) -> None:
        self.index_categories = INDEX_CATEGORIES if index_categories is None else index_categories
        self.prefixes = prefixes

    def classify(self, poi: Poi | str, entry: IndexEntry | None = None) -> CategoryTag | None:
        """Classify a POI.

        The index entry's category is tried first; otherwise the name is
        matched against the ordered prefix list.

        Args:
            poi: The POI (or its raw name).
            entry: The POI's index entry, if any.

        Returns:
            The category tag, or None when nothing matches.
        """
        name = poi.name if isinstance(poi, Poi) else poi

        if entry is not None and entry.category:
            tag = self.index_categories.get(normalize_type(entry.category))
            if tag is not None:
                return tag

        return self._classify_by_prefix(name)

    def _classify_by_prefix(self, name: str) -> CategoryTag | None:
        name = name.strip()
        for prefix in self.prefixes:
            for spelling in prefix.spellings():
                marker = f"{spelling} -"
                if name[: len(marker)].casefold() != marker:
                    continue
                subtype = prefix.subtype or normalize_type(name[len(marker) :].strip())
                if not subtype:
                    return None
                return CategoryTag(prefix.group, subtype)
        return None
