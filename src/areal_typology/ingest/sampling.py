"""Build the working sample: one inventory per language code, located and labelled.

Steps:
1. group inventory rows by ``sample_id``;
2. pick one inventory per language code at random (seeded);
3. resolve family, macro-area and coordinates, falling back to Glottolog;
4. drop languages without coordinates.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

import numpy as np

from areal_typology.ingest.models import InventoryRow, LanguageRecord
from areal_typology.normalise.phoneme import inventory_features
from areal_typology.utils.glottolog import GlottologTree

logger = logging.getLogger(__name__)


@dataclass
class Inventory:
    """All phonemes recorded for one ``sample_id``."""

    head: InventoryRow
    phonemes: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Sample:
    """Working sample plus the feature set of every sampled language."""

    records: tuple[LanguageRecord, ...]
    features: Mapping[str, frozenset[str]]

    def __len__(self) -> int:
        return len(self.records)

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(r.sample_id for r in self.records)

    def feature_counts(self) -> dict[str, int]:
        """Number of sampled languages exhibiting each feature."""
        counts: dict[str, int] = defaultdict(int)
        for record in self.records:
            for feature in self.features[record.sample_id]:
                counts[feature] += 1
        return dict(counts)

    def restrict(self, keep: Iterable[str]) -> Sample:
        """Sub-sample holding only the given sample ids, in sample order."""
        keep_set = set(keep)
        records = tuple(r for r in self.records if r.sample_id in keep_set)
        return Sample(
            records=records,
            features={r.sample_id: self.features[r.sample_id] for r in records},
        )


def group_inventories(rows: Iterable[InventoryRow]) -> dict[str, Inventory]:
    inventories: dict[str, Inventory] = {}
    for row in rows:
        inv = inventories.get(row.sample_id)
        if inv is None:
            inv = inventories[row.sample_id] = Inventory(head=row)
        inv.phonemes.append(row.phoneme)
    return inventories


def sample_one_per_code(inventories: Mapping[str, Inventory], seed: int) -> list[Inventory]:
    """Choose one inventory per language code.

    Candidates are sorted by sample id before drawing so the choice depends
    only on the seed, not on file order.
    """
    by_code: dict[str, list[str]] = defaultdict(list)
    for sample_id, inv in inventories.items():
        by_code[inv.head.language_code].append(sample_id)

    rng = np.random.default_rng(seed)
    chosen: list[Inventory] = []
    for code in sorted(by_code):
        candidates = sorted(by_code[code])
        pick = candidates[int(rng.integers(len(candidates)))] if len(candidates) > 1 else candidates[0]
        chosen.append(inventories[pick])
    logger.info(
        "Sampled %d inventories from %d (one per language code)",
        len(chosen), len(inventories),
    )
    return chosen


def family_label(
    language_name: str, language_code: str, family_id: str | None, family_name: str | None
) -> str:
    """Grouping label: family name, else family id, else the language itself."""
    return family_name or family_id or language_name or language_code


def locate(inv: Inventory, tree: GlottologTree | None) -> LanguageRecord | None:
    """Resolve family and geography for an inventory; None if it has no coordinates."""
    head = inv.head
    latitude, longitude = head.latitude, head.longitude
    family_id = head.family_id
    macroarea = head.macroarea
    family_name = None

    if tree is not None:
        if latitude is None or longitude is None:
            coords = tree.coordinates(head.language_code)
            if coords is not None:
                latitude, longitude = coords
        family_id = family_id or tree.family_id(head.language_code)
        macroarea = macroarea or tree.macroarea(head.language_code)
        family_name = tree.family_name(family_id)

    if latitude is None or longitude is None:
        return None

    return LanguageRecord(
        sample_id=head.sample_id,
        language_code=head.language_code,
        language_name=head.language_name,
        family_label=family_label(
            head.language_name, head.language_code, family_id, family_name
        ),
        latitude=latitude,
        longitude=longitude,
        family_id=family_id,
        level=head.level,
        macroarea=macroarea,
    )


def build_sample(
    rows: Iterable[InventoryRow],
    tree: GlottologTree | None = None,
    seed: int = 1,
    classes: Mapping[str, Iterable[str]] | None = None,
    collapse_length: bool = True,
) -> Sample:
    """Run the full sampling stage over raw inventory rows."""
    inventories = group_inventories(rows)
    records: list[LanguageRecord] = []
    features: dict[str, frozenset[str]] = {}
    dropped: list[str] = []

    for inv in sample_one_per_code(inventories, seed):
        record = locate(inv, tree)
        if record is None:
            dropped.append(inv.head.language_code)
            continue
        records.append(record)
        features[record.sample_id] = inventory_features(
            inv.phonemes, classes, collapse_length
        )

    if dropped:
        logger.warning(
            "Dropped %d languages without coordinates (e.g. %s)",
            len(dropped), ", ".join(dropped[:5]),
        )
    logger.info(
        "Working sample: %d languages in %d families",
        len(records), len({r.family_label for r in records}),
    )
    return Sample(records=tuple(records), features=features)
