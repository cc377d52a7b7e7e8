"""Presence/absence tables for a single feature over a fixed sample."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

import numpy as np

from areal_typology.errors import StructuralError
from areal_typology.geo.neighbours import NeighbourIndex, family_codes
from areal_typology.ingest.models import LanguageRecord


@dataclass(frozen=True, eq=False)
class FeatureTable:
    """Binary presence of one feature, aligned with the sample order."""

    feature_id: str
    language_ids: tuple[str, ...]
    family_labels: tuple[str, ...]
    present: np.ndarray  # (n,) bool
    family_codes: np.ndarray  # (n,) int, dense codes for family_labels

    def __post_init__(self) -> None:
        n = len(self.language_ids)
        if len(self.family_labels) != n or self.present.shape != (n,):
            raise StructuralError(
                f"Feature table for {self.feature_id!r} has misaligned columns"
            )
        self.present.flags.writeable = False
        self.family_codes.flags.writeable = False

    def __len__(self) -> int:
        return len(self.language_ids)

    @property
    def n_present(self) -> int:
        return int(self.present.sum())

    @property
    def n_families_present(self) -> int:
        return int(np.unique(self.family_codes[self.present]).size)

    @property
    def is_degenerate(self) -> bool:
        """True when nothing, or everything, has the feature."""
        return self.n_present == 0 or self.n_present == len(self)

    def observations(self) -> list[dict]:
        """One row per language, as in a long-format observation table."""
        return [
            {
                "feature_id": self.feature_id,
                "language_id": lid,
                "family_label": fam,
                "present": bool(p),
            }
            for lid, fam, p in zip(self.language_ids, self.family_labels, self.present)
        ]

    def check_alignment(self, index: NeighbourIndex) -> None:
        """Fail loudly when the table and the neighbour index disagree on languages."""
        if index.ids != self.language_ids:
            ours, theirs = set(self.language_ids), set(index.ids)
            diff = sorted(ours ^ theirs)
            detail = f"differing ids {diff[:10]}" if diff else "same ids in a different order"
            raise StructuralError(
                f"Feature table {self.feature_id!r} and neighbour index disagree: {detail}"
            )


def build_feature_table(
    feature_id: str,
    records: Iterable[LanguageRecord],
    features: Mapping[str, frozenset[str]],
) -> FeatureTable:
    """Presence of *feature_id* for every record, in record order."""
    records = tuple(records)
    missing = [r.sample_id for r in records if r.sample_id not in features]
    if missing:
        raise StructuralError(f"No inventory for sampled languages: {missing[:10]}")
    labels = tuple(r.family_label for r in records)
    present = np.fromiter(
        (feature_id in features[r.sample_id] for r in records),
        dtype=bool,
        count=len(records),
    )
    return FeatureTable(
        feature_id=feature_id,
        language_ids=tuple(r.sample_id for r in records),
        family_labels=labels,
        present=present,
        family_codes=family_codes(labels),
    )
