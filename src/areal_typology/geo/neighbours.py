"""k-nearest-neighbour index over a distance matrix.

Two modes:

* unrestricted: the k geographically closest other languages;
* family-restricted: out-of-family candidates always rank before
  same-family ones. When a language has fewer than k out-of-family
  candidates its list is padded with the nearest same-family languages and
  the language is flagged in ``degraded``.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Sequence
from dataclasses import dataclass
from functools import cached_property

import numpy as np

from areal_typology.errors import InsufficientNeighboursWarning, StructuralError
from areal_typology.geo.distance import DistanceMatrix

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class NeighbourIndex:
    """Ordered neighbour lists, stored as positions into ``ids``."""

    ids: tuple[str, ...]
    neighbours: np.ndarray  # (n, k_eff) int
    k: int
    family_restricted: bool
    degraded: np.ndarray  # (n,) bool

    def __post_init__(self) -> None:
        self.neighbours.flags.writeable = False
        self.degraded.flags.writeable = False

    @property
    def k_effective(self) -> int:
        return int(self.neighbours.shape[1])

    @property
    def n_degraded(self) -> int:
        return int(self.degraded.sum())

    @cached_property
    def _positions(self) -> dict[str, int]:
        return {lid: i for i, lid in enumerate(self.ids)}

    def neighbours_of(self, language_id: str) -> list[str]:
        try:
            row = self.neighbours[self._positions[language_id]]
        except KeyError:
            raise StructuralError(f"Unknown language id in neighbour index: {language_id}")
        return [self.ids[j] for j in row]

    def as_mapping(self) -> dict[str, list[str]]:
        return {
            lid: [self.ids[j] for j in row]
            for lid, row in zip(self.ids, self.neighbours)
        }

    def degraded_ids(self) -> list[str]:
        return [lid for lid, flag in zip(self.ids, self.degraded) if flag]


def family_codes(labels: Sequence[str]) -> np.ndarray:
    """Dense integer codes for string labels (sorted label order)."""
    _, codes = np.unique(np.asarray(list(labels), dtype=object), return_inverse=True)
    return codes.astype(np.intp)


def build_neighbour_index(
    matrix: DistanceMatrix,
    k: int = 10,
    family_labels: Sequence[str] | None = None,
) -> NeighbourIndex:
    """Find the k nearest other languages for every language in *matrix*.

    Passing *family_labels* (aligned with ``matrix.ids``) selects the
    family-restricted mode. Ties in distance keep input order.
    """
    if k < 1:
        raise ValueError("k must be at least 1")
    n = len(matrix)
    k_eff = min(k, max(n - 1, 0))
    restricted = family_labels is not None
    if restricted and len(family_labels) != n:
        raise StructuralError(
            f"{len(family_labels)} family labels for {n} languages in the distance matrix"
        )
    if k_eff < k:
        logger.warning("Sample has %d languages; using k=%d instead of %d", n, k_eff, k)

    codes = family_codes(family_labels) if restricted else None
    neighbours = np.empty((n, k_eff), dtype=np.intp)
    degraded = np.zeros(n, dtype=bool)
    positions = np.arange(n)

    for i in range(n):
        dist = matrix.values[i]
        if restricted:
            same_family = codes == codes[i]
            # lexsort: last key is primary. Self sorts last via the mask.
            excluded = same_family.astype(np.int8)
            excluded[i] = 2
            order = np.lexsort((positions, dist, excluded))
            chosen = order[:k_eff]
            degraded[i] = bool(same_family[chosen].any())
        else:
            order = np.argsort(dist, kind="stable")
            order = order[order != i]
            chosen = order[:k_eff]
        neighbours[i] = chosen

    if degraded.any():
        flagged = [matrix.ids[i] for i in np.flatnonzero(degraded)]
        message = (
            f"{len(flagged)} languages have fewer than {k_eff} out-of-family "
            f"candidates and were padded with same-family neighbours "
            f"(e.g. {', '.join(flagged[:5])})"
        )
        warnings.warn(message, InsufficientNeighboursWarning, stacklevel=2)

    logger.info(
        "Neighbour index: n=%d k=%d restricted=%s degraded=%d",
        n, k_eff, restricted, int(degraded.sum()),
    )
    return NeighbourIndex(
        ids=matrix.ids,
        neighbours=neighbours,
        k=k,
        family_restricted=restricted,
        degraded=degraded,
    )


class NeighbourCache:
    """Memoises neighbour indices per (matrix, k, restriction mode)."""

    def __init__(self) -> None:
        self._cache: dict[tuple[int, int, bool], NeighbourIndex] = {}
        self._matrices: dict[int, DistanceMatrix] = {}

    def get(
        self,
        matrix: DistanceMatrix,
        k: int,
        family_labels: Sequence[str] | None = None,
    ) -> NeighbourIndex:
        key = (id(matrix), k, family_labels is not None)
        index = self._cache.get(key)
        if index is None:
            index = build_neighbour_index(matrix, k, family_labels)
            self._cache[key] = index
            # Keep the matrix alive so its id() cannot be reused.
            self._matrices[id(matrix)] = matrix
        return index

    def __len__(self) -> int:
        return len(self._cache)
