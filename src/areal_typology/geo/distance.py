"""Pairwise geodesic distance matrix over sampled languages."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path

import numpy as np
from geopy.distance import geodesic

from areal_typology.errors import StructuralError
from areal_typology.ingest.models import LanguageRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class DistanceMatrix:
    """Symmetric matrix of WGS-84 geodesic distances in metres.

    ``values[i, j]`` is the distance between ``ids[i]`` and ``ids[j]``.
    """

    ids: tuple[str, ...]
    values: np.ndarray

    def __post_init__(self) -> None:
        self.values.flags.writeable = False

    def __len__(self) -> int:
        return len(self.ids)

    @cached_property
    def _positions(self) -> dict[str, int]:
        return {lid: i for i, lid in enumerate(self.ids)}

    def index_of(self, language_id: str) -> int:
        try:
            return self._positions[language_id]
        except KeyError:
            raise StructuralError(f"Unknown language id in distance matrix: {language_id}")

    def distance(self, a: str, b: str) -> float:
        return float(self.values[self.index_of(a), self.index_of(b)])

    def subset(self, ids: Iterable[str]) -> DistanceMatrix:
        """Rows and columns for *ids*, in the given order."""
        ids = tuple(ids)
        idx = np.asarray([self.index_of(lid) for lid in ids], dtype=np.intp)
        return DistanceMatrix(ids=ids, values=self.values[np.ix_(idx, idx)].copy())

    def validate(self) -> None:
        """Raise StructuralError unless the matrix is a proper distance matrix."""
        n = len(self.ids)
        if len(set(self.ids)) != n:
            dupes = sorted(lid for lid, c in Counter(self.ids).items() if c > 1)
            raise StructuralError(f"Duplicate language ids: {dupes[:10]}")
        if self.values.shape != (n, n):
            raise StructuralError(
                f"Distance matrix shape {self.values.shape} does not match {n} ids"
            )
        bad = np.argwhere(
            (self.values != self.values.T) | (self.values < 0) | ~np.isfinite(self.values)
        )
        bad = np.vstack([bad, np.argwhere(np.diag(self.values) != 0).repeat(2, axis=1)])
        if len(bad):
            pairs = [(self.ids[i], self.ids[j]) for i, j in bad[:5]]
            raise StructuralError(f"Malformed distance entries, e.g. {pairs}")


def build_distance_matrix(points: Sequence[tuple[str, float, float]]) -> DistanceMatrix:
    """Compute all pairwise geodesic distances for (id, latitude, longitude) points.

    Only the upper triangle is computed; the lower triangle is mirrored from
    it so the result is exactly symmetric.
    """
    ids = tuple(p[0] for p in points)
    if len(set(ids)) != len(ids):
        dupes = sorted(lid for lid, c in Counter(ids).items() if c > 1)
        raise StructuralError(f"Duplicate language ids: {dupes[:10]}")

    n = len(points)
    values = np.zeros((n, n), dtype=np.float64)
    coords = [(lat, lon) for _, lat, lon in points]
    for i in range(n):
        for j in range(i + 1, n):
            values[i, j] = geodesic(coords[i], coords[j]).meters
    values = values + values.T
    logger.info("Built %dx%d geodesic distance matrix", n, n)
    return DistanceMatrix(ids=ids, values=values)


def records_to_points(records: Iterable[LanguageRecord]) -> list[tuple[str, float, float]]:
    return [(r.sample_id, r.latitude, r.longitude) for r in records]


def save_distance_matrix(matrix: DistanceMatrix, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as fh:
        np.savez(fh, ids=np.asarray(matrix.ids, dtype=str), values=matrix.values)
    logger.info("Distance matrix cached to %s", path)


def load_distance_matrix(path: Path) -> DistanceMatrix:
    with np.load(path, allow_pickle=False) as data:
        ids = tuple(str(x) for x in data["ids"])
        values = np.array(data["values"], dtype=np.float64)
    return DistanceMatrix(ids=ids, values=values)
