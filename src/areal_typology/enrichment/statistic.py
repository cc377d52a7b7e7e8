"""Local enrichment statistic: family-stratified mean neighbourhood presence.

For every language with the feature, its local proportion is the share of
its k neighbours that also have the feature. Local proportions are averaged
within each family, and the family means are averaged with equal weight, so
large feature-rich families count once.
"""

from __future__ import annotations

import numpy as np


def local_proportions(present: np.ndarray, neighbours: np.ndarray) -> np.ndarray:
    """Fraction of each language's neighbours that have the feature."""
    present = np.asarray(present, dtype=bool)
    if neighbours.shape[1] == 0:
        return np.full(present.shape[0], np.nan)
    return present[neighbours].mean(axis=1)


def batch_enrichment_statistics(
    presence: np.ndarray,
    neighbours: np.ndarray,
    family_codes: np.ndarray,
    n_families: int | None = None,
) -> np.ndarray:
    """Statistic for each row of a (B, n) presence matrix.

    Rows with no present language yield NaN.
    """
    presence = np.asarray(presence, dtype=bool)
    if presence.ndim != 2:
        raise ValueError("presence must be a 2-D (batch, languages) array")
    n_rows, n = presence.shape
    if neighbours.shape[0] != n or family_codes.shape != (n,):
        raise ValueError("presence, neighbours and family codes disagree on language count")
    if neighbours.shape[1] == 0 or n == 0:
        return np.full(n_rows, np.nan)
    if n_families is None:
        n_families = int(family_codes.max()) + 1

    local = presence[:, neighbours].mean(axis=2)
    weighted = np.where(presence, local, 0.0)

    slots = (np.arange(n_rows)[:, None] * n_families + family_codes[None, :]).ravel()
    size = n_rows * n_families
    sums = np.bincount(slots, weights=weighted.ravel(), minlength=size)
    counts = np.bincount(slots, weights=presence.ravel().astype(np.float64), minlength=size)
    sums = sums.reshape(n_rows, n_families)
    counts = counts.reshape(n_rows, n_families)

    has_feature = counts > 0
    family_means = np.divide(sums, counts, out=np.zeros_like(sums), where=has_feature)
    n_with = has_feature.sum(axis=1)
    totals = family_means.sum(axis=1)
    return np.divide(
        totals, n_with, out=np.full(n_rows, np.nan), where=n_with > 0
    )


def enrichment_statistic(
    present: np.ndarray, neighbours: np.ndarray, family_codes: np.ndarray
) -> float:
    """Observed statistic for one presence vector; NaN when nothing is present."""
    present = np.asarray(present, dtype=bool)
    return float(batch_enrichment_statistics(present[None, :], neighbours, family_codes)[0])


def family_means(
    present: np.ndarray, neighbours: np.ndarray, family_labels: tuple[str, ...]
) -> dict[str, float]:
    """Per-family mean local proportion among languages with the feature."""
    present = np.asarray(present, dtype=bool)
    local = local_proportions(present, neighbours)
    grouped: dict[str, list[float]] = {}
    for label, flag, value in zip(family_labels, present, local):
        if flag:
            grouped.setdefault(label, []).append(float(value))
    return {label: float(np.mean(values)) for label, values in grouped.items()}
