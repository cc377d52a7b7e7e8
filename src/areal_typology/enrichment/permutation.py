"""Family-stratified Monte Carlo permutation test for the enrichment statistic.

Presence values are shuffled independently inside each family block, so
every family keeps its number of feature-positive languages and only the
assignment to specific (located) languages changes. The null hypothesis is
"presence is random with respect to geography, given each family's
prevalence".
"""

from __future__ import annotations

import logging
import warnings
import zlib
from dataclasses import dataclass

import numpy as np

from areal_typology.enrichment.features import FeatureTable
from areal_typology.enrichment.statistic import (
    batch_enrichment_statistics,
    enrichment_statistic,
)
from areal_typology.errors import DegenerateStatisticWarning, NonReproducibilityError
from areal_typology.geo.neighbours import NeighbourIndex
from areal_typology.utils.batching import batch_slices

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class PermutationOutcome:
    observed: float
    null_distribution: np.ndarray
    quantile: float
    logit_quantile: float
    seed: int
    degenerate: bool = False

    @property
    def iterations(self) -> int:
        return int(self.null_distribution.shape[0])


class StratifiedPermuter:
    """Shuffles a presence vector within family blocks.

    The family-sorted order and the blocks whose members disagree are
    computed once; blocks where every member has the same value are
    invariant under shuffling and are skipped.
    """

    def __init__(self, family_codes: np.ndarray) -> None:
        self.family_codes = np.asarray(family_codes)
        self.order = np.argsort(self.family_codes, kind="stable")
        sorted_codes = self.family_codes[self.order]
        boundaries = np.flatnonzero(np.diff(sorted_codes)) + 1
        starts = np.concatenate(([0], boundaries))
        ends = np.concatenate((boundaries, [sorted_codes.size]))
        self.blocks = [(int(s), int(e)) for s, e in zip(starts, ends) if e - s > 1]

    def permute(self, present: np.ndarray, rng: np.random.Generator, size: int) -> np.ndarray:
        """Return a (size, n) matrix of independent within-family shuffles."""
        present_sorted = np.asarray(present, dtype=bool)[self.order]
        shuffled = np.broadcast_to(present_sorted, (size, present_sorted.size)).copy()
        for start, end in self.blocks:
            block = present_sorted[start:end]
            if block.all() or not block.any():
                continue
            shuffled[:, start:end] = rng.permuted(shuffled[:, start:end], axis=1)
        out = np.empty_like(shuffled)
        out[:, self.order] = shuffled
        return out


def empirical_quantile(observed: float, null_distribution: np.ndarray) -> float:
    """Fraction of null values at or below the observed statistic."""
    if np.isnan(observed) or null_distribution.size == 0:
        return float("nan")
    return float(np.mean(null_distribution <= observed))


def logit_quantile(quantile: float, iterations: int) -> float:
    """Log-odds of the quantile, clipped half a permutation away from 0 and 1."""
    if np.isnan(quantile):
        return float("nan")
    eps = 1.0 / (2 * iterations)
    q = min(max(quantile, eps), 1.0 - eps)
    return float(np.log(q / (1.0 - q)))


def derive_seed(base_seed: int, *keys: str) -> int:
    """Stable per-unit seed; independent of hash salting and worker order."""
    digest = zlib.crc32("\t".join(keys).encode("utf-8"))
    state = np.random.SeedSequence([base_seed, digest]).generate_state(1, dtype=np.uint64)
    return int(state[0])


def run_permutation_test(
    table: FeatureTable,
    index: NeighbourIndex,
    iterations: int = 10000,
    seed: int = 0,
    batch_size: int = 500,
) -> PermutationOutcome:
    """Observed statistic, its stratified-permutation null, and the quantile summary."""
    table.check_alignment(index)
    neighbours = index.neighbours
    codes = table.family_codes
    observed = enrichment_statistic(table.present, neighbours, codes)

    if table.is_degenerate:
        warnings.warn(
            f"Feature {table.feature_id!r} is present in {table.n_present} of "
            f"{len(table)} languages; permutation test skipped",
            DegenerateStatisticWarning,
            stacklevel=2,
        )
        return PermutationOutcome(
            observed=observed,
            null_distribution=np.empty(0),
            quantile=float("nan"),
            logit_quantile=float("nan"),
            seed=seed,
            degenerate=True,
        )

    n_families = int(codes.max()) + 1
    permuter = StratifiedPermuter(codes)
    rng = np.random.default_rng(seed)
    null = np.empty(iterations, dtype=np.float64)
    for sl in batch_slices(iterations, batch_size):
        presence = permuter.permute(table.present, rng, sl.stop - sl.start)
        null[sl] = batch_enrichment_statistics(presence, neighbours, codes, n_families)

    quantile = empirical_quantile(observed, null)
    logger.debug(
        "%s: observed=%.4f quantile=%.4f over %d permutations",
        table.feature_id, observed, quantile, iterations,
    )
    return PermutationOutcome(
        observed=observed,
        null_distribution=null,
        quantile=quantile,
        logit_quantile=logit_quantile(quantile, iterations),
        seed=seed,
    )


def verify_reproducibility(
    table: FeatureTable,
    index: NeighbourIndex,
    iterations: int = 1000,
    seed: int = 0,
    batch_size: int = 500,
) -> PermutationOutcome:
    """Run the test twice with one seed; raise if the nulls differ bitwise."""
    first = run_permutation_test(table, index, iterations, seed, batch_size)
    second = run_permutation_test(table, index, iterations, seed, batch_size)
    a, b = first.null_distribution, second.null_distribution
    if a.shape != b.shape or a.tobytes() != b.tobytes():
        mismatch = np.flatnonzero(a != b) if a.shape == b.shape else np.array([0])
        raise NonReproducibilityError(
            f"Feature {table.feature_id!r}: null distributions differ for seed {seed} "
            f"(first mismatch at iteration {int(mismatch[0]) if mismatch.size else '?'})"
        )
    if first.observed != second.observed and not np.isnan(first.observed):
        raise NonReproducibilityError(
            f"Feature {table.feature_id!r}: observed statistic changed between runs"
        )
    return first
