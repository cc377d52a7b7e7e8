"""Batch runner: every selected feature under every dataset variant.

Each (variant, feature) unit is independent. Units run inline or in a
process pool; the parent process alone appends results and marks the
checkpoint, so an interrupted run resumes at feature granularity.
"""

from __future__ import annotations

import hashlib
import logging
import warnings
from collections.abc import Iterable, Sequence
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import orjson

from areal_typology.config.schema import PermutationConfig, VariantDef
from areal_typology.enrichment.features import build_feature_table
from areal_typology.enrichment.models import EnrichmentResult, ResultStatus, rank_results
from areal_typology.enrichment.permutation import derive_seed, run_permutation_test
from areal_typology.errors import DegenerateStatisticWarning, StructuralError
from areal_typology.export.results_store import ResultStore, write_summary
from areal_typology.geo.distance import DistanceMatrix
from areal_typology.geo.neighbours import NeighbourCache, NeighbourIndex
from areal_typology.ingest.sampling import Sample
from areal_typology.utils.checkpointing import Checkpoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class VariantData:
    """Sample and neighbour index for one dataset variant."""

    name: str
    sample: Sample
    index: NeighbourIndex


def select_features(
    sample: Sample, min_languages: int, include: Sequence[str] = ()
) -> list[str]:
    """Features present in at least *min_languages* sampled languages.

    A non-empty *include* restricts the selection to those features.
    """
    counts = sample.feature_counts()
    candidates = list(include) if include else sorted(counts)
    selected = []
    for feature in candidates:
        count = counts.get(feature, 0)
        if count >= min_languages:
            selected.append(feature)
        elif include:
            logger.warning(
                "Feature %r found in %d languages, below the threshold of %d; skipped",
                feature, count, min_languages,
            )
    logger.info(
        "Selected %d of %d features with >= %d languages",
        len(selected), len(counts), min_languages,
    )
    return selected


def build_variants(
    sample: Sample,
    matrix: DistanceMatrix,
    variants: Iterable[VariantDef],
    k: int,
    cache: NeighbourCache | None = None,
) -> dict[str, VariantData]:
    """Sub-sample, distance matrix and neighbour index per variant, built once."""
    if matrix.ids != sample.ids:
        _raise_mismatch(sample.ids, matrix.ids)
    cache = cache or NeighbourCache()
    matrices: dict[tuple[str, ...], tuple[Sample, DistanceMatrix]] = {(): (sample, matrix)}
    built: dict[str, VariantData] = {}

    for variant in variants:
        excluded = tuple(sorted(variant.exclude_macroareas))
        if excluded not in matrices:
            keep = [r.sample_id for r in sample.records if r.macroarea not in excluded]
            sub = sample.restrict(keep)
            matrices[excluded] = (sub, matrix.subset(sub.ids))
            logger.info(
                "Variant %s: excluding %s removes %d of %d languages",
                variant.name, ", ".join(excluded), len(sample) - len(sub), len(sample),
            )
        sub_sample, sub_matrix = matrices[excluded]
        labels = (
            [r.family_label for r in sub_sample.records] if variant.family_restricted else None
        )
        index = cache.get(sub_matrix, k, labels)
        built[variant.name] = VariantData(name=variant.name, sample=sub_sample, index=index)
    return built


def _raise_mismatch(expected: Sequence[str], actual: Sequence[str]) -> None:
    diff = sorted(set(expected) ^ set(actual))
    detail = f"differing ids {diff[:10]}" if diff else "same ids in a different order"
    raise StructuralError(f"Sample and distance matrix disagree: {detail}")


def evaluate_unit(
    data: VariantData,
    feature_id: str,
    permutation: PermutationConfig,
) -> tuple[EnrichmentResult, np.ndarray]:
    """Run the permutation test for one feature in one variant."""
    table = build_feature_table(feature_id, data.sample.records, data.sample.features)
    seed = derive_seed(permutation.seed, data.name, feature_id)
    common = dict(
        feature_id=feature_id,
        variant=data.name,
        n_languages=len(table),
        n_present=table.n_present,
        n_families_present=table.n_families_present,
        seed=seed,
        n_degraded_neighbourhoods=data.index.n_degraded,
    )

    if table.is_degenerate:
        warnings.warn(
            f"Variant {data.name}, feature {feature_id!r}: present in "
            f"{table.n_present} of {len(table)} languages; untestable",
            DegenerateStatisticWarning,
            stacklevel=2,
        )
        result = EnrichmentResult(
            observed_statistic=float("nan"),
            empirical_quantile=float("nan"),
            logit_quantile=float("nan"),
            status=ResultStatus.UNTESTABLE,
            iterations=0,
            **common,
        )
        return result, np.empty(0)

    outcome = run_permutation_test(
        table,
        data.index,
        iterations=permutation.iterations,
        seed=seed,
        batch_size=permutation.batch_size,
    )
    result = EnrichmentResult(
        observed_statistic=outcome.observed,
        empirical_quantile=outcome.quantile,
        logit_quantile=outcome.logit_quantile,
        status=ResultStatus.TESTED,
        iterations=outcome.iterations,
        **common,
    )
    return result, outcome.null_distribution


def run_fingerprint(variants: dict[str, VariantData], permutation: PermutationConfig) -> str:
    """Digest of everything a unit result depends on apart from its feature id."""
    payload = {
        "permutation": permutation.model_dump(mode="json"),
        "variants": {
            name: {
                "k": data.index.k,
                "family_restricted": data.index.family_restricted,
                "records": [r.to_dict() for r in data.sample.records],
                "features": {sid: sorted(f) for sid, f in data.sample.features.items()},
            }
            for name, data in variants.items()
        },
    }
    return hashlib.sha256(orjson.dumps(payload, option=orjson.OPT_SORT_KEYS)).hexdigest()


# Per-process state for pool workers, set once by the initializer.
_WORKER_VARIANTS: dict[str, VariantData] = {}


def _init_worker(variants: dict[str, VariantData]) -> None:
    _WORKER_VARIANTS.clear()
    _WORKER_VARIANTS.update(variants)


def _evaluate_in_worker(
    variant: str, feature_id: str, permutation: PermutationConfig
) -> tuple[EnrichmentResult, np.ndarray]:
    return evaluate_unit(_WORKER_VARIANTS[variant], feature_id, permutation)


class BatchRunner:
    """Runs and checkpoints all (variant, feature) units."""

    def __init__(
        self,
        variants: dict[str, VariantData],
        features: Sequence[str],
        permutation: PermutationConfig,
        output_dir: Path,
        workers: int = 1,
    ) -> None:
        self.variants = variants
        self.features = list(features)
        self.permutation = permutation
        self.output_dir = Path(output_dir)
        self.workers = workers
        self.store = ResultStore(self.output_dir)
        self.checkpoint = Checkpoint(
            self.output_dir / "checkpoint.json", run_fingerprint(variants, permutation)
        )

    def units(self) -> list[tuple[str, str]]:
        return [(v, f) for v in self.variants for f in self.features]

    def reset(self) -> None:
        """Forget earlier progress so every unit runs again."""
        self.checkpoint.reset()
        self.store.clear()

    def pending(self) -> list[tuple[str, str]]:
        return [
            (v, f) for v, f in self.units()
            if not self.checkpoint.is_done(Checkpoint.unit_key(v, f))
        ]

    def run(self) -> list[EnrichmentResult]:
        if self.checkpoint.stale:
            logger.warning(
                "Checkpoint in %s was written with different permutation, neighbour "
                "or sample settings; discarding earlier results",
                self.output_dir,
            )
            self.reset()
        units = self.units()
        pending = self.pending()
        logger.info(
            "%d units (%d variants x %d features); %d already done",
            len(units), len(self.variants), len(self.features), len(units) - len(pending),
        )

        if self.workers > 1 and len(pending) > 1:
            with ProcessPoolExecutor(
                max_workers=self.workers,
                initializer=_init_worker,
                initargs=(self.variants,),
            ) as pool:
                futures = {
                    pool.submit(_evaluate_in_worker, v, f, self.permutation): (v, f)
                    for v, f in pending
                }
                for done, future in enumerate(as_completed(futures), start=1):
                    self._record(*future.result(), done=done, total=len(pending))
        else:
            for done, (v, f) in enumerate(pending, start=1):
                self._record(
                    *evaluate_unit(self.variants[v], f, self.permutation),
                    done=done, total=len(pending),
                )

        wanted = set(units)
        results = [r for r in self.store.results() if (r.variant, r.feature_id) in wanted]
        write_summary(results, self.output_dir / "summary.csv")
        return rank_results(results)

    def _record(
        self, result: EnrichmentResult, null: np.ndarray, done: int, total: int
    ) -> None:
        self.store.append(result, null)
        self.checkpoint.mark_done(Checkpoint.unit_key(result.variant, result.feature_id))
        logger.info(
            "[%d/%d] %s %r: observed=%.4f quantile=%.4f (%s)",
            done, total, result.variant, result.feature_id,
            result.observed_statistic, result.empirical_quantile, result.status,
        )
