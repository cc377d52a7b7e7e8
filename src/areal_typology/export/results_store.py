"""Persist enrichment results and raw null distributions.

``results.jsonl`` holds one orjson line per (variant, feature), including
the full null distribution in iteration order. orjson writes the shortest
round-tripping representation of each float, so statistics and arrays
reload bit-for-bit.
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterable
from pathlib import Path

import numpy as np
import orjson

from areal_typology.enrichment.models import EnrichmentResult, rank_results

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = [
    "variant",
    "feature_id",
    "status",
    "observed_statistic",
    "empirical_quantile",
    "logit_quantile",
    "n_languages",
    "n_present",
    "n_families_present",
    "n_degraded_neighbourhoods",
    "iterations",
    "seed",
]


class ResultStore:
    """Append-only store of per-unit results under an output directory."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = Path(output_dir)
        self.results_path = self.output_dir / "results.jsonl"

    def append(self, result: EnrichmentResult, null_distribution: np.ndarray) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        payload = result.to_dict()
        payload["null_distribution"] = np.asarray(null_distribution, dtype=np.float64)
        with self.results_path.open("ab") as fh:
            fh.write(orjson.dumps(payload, option=orjson.OPT_SERIALIZE_NUMPY) + b"\n")

    def load(self) -> dict[tuple[str, str], tuple[EnrichmentResult, np.ndarray]]:
        """All stored units keyed by (variant, feature); later lines win."""
        stored: dict[tuple[str, str], tuple[EnrichmentResult, np.ndarray]] = {}
        if not self.results_path.exists():
            return stored
        with self.results_path.open("rb") as fh:
            for line in fh:
                if not line.strip():
                    continue
                d = orjson.loads(line)
                null = np.asarray(d.pop("null_distribution", []), dtype=np.float64)
                result = EnrichmentResult.from_dict(d)
                stored[result.key] = (result, null)
        return stored

    def results(self) -> list[EnrichmentResult]:
        return [result for result, _ in self.load().values()]

    def null_distribution(self, variant: str, feature_id: str) -> np.ndarray:
        return self.load()[(variant, feature_id)][1]

    def clear(self) -> None:
        if self.results_path.exists():
            self.results_path.unlink()


def write_summary(results: Iterable[EnrichmentResult], path: Path) -> Path:
    """Write the ranked result table as CSV."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    ranked = rank_results(list(results))
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=SUMMARY_COLUMNS)
        writer.writeheader()
        for result in ranked:
            row = result.to_dict()
            writer.writerow({col: _cell(row[col]) for col in SUMMARY_COLUMNS})
    logger.info("Summary of %d results written to %s", len(ranked), path)
    return path


def _cell(value: object) -> object:
    if value is None:
        return "NA"
    if isinstance(value, float):
        return repr(value)
    return value
