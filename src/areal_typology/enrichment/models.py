"""Result records for the enrichment batch."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any


class ResultStatus:
    TESTED = "tested"
    UNTESTABLE = "untestable"


@dataclass(frozen=True)
class EnrichmentResult:
    """Observed statistic and permutation summary for one (feature, variant)."""

    feature_id: str
    variant: str
    observed_statistic: float
    empirical_quantile: float
    logit_quantile: float
    status: str = ResultStatus.TESTED
    n_languages: int = 0
    n_present: int = 0
    n_families_present: int = 0
    iterations: int = 0
    seed: int = 0
    n_degraded_neighbourhoods: int = 0

    @property
    def key(self) -> tuple[str, str]:
        return self.variant, self.feature_id

    @property
    def testable(self) -> bool:
        return self.status == ResultStatus.TESTED

    def to_dict(self) -> dict[str, Any]:
        return {
            "feature_id": self.feature_id,
            "variant": self.variant,
            "observed_statistic": _encode_float(self.observed_statistic),
            "empirical_quantile": _encode_float(self.empirical_quantile),
            "logit_quantile": _encode_float(self.logit_quantile),
            "status": self.status,
            "n_languages": self.n_languages,
            "n_present": self.n_present,
            "n_families_present": self.n_families_present,
            "iterations": self.iterations,
            "seed": self.seed,
            "n_degraded_neighbourhoods": self.n_degraded_neighbourhoods,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> EnrichmentResult:
        return cls(
            feature_id=d["feature_id"],
            variant=d["variant"],
            observed_statistic=_decode_float(d.get("observed_statistic")),
            empirical_quantile=_decode_float(d.get("empirical_quantile")),
            logit_quantile=_decode_float(d.get("logit_quantile")),
            status=d.get("status", ResultStatus.TESTED),
            n_languages=d.get("n_languages", 0),
            n_present=d.get("n_present", 0),
            n_families_present=d.get("n_families_present", 0),
            iterations=d.get("iterations", 0),
            seed=d.get("seed", 0),
            n_degraded_neighbourhoods=d.get("n_degraded_neighbourhoods", 0),
        )


# JSON has no NaN; undefined statistics are stored as null.
def _encode_float(value: float) -> float | None:
    return None if math.isnan(value) else value


def _decode_float(value: float | None) -> float:
    return float("nan") if value is None else float(value)


def rank_results(results: list[EnrichmentResult]) -> list[EnrichmentResult]:
    """Order by variant, then most areally clustered first; untestable rows last."""

    def sort_key(r: EnrichmentResult) -> tuple:
        logit, observed = r.logit_quantile, r.observed_statistic
        return (
            r.variant,
            math.isnan(logit),
            0.0 if math.isnan(logit) else -logit,
            0.0 if math.isnan(observed) else -observed,
            r.feature_id,
        )

    return sorted(results, key=sort_key)
