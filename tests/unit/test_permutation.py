"""Tests for the family-stratified permutation test."""

from __future__ import annotations

import math

import numpy as np
import pytest

from areal_typology.enrichment.features import build_feature_table
from areal_typology.enrichment.permutation import (
    StratifiedPermuter,
    derive_seed,
    empirical_quantile,
    logit_quantile,
    run_permutation_test,
    verify_reproducibility,
)
from areal_typology.errors import DegenerateStatisticWarning, StructuralError
from areal_typology.geo.neighbours import build_neighbour_index
from conftest import line_matrix, record


def _table(present: list[bool], families: list[str], feature: str = "f"):
    records = [record(f"l{i}", fam, 0.0, 0.0) for i, fam in enumerate(families)]
    features = {
        r.sample_id: frozenset({feature}) if flag else frozenset()
        for r, flag in zip(records, present)
    }
    return build_feature_table(feature, records, features)


@pytest.fixture
def mixed():
    families = ["A"] * 6 + ["B"] * 6 + ["C"]
    present = [True, False, True, False, False, True, True, True, False, False, True, False, True]
    table = _table(present, families)
    index = build_neighbour_index(line_matrix(list(range(13))), k=3)
    return table, index


class TestStratifiedPermuter:
    def test_family_counts_preserved(self, mixed):
        table, _ = mixed
        permuter = StratifiedPermuter(table.family_codes)
        out = permuter.permute(table.present, np.random.default_rng(0), 200)
        assert out.shape == (200, len(table))
        for code in np.unique(table.family_codes):
            cols = table.family_codes == code
            expected = table.present[cols].sum()
            assert np.all(out[:, cols].sum(axis=1) == expected)

    def test_rows_differ(self, mixed):
        table, _ = mixed
        out = StratifiedPermuter(table.family_codes).permute(
            table.present, np.random.default_rng(1), 50
        )
        assert len({row.tobytes() for row in out}) > 1

    def test_uniform_families_untouched(self):
        table = _table([True, True, False, False, True], ["A", "A", "B", "B", "C"])
        out = StratifiedPermuter(table.family_codes).permute(
            table.present, np.random.default_rng(2), 20
        )
        assert np.all(out == table.present)

    def test_singletons_not_blocks(self):
        permuter = StratifiedPermuter(np.array([0, 1, 1, 2]))
        assert permuter.blocks == [(1, 3)]


class TestQuantile:
    def test_empirical_quantile_counts_ties(self):
        null = np.array([0.1, 0.5, 0.9, 0.2])
        assert empirical_quantile(0.5, null) == 0.75

    def test_quantile_monotone_in_observed(self):
        null = np.array([0.1, 0.2, 0.2, 0.5, 0.9])
        # Include the null values themselves so ties are hit exactly.
        observed = np.sort(np.concatenate([np.linspace(-0.5, 1.5, 81), null]))
        quantiles = np.array([empirical_quantile(x, null) for x in observed])
        assert np.all(np.diff(quantiles) >= 0)
        assert quantiles[0] == 0.0
        assert quantiles[-1] == 1.0
        assert empirical_quantile(0.2, null) == 0.6
        assert empirical_quantile(0.9, null) == 1.0
        logits = [logit_quantile(q, null.size) for q in quantiles]
        assert all(a <= b for a, b in zip(logits, logits[1:]))

    def test_empirical_quantile_undefined(self):
        assert math.isnan(empirical_quantile(float("nan"), np.array([0.1])))
        assert math.isnan(empirical_quantile(0.3, np.empty(0)))

    def test_logit_midpoint(self):
        assert logit_quantile(0.5, 100) == pytest.approx(0.0)

    def test_logit_clipped_at_extremes(self):
        top = logit_quantile(1.0, 1000)
        assert math.isfinite(top)
        assert top == pytest.approx(math.log(1999))
        assert logit_quantile(0.0, 1000) == pytest.approx(-top)

    def test_logit_nan(self):
        assert math.isnan(logit_quantile(float("nan"), 10))


class TestDeriveSeed:
    def test_stable(self):
        assert derive_seed(42, "full", "y") == derive_seed(42, "full", "y")

    def test_distinct_per_unit(self):
        seeds = {
            derive_seed(42, variant, feature)
            for variant in ("full", "cross_family", "no_africa")
            for feature in ("y", "ø", "front_rounded")
        }
        assert len(seeds) == 9

    def test_depends_on_base(self):
        assert derive_seed(1, "full", "y") != derive_seed(2, "full", "y")


class TestRunPermutationTest:
    def test_same_seed_identical(self, mixed):
        table, index = mixed
        a = run_permutation_test(table, index, iterations=300, seed=5, batch_size=64)
        b = run_permutation_test(table, index, iterations=300, seed=5, batch_size=64)
        assert a.null_distribution.tobytes() == b.null_distribution.tobytes()
        assert a.quantile == b.quantile

    def test_different_seed_differs(self, mixed):
        table, index = mixed
        a = run_permutation_test(table, index, iterations=300, seed=5)
        b = run_permutation_test(table, index, iterations=300, seed=6)
        assert not np.array_equal(a.null_distribution, b.null_distribution)

    def test_outcome_fields(self, mixed):
        table, index = mixed
        outcome = run_permutation_test(table, index, iterations=250, seed=9, batch_size=100)
        assert outcome.iterations == 250
        assert outcome.seed == 9
        assert not outcome.degenerate
        assert 0.0 <= outcome.quantile <= 1.0
        assert outcome.quantile == empirical_quantile(outcome.observed, outcome.null_distribution)
        assert math.isfinite(outcome.logit_quantile)

    def test_uniform_families_give_constant_null(self):
        table = _table([True] * 4 + [False] * 4, ["A"] * 4 + ["B"] * 4)
        index = build_neighbour_index(line_matrix(list(range(8))), k=2)
        outcome = run_permutation_test(table, index, iterations=50, seed=1)
        assert np.all(outcome.null_distribution == outcome.observed)
        assert outcome.quantile == 1.0

    def test_degenerate_feature(self):
        table = _table([True] * 5, ["A", "A", "B", "B", "C"])
        index = build_neighbour_index(line_matrix(list(range(5))), k=2)
        with pytest.warns(DegenerateStatisticWarning):
            outcome = run_permutation_test(table, index, iterations=100, seed=1)
        assert outcome.degenerate
        assert outcome.iterations == 0
        assert math.isnan(outcome.quantile)

    def test_misaligned_index(self, mixed):
        table, _ = mixed
        index = build_neighbour_index(line_matrix(list(range(12))), k=3)
        with pytest.raises(StructuralError):
            run_permutation_test(table, index, iterations=10)

    def test_verify_reproducibility(self, mixed):
        table, index = mixed
        outcome = verify_reproducibility(table, index, iterations=200, seed=3)
        assert outcome.iterations == 200
