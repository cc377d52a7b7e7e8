"""Tests for the kNN neighbour index."""

from __future__ import annotations

import warnings

import numpy as np
import pytest

from areal_typology.errors import InsufficientNeighboursWarning, StructuralError
from areal_typology.geo.neighbours import (
    NeighbourCache,
    build_neighbour_index,
    family_codes,
)
from conftest import line_matrix


class TestUnrestricted:
    def test_nearest_first(self):
        index = build_neighbour_index(line_matrix([0, 1, 3, 6, 10]), k=2)
        assert index.neighbours_of("l0") == ["l1", "l2"]
        assert index.neighbours_of("l4") == ["l3", "l2"]
        assert index.k_effective == 2

    def test_never_contains_self(self):
        index = build_neighbour_index(line_matrix([0, 0, 0, 0]), k=3)
        for i, row in enumerate(index.neighbours):
            assert i not in row
            assert len(set(row)) == 3

    def test_ties_keep_input_order(self):
        index = build_neighbour_index(line_matrix([0, -1, 1]), k=1)
        assert index.neighbours_of("l0") == ["l1"]

    def test_unknown_id(self):
        index = build_neighbour_index(line_matrix([0, 1, 3]), k=1)
        with pytest.raises(StructuralError, match="Unknown language id in neighbour index: l9"):
            index.neighbours_of("l9")

    def test_lookup_by_id_in_any_order(self):
        index = build_neighbour_index(line_matrix([5, 0, 1], ids=["c", "a", "b"]), k=1)
        assert index.neighbours_of("a") == ["b"]
        assert index.neighbours_of("c") == ["b"]
        assert index.as_mapping() == {lid: index.neighbours_of(lid) for lid in index.ids}

    def test_k_capped_at_sample_size(self):
        index = build_neighbour_index(line_matrix([0, 1, 2, 3]), k=10)
        assert index.k == 10
        assert index.k_effective == 3
        assert index.neighbours.shape == (4, 3)

    def test_k_must_be_positive(self):
        with pytest.raises(ValueError):
            build_neighbour_index(line_matrix([0, 1]), k=0)

    def test_as_mapping(self):
        index = build_neighbour_index(line_matrix([0, 1, 5]), k=1)
        assert index.as_mapping() == {"l0": ["l1"], "l1": ["l0"], "l2": ["l1"]}


class TestFamilyRestricted:
    def test_out_of_family_preferred(self):
        matrix = line_matrix([0, 1, 2, 3, 4, 5])
        labels = ["A", "A", "A", "B", "B", "B"]
        with warnings.catch_warnings():
            warnings.simplefilter("error", InsufficientNeighboursWarning)
            index = build_neighbour_index(matrix, k=2, family_labels=labels)
        assert index.family_restricted
        assert index.neighbours_of("l0") == ["l3", "l4"]
        assert index.neighbours_of("l3") == ["l2", "l1"]
        assert index.n_degraded == 0

    def test_padding_flags_degraded(self):
        matrix = line_matrix([0, 1, 2, 3, 10])
        labels = ["X", "X", "X", "X", "Y"]
        with pytest.warns(InsufficientNeighboursWarning):
            index = build_neighbour_index(matrix, k=2, family_labels=labels)
        assert index.neighbours_of("l0") == ["l4", "l1"]
        assert index.degraded_ids() == ["l0", "l1", "l2", "l3"]
        assert index.neighbours_of("l4") == ["l3", "l2"]

    def test_excluded_same_family_ranks_after_all_others(self):
        # l1 is adjacent to l0 but same-family; the far B language still wins.
        matrix = line_matrix([0, 0.1, 100, 200])
        labels = ["A", "A", "B", "B"]
        index = build_neighbour_index(matrix, k=2, family_labels=labels)
        assert index.neighbours_of("l0") == ["l2", "l3"]

    def test_label_count_mismatch(self):
        with pytest.raises(StructuralError):
            build_neighbour_index(line_matrix([0, 1, 2]), k=1, family_labels=["A", "B"])

    def test_degraded_scenario(self):
        positions = list(range(14))
        labels = ["X"] * 12 + ["Y"] * 2
        with pytest.warns(InsufficientNeighboursWarning):
            index = build_neighbour_index(line_matrix(positions), k=10, family_labels=labels)
        assert index.n_degraded == 12
        assert index.neighbours_of("l0")[:2] == ["l12", "l13"]
        assert not index.degraded[12] and not index.degraded[13]


def test_family_codes_dense():
    codes = family_codes(["b", "a", "b", "c"])
    assert codes.tolist() == [1, 0, 1, 2]


def test_cache_reuses_index():
    cache = NeighbourCache()
    matrix = line_matrix([0, 1, 2, 3])
    first = cache.get(matrix, 2)
    assert cache.get(matrix, 2) is first
    restricted = cache.get(matrix, 2, ["A", "A", "B", "B"])
    assert restricted is not first
    assert len(cache) == 2
    assert np.array_equal(first.neighbours, build_neighbour_index(matrix, 2).neighbours)
