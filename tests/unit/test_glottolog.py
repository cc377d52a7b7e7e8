"""Tests for the Glottolog lookup tables."""

from __future__ import annotations

from pathlib import Path

import pytest

from areal_typology.utils.glottolog import GlottologTree


@pytest.fixture
def tree(fixtures_dir: Path) -> GlottologTree:
    return GlottologTree.from_files(
        fixtures_dir / "languoid.csv", fixtures_dir / "languages_geo.csv"
    )


class TestGlottologTree:
    def test_family(self, tree: GlottologTree):
        assert tree.family_id("alph1239") == "alph1237"
        assert tree.family_name("alph1237") == "Alphic"

    def test_isolate_has_no_family(self, tree: GlottologTree):
        assert tree.family_id("isol1238") is None
        assert tree.family_name(None) is None

    def test_macroarea_and_coordinates(self, tree: GlottologTree):
        assert tree.macroarea("beta1238") == "Africa"
        assert tree.coordinates("alph1240") == (51.0, 9.5)

    def test_missing_coordinates(self, tree: GlottologTree):
        assert tree.coordinates("noco1238") is None
        assert tree.coordinates("zzzz9999") is None

    def test_languoids_only(self, fixtures_dir: Path):
        tree = GlottologTree.from_files(languoid_csv=fixtures_dir / "languoid.csv")
        assert len(tree) == 12
        assert tree.macroarea("beta1238") is None
