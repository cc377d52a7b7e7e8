"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from areal_typology.config.schema import AnalysisConfig
from areal_typology.geo.distance import DistanceMatrix
from areal_typology.ingest.models import LanguageRecord
from areal_typology.ingest.sampling import Sample

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def config_path() -> Path:
    return FIXTURES_DIR / "config_test.yaml"


@pytest.fixture
def analysis_config(tmp_path: Path) -> AnalysisConfig:
    """The fixture config with absolute input paths and temporary outputs."""
    import yaml

    raw = yaml.safe_load((FIXTURES_DIR / "config_test.yaml").read_text(encoding="utf-8"))
    raw["source"]["path"] = str(FIXTURES_DIR / "inventories.csv")
    raw["geography"]["languoid_csv"] = str(FIXTURES_DIR / "languoid.csv")
    raw["geography"]["geo_csv"] = str(FIXTURES_DIR / "languages_geo.csv")
    raw["staging_dir"] = str(tmp_path / "staging")
    raw["output_dir"] = str(tmp_path / "results")
    return AnalysisConfig.model_validate(raw)


def line_matrix(positions: list[float], ids: list[str] | None = None) -> DistanceMatrix:
    """Distance matrix for points on a line (distance = absolute difference)."""
    pos = np.asarray(positions, dtype=float)
    ids = ids or [f"l{i}" for i in range(len(pos))]
    return DistanceMatrix(ids=tuple(ids), values=np.abs(pos[:, None] - pos[None, :]))


def record(sample_id: str, family: str, lat: float, lon: float, macroarea: str | None = None) -> LanguageRecord:
    return LanguageRecord(
        sample_id=sample_id,
        language_code=sample_id,
        language_name=sample_id,
        family_label=family,
        latitude=lat,
        longitude=lon,
        macroarea=macroarea,
    )


@pytest.fixture
def clustered_world() -> Sample:
    """20 languages in two families of 10.

    Family A sits within ~100 km around (45N, 5E) and alone has feature X;
    family B is spread across the globe.
    """
    records = []
    features = {}
    for i in range(10):
        rid = f"a{i}"
        records.append(record(rid, "A", 45.0 + 0.08 * (i % 5), 5.0 + 0.1 * (i // 5)))
        features[rid] = frozenset({"X", "a"})
    for i in range(10):
        rid = f"b{i}"
        records.append(record(rid, "B", -40.0 + 8.0 * i, -120.0 + 25.0 * i))
        features[rid] = frozenset({"a"})
    return Sample(records=tuple(records), features=features)
