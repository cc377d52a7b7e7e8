"""End-to-end run of the CLI over the fixture inventories and Glottolog tables.

Stages: build-sample -> run-enrichment -> show-results / verify-seed.
"""

from __future__ import annotations

import csv
from pathlib import Path

import orjson
import pytest
import yaml
from typer.testing import CliRunner

from areal_typology.cli.main import app
from areal_typology.config.schema import AnalysisConfig
from areal_typology.export.results_store import ResultStore

runner = CliRunner()


def _write_config(path: Path, cfg: AnalysisConfig) -> Path:
    path.write_text(
        yaml.safe_dump(cfg.model_dump(mode="json"), allow_unicode=True),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def config_file(analysis_config: AnalysisConfig, tmp_path: Path) -> Path:
    return _write_config(tmp_path / "config.yaml", analysis_config)


def _invoke(*args: str):
    result = runner.invoke(app, list(args))
    assert result.exit_code == 0, result.output
    return result


class TestFullPipeline:
    def test_build_sample(self, config_file: Path, analysis_config: AnalysisConfig):
        _invoke("build-sample", "--config", str(config_file))

        staging = analysis_config.staging_dir
        lines = (staging / "languages.jsonl").read_bytes().splitlines()
        languages = [orjson.loads(line) for line in lines]
        assert len(languages) == 9
        assert {lang["family_label"] for lang in languages} == {"Alphic", "Betic", "Isolatese"}
        assert (staging / "features.jsonl").exists()

    def test_run_enrichment(self, config_file: Path, analysis_config: AnalysisConfig):
        _invoke("run-enrichment", "--config", str(config_file))

        out = analysis_config.output_dir
        assert (out / "results.jsonl").exists()
        assert (out / "checkpoint.json").exists()
        assert (out / "run.log").exists()
        assert (analysis_config.staging_dir / "distances.npz").exists()

        with (out / "summary.csv").open(newline="", encoding="utf-8") as fh:
            rows = list(csv.DictReader(fh))
        # 5 features reach the 4-language threshold, under 3 variants.
        assert len(rows) == 15
        assert [r["variant"] for r in rows[:5]] == ["cross_family"] * 5
        tested = [r for r in rows if r["status"] == "tested"]
        assert all(r["iterations"] == "200" for r in tested)
        assert all(float(r["empirical_quantile"]) <= 1.0 for r in tested)

    def test_rerun_is_resumed(self, config_file: Path, analysis_config: AnalysisConfig):
        _invoke("run-enrichment", "--config", str(config_file))
        store = ResultStore(analysis_config.output_dir)
        first = store.results_path.read_bytes()

        _invoke("run-enrichment", "--config", str(config_file))
        assert store.results_path.read_bytes() == first

        _invoke("run-enrichment", "--config", str(config_file), "--fresh")
        assert store.results_path.read_bytes() == first

    def test_changed_classes_restage(self, config_file: Path, analysis_config: AnalysisConfig):
        _invoke("build-sample", "--config", str(config_file))
        changed = analysis_config.model_copy(deep=True)
        changed.features.classes["low"] = ["a"]
        _write_config(config_file, changed)

        _invoke("run-enrichment", "--config", str(config_file))
        lines = (analysis_config.staging_dir / "features.jsonl").read_bytes().splitlines()
        rows = [orjson.loads(line) for line in lines]
        assert len(rows) == 9
        assert all("low" in row["features"] for row in rows)
        features = {r.feature_id for r in ResultStore(analysis_config.output_dir).results()}
        assert "low" in features

    def test_changed_iterations_rerun(self, config_file: Path, analysis_config: AnalysisConfig):
        _invoke("run-enrichment", "--config", str(config_file))
        changed = analysis_config.model_copy(deep=True)
        changed.permutation.iterations = 150
        _write_config(config_file, changed)

        _invoke("run-enrichment", "--config", str(config_file))
        tested = [
            r for r in ResultStore(analysis_config.output_dir).results()
            if r.status == "tested"
        ]
        assert tested
        assert all(r.iterations == 150 for r in tested)

    def test_single_variant(self, config_file: Path, analysis_config: AnalysisConfig):
        _invoke("run-enrichment", "--config", str(config_file), "--variant", "no_africa")
        results = ResultStore(analysis_config.output_dir).results()
        assert {r.variant for r in results} == {"no_africa"}
        assert all(r.n_languages == 4 for r in results)

    def test_show_results(self, config_file: Path):
        _invoke("run-enrichment", "--config", str(config_file))
        result = _invoke("show-results", "--config", str(config_file), "--top", "3")
        assert "== full" in result.output
        assert "== cross_family" in result.output

    def test_show_results_without_run(self, config_file: Path):
        result = runner.invoke(app, ["show-results", "--config", str(config_file)])
        assert result.exit_code == 1
        assert "No results" in result.output

    def test_verify_seed(self, config_file: Path):
        result = _invoke(
            "verify-seed", "--config", str(config_file),
            "--feature", "y", "--iterations", "100",
        )
        assert "reproducible over 100 permutations" in result.output

    def test_unknown_variant_fails(self, config_file: Path):
        result = runner.invoke(
            app, ["run-enrichment", "--config", str(config_file), "--variant", "nowhere"]
        )
        assert result.exit_code != 0
        assert isinstance(result.exception, KeyError)
