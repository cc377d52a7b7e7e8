"""CLI handler for the run-enrichment subcommand."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from areal_typology.config.loader import load_config
from areal_typology.config.schema import AnalysisConfig
from areal_typology.enrichment.batch import BatchRunner, VariantData, build_variants, select_features
from areal_typology.enrichment.models import EnrichmentResult
from areal_typology.geo.distance import (
    DistanceMatrix,
    build_distance_matrix,
    load_distance_matrix,
    records_to_points,
    save_distance_matrix,
)
from areal_typology.ingest.sampling import Sample
from areal_typology.ingest.staging import DISTANCES_FILE
from areal_typology.utils.logging_setup import setup_logging

from .sample_cmd import load_or_build_sample

logger = logging.getLogger(__name__)

RUN_LOG = "run.log"


def distance_matrix_for(cfg: AnalysisConfig, sample: Sample) -> DistanceMatrix:
    """Load the cached matrix if it matches the sample, else compute and cache it."""
    path = cfg.staging_dir / DISTANCES_FILE
    if path.exists():
        matrix = load_distance_matrix(path)
        if matrix.ids == sample.ids:
            logger.info("Using cached distance matrix %s", path)
            return matrix
        logger.info("Cached distance matrix does not match the sample; recomputing")
    matrix = build_distance_matrix(records_to_points(sample.records))
    save_distance_matrix(matrix, path)
    return matrix


def prepare_variants(
    cfg: AnalysisConfig, sample: Sample, variant_names: Sequence[str] | None = None
) -> dict[str, VariantData]:
    variants = [cfg.variant(name) for name in variant_names] if variant_names else cfg.variants
    matrix = distance_matrix_for(cfg, sample)
    matrix.validate()
    return build_variants(sample, matrix, variants, cfg.neighbours.k)


def run_enrichment(
    config_path: str, variant_names: Sequence[str] | None, fresh: bool
) -> list[EnrichmentResult]:
    cfg = load_config(config_path)
    setup_logging(cfg.log_level, cfg.output_dir / RUN_LOG)

    sample = load_or_build_sample(cfg)
    features = select_features(sample, cfg.features.min_languages, cfg.features.include)
    variants = prepare_variants(cfg, sample, variant_names)

    runner = BatchRunner(
        variants,
        features,
        cfg.permutation,
        cfg.output_dir,
        workers=cfg.workers,
    )
    if fresh:
        runner.reset()
    results = runner.run()
    logger.info("Results written to %s", cfg.output_dir)
    return results
