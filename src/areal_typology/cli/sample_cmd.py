"""CLI handler for the build-sample subcommand."""

from __future__ import annotations

import logging
from typing import Any

from areal_typology.config.loader import load_config
from areal_typology.config.schema import AnalysisConfig, SourceFormat
from areal_typology.ingest.base import InventoryIngester
from areal_typology.ingest.cldf_ingester import CldfIngester
from areal_typology.ingest.csv_ingester import CsvIngester
from areal_typology.ingest.sampling import Sample, build_sample
from areal_typology.ingest.staging import has_sample, read_sample, staged_from, write_sample
from areal_typology.utils.glottolog import GlottologTree
from areal_typology.utils.logging_setup import setup_logging

logger = logging.getLogger(__name__)

_FORMAT_TO_INGESTER: dict[SourceFormat, type[InventoryIngester]] = {
    SourceFormat.CSV: CsvIngester,
    SourceFormat.TSV: CsvIngester,
    SourceFormat.CLDF: CldfIngester,
}


def sample_from_config(cfg: AnalysisConfig) -> Sample:
    ingester = _FORMAT_TO_INGESTER[cfg.source.format](cfg.source)
    tree = None
    if cfg.geography.languoid_csv or cfg.geography.geo_csv:
        tree = GlottologTree.from_files(cfg.geography.languoid_csv, cfg.geography.geo_csv)
    logger.info("Ingesting %s (%s)", cfg.source.path, cfg.source.format.value)
    return build_sample(
        ingester.ingest(),
        tree,
        seed=cfg.sampling.seed,
        classes=cfg.features.classes,
        collapse_length=cfg.features.collapse_length,
    )


def sampling_settings(cfg: AnalysisConfig) -> dict[str, Any]:
    """The parts of *cfg* that determine the staged sample, in JSON form."""
    return {
        "source": cfg.source.model_dump(mode="json"),
        "geography": cfg.geography.model_dump(mode="json"),
        "sampling": cfg.sampling.model_dump(mode="json"),
        "classes": cfg.features.classes,
        "collapse_length": cfg.features.collapse_length,
    }


def load_or_build_sample(cfg: AnalysisConfig) -> Sample:
    """Reuse the staged sample if it was built from the current settings.

    Otherwise the sample is rebuilt and restaged.
    """
    settings = sampling_settings(cfg)
    if has_sample(cfg.staging_dir):
        if staged_from(cfg.staging_dir) == settings:
            return read_sample(cfg.staging_dir)
        logger.warning(
            "Staged sample in %s was built from different settings; rebuilding",
            cfg.staging_dir,
        )
    sample = sample_from_config(cfg)
    write_sample(sample, cfg.staging_dir, built_from=settings)
    return sample


def run_build_sample(config_path: str) -> None:
    cfg = load_config(config_path)
    setup_logging(cfg.log_level)
    sample = sample_from_config(cfg)
    write_sample(sample, cfg.staging_dir, built_from=sampling_settings(cfg))
