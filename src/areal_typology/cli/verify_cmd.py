"""CLI handler for the verify-seed subcommand."""

from __future__ import annotations

import typer

from areal_typology.config.loader import load_config
from areal_typology.enrichment.features import build_feature_table
from areal_typology.enrichment.permutation import derive_seed, verify_reproducibility
from areal_typology.utils.logging_setup import setup_logging

from .enrich_cmd import prepare_variants
from .sample_cmd import load_or_build_sample


def run_verify(config_path: str, feature: str, variant: str, iterations: int) -> None:
    cfg = load_config(config_path)
    setup_logging(cfg.log_level)

    sample = load_or_build_sample(cfg)
    data = prepare_variants(cfg, sample, [variant])[variant]
    table = build_feature_table(feature, data.sample.records, data.sample.features)
    seed = derive_seed(cfg.permutation.seed, variant, feature)
    outcome = verify_reproducibility(
        table, data.index, iterations, seed, cfg.permutation.batch_size
    )
    typer.echo(
        f"{variant} {feature}: reproducible over {iterations} permutations "
        f"(observed={outcome.observed:.4f}, quantile={outcome.quantile:.4f})"
    )
