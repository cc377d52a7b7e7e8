"""CLI handler for the show-results subcommand."""

from __future__ import annotations

from itertools import groupby

import typer

from areal_typology.config.loader import load_config
from areal_typology.enrichment.models import rank_results
from areal_typology.export.results_store import ResultStore


def run_show(config_path: str, variant: str | None, top: int) -> None:
    cfg = load_config(config_path)
    results = ResultStore(cfg.output_dir).results()
    if variant:
        results = [r for r in results if r.variant == variant]
    if not results:
        typer.echo(f"No results under {cfg.output_dir}")
        raise typer.Exit(code=1)

    for name, rows in groupby(rank_results(results), key=lambda r: r.variant):
        typer.echo(f"== {name}")
        typer.echo(f"{'feature':<12}{'observed':>10}{'quantile':>10}{'logit':>9}{'n':>6}")
        for r in list(rows)[:top]:
            typer.echo(
                f"{r.feature_id:<12}{r.observed_statistic:>10.4f}"
                f"{r.empirical_quantile:>10.4f}{r.logit_quantile:>9.2f}{r.n_present:>6}"
            )
