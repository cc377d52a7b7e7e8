"""Typer application for the areal enrichment analysis."""

from __future__ import annotations

from typing import List, Optional

import typer

app = typer.Typer(
    name="areal-typology",
    help="Family-stratified permutation tests for areal clustering of phonemes.",
    no_args_is_help=True,
)


@app.command()
def build_sample(
    config: str = typer.Option(..., "--config", "-c", help="Path to config YAML"),
) -> None:
    """Ingest inventories, sample one per language code, and stage the result."""
    from .sample_cmd import run_build_sample

    run_build_sample(config)


@app.command()
def run_enrichment(
    config: str = typer.Option(..., "--config", "-c", help="Path to config YAML"),
    variant: Optional[List[str]] = typer.Option(
        None, "--variant", "-v", help="Only run these variants (repeatable)"
    ),
    fresh: bool = typer.Option(
        False, "--fresh", help="Discard checkpointed progress and start over"
    ),
) -> None:
    """Run the permutation tests for all selected features and variants."""
    from .enrich_cmd import run_enrichment as _run

    _run(config, variant or None, fresh)


@app.command()
def verify_seed(
    config: str = typer.Option(..., "--config", "-c", help="Path to config YAML"),
    feature: str = typer.Option(..., "--feature", "-f", help="Feature to check"),
    variant: str = typer.Option("full", "--variant", "-v", help="Variant name"),
    iterations: int = typer.Option(
        1000, "--iterations", "-n", help="Permutations per run"
    ),
) -> None:
    """Run one feature twice with the same seed and compare the null distributions."""
    from .verify_cmd import run_verify

    run_verify(config, feature, variant, iterations)


@app.command()
def show_results(
    config: str = typer.Option(..., "--config", "-c", help="Path to config YAML"),
    variant: Optional[str] = typer.Option(None, "--variant", "-v", help="Variant name"),
    top: int = typer.Option(20, "--top", "-n", help="Rows per variant"),
) -> None:
    """Print the ranked result table."""
    from .show_cmd import run_show

    run_show(config, variant, top)


if __name__ == "__main__":
    app()
