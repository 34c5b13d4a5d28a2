"""CLI command for writing simulated datasets."""

from __future__ import annotations

from pathlib import Path

import typer

from causalab.cli._errors import reports_errors
from causalab.config import get_config


@reports_errors
def simulate(
    name: str = typer.Argument(..., help="Dataset name (confounding, collider, sprinkler, ...)"),
    out: Path = typer.Option(..., "--out", "-o", help="CSV file to write"),
    n: int = typer.Option(None, "--n", "-n", help="Rows (default: config n_samples)"),
    seed: int = typer.Option(None, "--seed", "-s", help="Random seed (default: config seed)"),
) -> None:
    """Simulate a canonical dataset and write it to CSV.

    Examples:
        causalab simulate confounding --out data/confounding.csv
        causalab simulate sprinkler -o sprinkler.csv -n 5000 --seed 1
    """
    from causalab.data import save_csv
    from causalab.simulate import simulate as run_simulation

    config = get_config()
    data = run_simulation(
        name,
        n=n if n is not None else config.n_samples,
        seed=seed if seed is not None else config.seed,
    )
    path = save_csv(data.frame, out)
    typer.echo(f"Wrote {len(data.frame)} rows of {name} to {path}")
    typer.echo(f"DAG: {data.dag}")
    for key, value in data.truth.items():
        typer.echo(f"  {key} = {value:.4f}")
