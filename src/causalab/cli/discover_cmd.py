"""CLI command for causal discovery."""

from __future__ import annotations

import json
from pathlib import Path

import typer

from causalab.cli._errors import handle_error, reports_errors
from causalab.config import get_config

# Algorithms that take a significance level
_ALPHA_ALGORITHMS = {"pc", "fci"}


@reports_errors
def discover(
    csv: Path = typer.Argument(..., help="Dataset (CSV path or name under data_dir)"),
    algorithm: str = typer.Option("pc", "--algorithm", "-a", help="pc, fci, ges, lingam, hillclimb"),
    alpha: float = typer.Option(None, "--alpha", help="Significance level for pc/fci (default: config alpha)"),
    columns: str = typer.Option(None, "--columns", "-c", help="Comma-separated subset of columns"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    figure: Path = typer.Option(None, "--figure", help="Save a drawing of the graph here"),
) -> None:
    """Run a discovery algorithm on every column of a dataset.

    Examples:
        causalab discover data/discovery.csv
        causalab discover sprinkler --algorithm hillclimb
        causalab discover data/discovery.csv -a ges --json
    """
    from causalab.data import load_csv, require_columns
    from causalab.discovery import available_algorithms
    from causalab.discovery import discover as run_discovery

    config = get_config()
    if algorithm not in available_algorithms():
        handle_error(f"Unknown algorithm {algorithm!r}. Available: {', '.join(available_algorithms())}")

    frame = load_csv(csv, config.data_path)
    if columns:
        names = [c.strip() for c in columns.split(",") if c.strip()]
        require_columns(frame, names)
        frame = frame[names]

    params = {}
    if algorithm in _ALPHA_ALGORITHMS:
        params["alpha"] = alpha if alpha is not None else config.alpha
    result = run_discovery(frame, algorithm=algorithm, **params)

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        typer.echo(f"{result.algorithm}: {result.graph_kind.value} over {len(result.variables)} variables")
        for edge in result.edges:
            typer.echo(f"  {edge}")
        typer.echo(f"({len(result.edges)} edges, {result.runtime:.2f}s)")

    if figure:
        from causalab.plotting import draw_discovery, save_figure

        path = save_figure(draw_discovery(result), figure)
        typer.echo(f"Saved figure to {path}")
