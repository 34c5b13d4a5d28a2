"""CLI commands for listing and running labs."""

from __future__ import annotations

from pathlib import Path

import typer

from causalab.cli._errors import handle_error, reports_errors
from causalab.config import get_config

app = typer.Typer(help="List and run the course labs.")

_FORMATS = ("text", "yaml", "json")


@app.command("list")
def list_labs() -> None:
    """List registered labs."""
    from causalab.labs import available_labs

    labs = available_labs()
    width = max(len(lab.name) for lab in labs)
    for lab in labs:
        typer.echo(f"{lab.name:<{width}}  {lab.summary}")


@app.command()
@reports_errors
def run(
    name: str = typer.Argument(..., help="Lab name (see 'causalab labs list')"),
    data: Path = typer.Option(None, "--data", "-d", help="CSV to analyse instead of simulating"),
    seed: int = typer.Option(None, "--seed", "-s", help="Random seed (default: config seed)"),
    n: int = typer.Option(None, "--n", "-n", help="Simulated rows (default: config n_samples)"),
    output: Path = typer.Option(None, "--output", "-o", help="Directory for figures"),
    fmt: str = typer.Option("text", "--format", "-f", help="Report format: text, yaml, json"),
    no_figures: bool = typer.Option(False, "--no-figures", help="Do not save figures"),
) -> None:
    """Run a lab and print its report.

    Examples:
        causalab labs run confounding
        causalab labs run bayesnet --data data/sprinkler.csv --format yaml
        causalab labs run metalearners -n 1000 --no-figures
    """
    from causalab.data import load_csv
    from causalab.labs import LabContext, run_lab

    if fmt not in _FORMATS:
        handle_error(f"Unknown format {fmt!r}; use one of {', '.join(_FORMATS)}")

    config = get_config()
    context = LabContext(
        config=config,
        data=load_csv(data, config.data_path) if data else None,
        seed=seed,
        n_samples=n,
        output_dir=output,
        save_figures=False if no_figures else None,
    )
    report = run_lab(name, context)
    typer.echo(report.render(fmt).rstrip())
