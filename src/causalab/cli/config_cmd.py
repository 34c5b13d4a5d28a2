"""CLI commands for inspecting configuration."""

from __future__ import annotations

import typer
import yaml

from causalab.config import get_config

app = typer.Typer(help="Show the effective configuration.")


@app.command()
def show() -> None:
    """Print the configuration after YAML and CAUSALAB_* env overrides."""
    typer.echo(yaml.safe_dump(get_config().to_dict(), default_flow_style=False, sort_keys=False).rstrip())
