"""causalab CLI -- typer-based command interface.

Commands:
    causalab labs list/run             Course labs
    causalab dag check/adjust/test     Read a DAG, find adjustment sets, test it
    causalab discover <csv>            Causal discovery on a dataset
    causalab simulate <name>           Write a simulated dataset to CSV
    causalab config show               Effective configuration
"""

from __future__ import annotations

import typer

from causalab.cli import config_cmd, dag_cmd, labs_cmd
from causalab.cli.discover_cmd import discover
from causalab.cli.simulate_cmd import simulate

app = typer.Typer(
    name="causalab",
    help="Causal inference labs: simulate data, read DAGs, discover structure, estimate effects.",
    no_args_is_help=True,
)

app.add_typer(labs_cmd.app, name="labs")
app.add_typer(dag_cmd.app, name="dag")
app.add_typer(config_cmd.app, name="config")
app.command("discover")(discover)
app.command("simulate")(simulate)


@app.callback()
def _setup(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress at INFO level"),
) -> None:
    """Configure logging once per invocation."""
    from causalab.observability import ObservabilityConfig, setup_logging

    config = ObservabilityConfig()
    if verbose:
        config.log_level = "INFO"
    setup_logging(config)


def main() -> None:
    """Entry point for the causalab CLI."""
    app()
