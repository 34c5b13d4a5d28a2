"""CLI commands for reading and testing DAGs."""

from __future__ import annotations

from pathlib import Path

import typer

from causalab.cli._errors import handle_error, reports_errors
from causalab.causal.dag import CausalDAG
from causalab.config import get_config

app = typer.Typer(help="Read a DAG: implied independences, adjustment sets, local tests.")


def _load_dag(text_or_path: str) -> CausalDAG:
    """Parse dagitty text given inline or as a file path."""
    path = Path(text_or_path).expanduser()
    if "{" not in text_or_path and "->" not in text_or_path and path.exists():
        text_or_path = path.read_text()
    return CausalDAG.from_dagitty(text_or_path)


@app.command()
@reports_errors
def check(
    dag: str = typer.Argument(..., help='DAG text, e.g. "dag { Z -> X; Z -> Y; X -> Y }", or a file'),
    dot: bool = typer.Option(False, "--dot", help="Also print the DOT form"),
) -> None:
    """Validate a DAG and list the independences it implies.

    Examples:
        causalab dag check "dag { Z -> X; Z -> Y; X -> Y }"
        causalab dag check models/smoking.dag --dot
    """
    from causalab.causal.dsep import DSeparationEngine

    graph = _load_dag(dag)
    engine = DSeparationEngine(dag=graph)

    typer.echo(f"Nodes: {len(graph.node_ids)}  Edges: {graph.edge_count}")
    typer.echo(f"Topological order: {' -> '.join(graph.topological_order())}")
    implied = engine.implied_independences()
    typer.echo(f"Implied independences ({len(implied)}):")
    for assertion in implied:
        typer.echo(f"  {assertion}")
    if dot:
        typer.echo("")
        typer.echo(graph.to_dot())


@app.command()
@reports_errors
def adjust(
    dag: str = typer.Argument(..., help="DAG text or file"),
    treatment: str = typer.Option(..., "--treatment", "-t", help="Exposure node"),
    outcome: str = typer.Option(..., "--outcome", "-y", help="Outcome node"),
) -> None:
    """Find a minimal back-door adjustment set for treatment -> outcome."""
    from causalab.causal.dsep import DSeparationEngine

    graph = _load_dag(dag)
    engine = DSeparationEngine(dag=graph)
    try:
        adjustment = engine.adjustment_set(treatment, outcome)
        paths = engine.backdoor_paths(treatment, outcome)
        roles = graph.roles(treatment, outcome)
    except KeyError as e:
        handle_error(str(e.args[0]))

    if adjustment is None:
        typer.echo(f"No adjustment set identifies {treatment} -> {outcome} among observed nodes.")
    else:
        typer.echo(f"Adjustment set: {{{', '.join(sorted(adjustment))}}}")
    typer.echo(f"Back-door paths ({len(paths)}):")
    for path in paths:
        typer.echo(f"  {' - '.join(path)}")
    for role, nodes in roles.items():
        typer.echo(f"{role.capitalize()}: {', '.join(nodes) or '-'}")


@app.command("test")
@reports_errors
def test_dag(
    dag: str = typer.Argument(..., help="DAG text or file"),
    csv: Path = typer.Argument(..., help="Dataset whose columns are the DAG's nodes"),
    alpha: float = typer.Option(None, "--alpha", "-a", help="Significance level (default: config alpha)"),
) -> None:
    """Test the DAG's implied independences against a dataset."""
    from causalab.causal.dsep import DSeparationEngine
    from causalab.causal.refutation import DAGRefuter
    from causalab.data import load_csv, require_columns

    config = get_config()
    graph = _load_dag(dag)
    frame = load_csv(csv, config.data_path)
    require_columns(frame, graph.observed)

    refuter = DAGRefuter(significance_level=alpha if alpha is not None else config.alpha)
    results = refuter.refute_all(DSeparationEngine(dag=graph).implied_independences(), frame)
    if not results:
        typer.echo("The DAG implies no testable independences.")
        return

    table = DAGRefuter.to_frame(results)
    typer.echo(table.to_string(index=False, float_format=lambda v: f"{v:.4f}"))
    rejected = int((~table["consistent"]).sum())
    typer.echo(f"\n{len(results) - rejected}/{len(results)} implications consistent with the data")
