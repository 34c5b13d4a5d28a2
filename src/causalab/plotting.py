"""matplotlib figures for the labs.

Rendering is headless (Agg backend). Every function accepts an optional
``ax`` and returns the Figure it drew on; ``save_figure`` writes and
closes it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import networkx as nx  # noqa: E402
import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402
from matplotlib.axes import Axes  # noqa: E402
from matplotlib.figure import Figure  # noqa: E402

from causalab.causal.dag import CausalDAG  # noqa: E402
from causalab.discovery import DiscoveryResult  # noqa: E402
from causalab.types import EdgeType, EffectEstimate  # noqa: E402

logger = logging.getLogger(__name__)

_NODE_COLOR = "#dce6f2"
_HIGHLIGHT_COLOR = "#f4b183"
_LATENT_COLOR = "#eeeeee"


def _axes(ax: Axes | None, figsize: tuple[float, float] = (6.0, 4.0)) -> tuple[Figure, Axes]:
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
        return fig, ax
    return ax.figure, ax


def _layered_layout(graph: nx.DiGraph) -> dict[str, np.ndarray]:
    """Left-to-right layout, one column per topological generation."""
    g = graph.copy()
    for layer, nodes in enumerate(nx.topological_generations(g)):
        for n in nodes:
            g.nodes[n]["layer"] = layer
    return nx.multipartite_layout(g, subset_key="layer")


def draw_dag(dag: CausalDAG, ax: Axes | None = None, highlight: Iterable[str] = ()) -> Figure:
    """Draw a DAG with edge strengths as labels; ``highlight`` nodes are shaded."""
    fig, ax = _axes(ax)
    graph = dag.graph
    pos = _layered_layout(graph) if graph.number_of_nodes() else {}
    marked = set(highlight)
    latent = dag.latent

    colors = [
        _HIGHLIGHT_COLOR if n in marked else _LATENT_COLOR if n in latent else _NODE_COLOR
        for n in graph.nodes
    ]
    nx.draw_networkx_nodes(graph, pos, ax=ax, node_color=colors, node_size=1200, edgecolors="black")
    nx.draw_networkx_labels(graph, pos, ax=ax, font_size=10)
    nx.draw_networkx_edges(graph, pos, ax=ax, arrows=True, arrowsize=18, node_size=1200)

    labels = {
        (u, v): f"{d['strength']:.2g}"
        for u, v, d in graph.edges(data=True)
        if d.get("strength", 1.0) != 1.0
    }
    if labels:
        nx.draw_networkx_edge_labels(graph, pos, edge_labels=labels, ax=ax, font_size=8)
    ax.set_axis_off()
    return fig


def draw_discovery(result: DiscoveryResult, ax: Axes | None = None) -> Figure:
    """Draw a discovered graph: directed solid, undirected dashed, the rest dotted."""
    fig, ax = _axes(ax)
    graph = nx.DiGraph()
    graph.add_nodes_from(result.variables)
    pos = nx.circular_layout(graph)
    nx.draw_networkx_nodes(graph, pos, ax=ax, node_color=_NODE_COLOR, node_size=1000, edgecolors="black")
    nx.draw_networkx_labels(graph, pos, ax=ax, font_size=10)

    groups: dict[str, list[tuple[str, str]]] = {"directed": [], "undirected": [], "other": []}
    for e in result.edges:
        if e.edge_type == EdgeType.DIRECTED:
            groups["directed"].append((e.source, e.target))
        elif e.edge_type == EdgeType.UNDIRECTED:
            groups["undirected"].append((e.source, e.target))
        else:
            groups["other"].append((e.source, e.target))

    styles = {
        "directed": {"style": "solid", "arrows": True, "arrowstyle": "-|>"},
        "undirected": {"style": "dashed", "arrows": True, "arrowstyle": "-"},
        "other": {"style": "dotted", "arrows": True, "arrowstyle": "<|-|>"},
    }
    for name, edgelist in groups.items():
        if edgelist:
            nx.draw_networkx_edges(
                graph, pos, edgelist=edgelist, ax=ax, node_size=1000, arrowsize=16, **styles[name]
            )
    ax.set_title(f"{result.algorithm} ({result.graph_kind.value})")
    ax.set_axis_off()
    return fig


def plot_cate(estimate: EffectEstimate, ax: Axes | None = None, truth: float | None = None) -> Figure:
    """Histogram of per-row effects with the ATE (and true ATE) marked."""
    if estimate.cate is None:
        raise ValueError(f"{estimate.method} has no per-row effects to plot")
    fig, ax = _axes(ax)
    ax.hist(np.asarray(estimate.cate, dtype=float), bins=40, color=_NODE_COLOR, edgecolor="black")
    ax.axvline(estimate.ate, color="black", linestyle="--", label=f"ATE {estimate.ate:.2f}")
    if truth is not None:
        ax.axvline(truth, color="red", label=f"true {truth:.2f}")
    ax.set_xlabel("CATE")
    ax.set_ylabel("rows")
    ax.set_title(estimate.method)
    ax.legend()
    return fig


def plot_effect_comparison(frame: pd.DataFrame, truth: float | None = None, ax: Axes | None = None) -> Figure:
    """Point estimates (with intervals where present) for each method."""
    fig, ax = _axes(ax)
    ys = np.arange(len(frame))
    ate = frame["ate"].to_numpy(dtype=float)
    ax.scatter(ate, ys, color="black", zorder=3)

    if {"ci_low", "ci_high"} <= set(frame.columns):
        low = pd.to_numeric(frame["ci_low"], errors="coerce").to_numpy()
        high = pd.to_numeric(frame["ci_high"], errors="coerce").to_numpy()
        has_ci = ~(np.isnan(low) | np.isnan(high))
        if has_ci.any():
            ax.hlines(ys[has_ci], low[has_ci], high[has_ci], color="black")

    if truth is not None:
        ax.axvline(truth, color="red", linestyle="--", label="truth")
        ax.legend()
    ax.set_yticks(ys, frame["method"].tolist())
    ax.set_xlabel("effect")
    return fig


def save_figure(fig: Figure, path: str | Path) -> Path:
    out = Path(path).expanduser()
    out.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out, dpi=150, bbox_inches="tight")
    plt.close(fig)
    logger.info("Saved figure %s", out)
    return out
