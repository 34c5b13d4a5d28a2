"""Causal discovery: thin wrappers over causal-learn and pgmpy searches.

Every algorithm returns a ``DiscoveryResult`` so labs can print, plot and
score them the same way. The searches themselves live in the libraries.

causal-learn encodes graphs as endpoint matrices: ``graph[i, j]`` is the
mark at node i on the edge between i and j (-1 tail, 1 arrow, 2 circle,
0 no edge). ``i --> j`` is ``graph[i, j] == -1`` and ``graph[j, i] == 1``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from causalab.causal.dag import CausalDAG
from causalab.errors import DataError, UnknownNameError
from causalab.types import DiscoveredEdge, EdgeMark, EdgeType, GraphKind

logger = logging.getLogger(__name__)

_MARKS = {-1: EdgeMark.TAIL, 1: EdgeMark.ARROW, 2: EdgeMark.CIRCLE}


@dataclass
class DiscoveryResult:
    """Graph returned by a discovery algorithm."""

    algorithm: str
    variables: list[str]
    edges: list[DiscoveredEdge]
    graph_kind: GraphKind
    params: dict[str, Any] = field(default_factory=dict)
    runtime: float = 0.0

    def directed_edges(self) -> list[tuple[str, str]]:
        return sorted((e.source, e.target) for e in self.edges if e.is_directed)

    def undirected_edges(self) -> list[tuple[str, str]]:
        return sorted(
            tuple(sorted((e.source, e.target)))
            for e in self.edges
            if e.edge_type == EdgeType.UNDIRECTED
        )

    def adjacencies(self) -> set[frozenset[str]]:
        return {frozenset((e.source, e.target)) for e in self.edges}

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {"source": e.source, "edge": e.edge_type.value, "target": e.target, "weight": e.weight}
                for e in self.edges
            ],
            columns=["source", "edge", "target", "weight"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "algorithm": self.algorithm,
            "graph_kind": self.graph_kind.value,
            "variables": list(self.variables),
            "edges": [str(e) for e in self.edges],
            "params": {k: v for k, v in self.params.items() if isinstance(v, str | int | float | bool)},
            "runtime": self.runtime,
        }


# =============================================================================
# Decoding
# =============================================================================


def decode_endpoint_matrix(
    graph: np.ndarray,
    variables: list[str],
    weights: np.ndarray | None = None,
) -> list[DiscoveredEdge]:
    """Turn a causal-learn endpoint matrix into DiscoveredEdges.

    Edges are oriented so that an arrowhead, if any, sits at the target.
    """
    graph = np.asarray(graph)
    if graph.shape != (len(variables), len(variables)):
        raise ValueError(
            f"Endpoint matrix shape {graph.shape} does not match {len(variables)} variables"
        )

    edges: list[DiscoveredEdge] = []
    for i in range(len(variables)):
        for j in range(i + 1, len(variables)):
            if graph[i, j] == 0 and graph[j, i] == 0:
                continue
            mark_i = _MARKS[int(graph[i, j])]
            mark_j = _MARKS[int(graph[j, i])]
            src, tgt = i, j
            try:
                edge_type = EdgeType.from_marks(mark_i, mark_j)
            except ValueError:
                src, tgt = j, i
                edge_type = EdgeType.from_marks(mark_j, mark_i)
            weight = float(weights[tgt, src]) if weights is not None else None
            edges.append(DiscoveredEdge(variables[src], variables[tgt], edge_type, weight))
    return edges


def _as_matrix(frame: pd.DataFrame) -> np.ndarray:
    """Numeric matrix for causal-learn; non-numeric columns are integer-coded."""
    cols = []
    for c in frame.columns:
        s = frame[c]
        if pd.api.types.is_numeric_dtype(s):
            cols.append(s.to_numpy(dtype=float))
        else:
            cols.append(pd.factorize(s, sort=True)[0].astype(float))
    return np.column_stack(cols)


# =============================================================================
# Algorithms
# =============================================================================


def _pc(frame: pd.DataFrame, alpha: float = 0.05, indep_test: str = "fisherz", stable: bool = True) -> DiscoveryResult:
    from causallearn.search.ConstraintBased.PC import pc

    variables = [str(c) for c in frame.columns]
    cg = pc(
        _as_matrix(frame),
        alpha=alpha,
        indep_test=indep_test,
        stable=stable,
        show_progress=False,
    )
    return DiscoveryResult(
        algorithm="pc",
        variables=variables,
        edges=decode_endpoint_matrix(cg.G.graph, variables),
        graph_kind=GraphKind.CPDAG,
        params={"alpha": alpha, "indep_test": indep_test, "stable": stable},
    )


def _fci(frame: pd.DataFrame, alpha: float = 0.05, indep_test: str = "fisherz") -> DiscoveryResult:
    from causallearn.search.ConstraintBased.FCI import fci

    variables = [str(c) for c in frame.columns]
    g, _edges = fci(
        _as_matrix(frame),
        independence_test_method=indep_test,
        alpha=alpha,
        show_progress=False,
    )
    return DiscoveryResult(
        algorithm="fci",
        variables=variables,
        edges=decode_endpoint_matrix(g.graph, variables),
        graph_kind=GraphKind.PAG,
        params={"alpha": alpha, "indep_test": indep_test},
    )


_GES_SCORES = {"bic": "local_score_BIC", "bdeu": "local_score_BDeu"}


def _ges(
    frame: pd.DataFrame, score_func: str = "bic", max_parents: int | None = None
) -> DiscoveryResult:
    from causallearn.search.ScoreBased.GES import ges

    if score_func not in _GES_SCORES:
        raise UnknownNameError("GES score", score_func, _GES_SCORES)
    variables = [str(c) for c in frame.columns]
    record = ges(
        _as_matrix(frame),
        score_func=_GES_SCORES[score_func],
        maxP=max_parents,
    )
    return DiscoveryResult(
        algorithm="ges",
        variables=variables,
        edges=decode_endpoint_matrix(record["G"].graph, variables),
        graph_kind=GraphKind.CPDAG,
        params={"score_func": score_func, "max_parents": max_parents},
    )


def _lingam(frame: pd.DataFrame, threshold: float = 0.05, seed: int | None = None) -> DiscoveryResult:
    from causallearn.search.FCMBased.lingam import DirectLiNGAM

    variables = [str(c) for c in frame.columns]
    model = DirectLiNGAM(random_state=seed)
    model.fit(_as_matrix(frame))

    # adjacency_matrix_[i, j] is the effect of j on i: x = Bx + e
    b = np.asarray(model.adjacency_matrix_)
    edges = [
        DiscoveredEdge(variables[j], variables[i], EdgeType.DIRECTED, float(b[i, j]))
        for i in range(len(variables))
        for j in range(len(variables))
        if abs(b[i, j]) > threshold
    ]
    return DiscoveryResult(
        algorithm="lingam",
        variables=variables,
        edges=edges,
        graph_kind=GraphKind.DAG,
        params={
            "threshold": threshold,
            "causal_order": [variables[k] for k in model.causal_order_],
        },
    )


def _hillclimb(frame: pd.DataFrame, score: str = "bic", max_indegree: int | None = None) -> DiscoveryResult:
    from causalab.bayesnet import learn_structure

    dag = learn_structure(frame, scoring=score, max_indegree=max_indegree)
    variables = [str(c) for c in frame.columns]
    return DiscoveryResult(
        algorithm="hillclimb",
        variables=variables,
        edges=[DiscoveredEdge(u, v, EdgeType.DIRECTED) for u, v in dag.edge_list()],
        graph_kind=GraphKind.DAG,
        params={"score": score, "max_indegree": max_indegree},
    )


# =============================================================================
# Registry
# =============================================================================

_ALGORITHMS: dict[str, Callable[..., DiscoveryResult]] = {
    "pc": _pc,
    "fci": _fci,
    "ges": _ges,
    "lingam": _lingam,
    "hillclimb": _hillclimb,
}


def register_algorithm(name: str, fn: Callable[..., DiscoveryResult]) -> None:
    _ALGORITHMS[name] = fn


def available_algorithms() -> list[str]:
    return list(_ALGORITHMS)


def discover(frame: pd.DataFrame, algorithm: str = "pc", **params: Any) -> DiscoveryResult:
    """Run a discovery algorithm by name on every column of ``frame``."""
    if algorithm not in _ALGORITHMS:
        raise UnknownNameError("discovery algorithm", algorithm, _ALGORITHMS)
    if frame.shape[1] < 2:
        raise DataError("Discovery needs at least two variables")

    clean = frame.dropna()
    if len(clean) < len(frame):
        logger.warning("Dropped %d rows with missing values", len(frame) - len(clean))

    t0 = time.perf_counter()
    result = _ALGORITHMS[algorithm](clean, **params)
    result.runtime = time.perf_counter() - t0
    logger.info(
        "%s found %d edges over %d variables in %.2fs",
        algorithm,
        len(result.edges),
        len(result.variables),
        result.runtime,
    )
    return result


# =============================================================================
# Scoring against a known DAG
# =============================================================================


def _ratio(num: int, den: int) -> float:
    return num / den if den else 0.0


def compare(result: DiscoveryResult, truth: CausalDAG) -> dict[str, float]:
    """Adjacency / arrowhead precision and recall plus structural Hamming distance.

    An arrowhead is counted at the target of directed and partially
    directed edges and at both ends of bidirected edges. SHD counts one
    for every missing or extra adjacency and for every shared adjacency
    whose estimate is not the true directed edge.
    """
    true_adj = {frozenset(e) for e in truth.edge_list()}
    est_adj = result.adjacencies()
    shared_adj = true_adj & est_adj

    true_heads = set(truth.edge_list())
    est_heads: set[tuple[str, str]] = set()
    for e in result.edges:
        if e.edge_type in (EdgeType.DIRECTED, EdgeType.PARTIALLY_DIRECTED):
            est_heads.add((e.source, e.target))
        elif e.edge_type == EdgeType.BIDIRECTED:
            est_heads.add((e.source, e.target))
            est_heads.add((e.target, e.source))
    shared_heads = true_heads & est_heads

    directed = set(result.directed_edges())
    shd = len(true_adj ^ est_adj)
    for pair in shared_adj:
        a, b = sorted(pair)
        true_edge = (a, b) if truth.has_edge(a, b) else (b, a)
        if true_edge not in directed:
            shd += 1

    return {
        "adjacency_precision": _ratio(len(shared_adj), len(est_adj)),
        "adjacency_recall": _ratio(len(shared_adj), len(true_adj)),
        "arrowhead_precision": _ratio(len(shared_heads), len(est_heads)),
        "arrowhead_recall": _ratio(len(shared_heads), len(true_heads)),
        "shd": float(shd),
    }
