"""Tests for discovery wrappers: endpoint decoding, scoring, and library runs."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from causalab.causal.dag import CausalDAG
from causalab.discovery import (
    DiscoveryResult,
    _ALGORITHMS,
    available_algorithms,
    compare,
    decode_endpoint_matrix,
    discover,
)
from causalab.errors import DataError, UnknownNameError
from causalab.simulate import simulate
from causalab.types import DiscoveredEdge, EdgeType, GraphKind


def _result(*edges: DiscoveredEdge, variables=("X", "Y", "Z")) -> DiscoveryResult:
    return DiscoveryResult(
        algorithm="test",
        variables=list(variables),
        edges=list(edges),
        graph_kind=GraphKind.CPDAG,
    )


# =========================================================================
# Endpoint matrix decoding
# =========================================================================


class TestDecode:
    def test_directed(self):
        g = np.array([[0, -1], [1, 0]])
        (edge,) = decode_endpoint_matrix(g, ["X", "Y"])
        assert (edge.source, edge.target, edge.edge_type) == ("X", "Y", EdgeType.DIRECTED)

    def test_reverse_directed_is_flipped(self):
        g = np.array([[0, 1], [-1, 0]])
        (edge,) = decode_endpoint_matrix(g, ["X", "Y"])
        assert (edge.source, edge.target) == ("Y", "X")
        assert edge.is_directed

    @pytest.mark.parametrize(
        ("ij", "ji", "expected"),
        [
            (-1, -1, EdgeType.UNDIRECTED),
            (1, 1, EdgeType.BIDIRECTED),
            (2, 1, EdgeType.PARTIALLY_DIRECTED),
            (2, 2, EdgeType.NONDIRECTED),
            (2, -1, EdgeType.PARTIALLY_UNDIRECTED),
        ],
    )
    def test_marks(self, ij, ji, expected):
        g = np.array([[0, ij], [ji, 0]])
        (edge,) = decode_endpoint_matrix(g, ["X", "Y"])
        assert edge.edge_type == expected

    def test_no_edges(self):
        assert decode_endpoint_matrix(np.zeros((3, 3)), ["A", "B", "C"]) == []

    def test_weights_read_target_row(self):
        g = np.array([[0, -1], [1, 0]])
        w = np.array([[0.0, 0.0], [0.7, 0.0]])
        (edge,) = decode_endpoint_matrix(g, ["X", "Y"], weights=w)
        assert edge.weight == pytest.approx(0.7)

    def test_shape_mismatch(self):
        with pytest.raises(ValueError, match="does not match"):
            decode_endpoint_matrix(np.zeros((2, 2)), ["A", "B", "C"])


# =========================================================================
# Scoring against the true DAG
# =========================================================================


class TestCompare:
    @pytest.fixture
    def truth(self) -> CausalDAG:
        return CausalDAG.from_edges([("X", "Y"), ("Y", "Z")])

    def test_perfect(self, truth):
        result = _result(
            DiscoveredEdge("X", "Y", EdgeType.DIRECTED),
            DiscoveredEdge("Y", "Z", EdgeType.DIRECTED),
        )
        scores = compare(result, truth)
        assert scores["shd"] == 0.0
        assert scores["adjacency_precision"] == 1.0
        assert scores["arrowhead_recall"] == 1.0

    def test_undirected_edge_costs_one(self, truth):
        result = _result(
            DiscoveredEdge("X", "Y", EdgeType.DIRECTED),
            DiscoveredEdge("Y", "Z", EdgeType.UNDIRECTED),
        )
        scores = compare(result, truth)
        assert scores["adjacency_recall"] == 1.0
        assert scores["arrowhead_recall"] == 0.5
        assert scores["arrowhead_precision"] == 1.0
        assert scores["shd"] == 1.0

    def test_extra_and_reversed(self, truth):
        result = _result(
            DiscoveredEdge("Y", "X", EdgeType.DIRECTED),
            DiscoveredEdge("Y", "Z", EdgeType.DIRECTED),
            DiscoveredEdge("X", "Z", EdgeType.DIRECTED),
        )
        scores = compare(result, truth)
        assert scores["adjacency_precision"] == pytest.approx(2 / 3)
        assert scores["shd"] == 2.0

    def test_empty_result_scores_zero(self, truth):
        scores = compare(_result(), truth)
        assert scores["adjacency_precision"] == 0.0
        assert scores["adjacency_recall"] == 0.0
        assert scores["shd"] == 2.0

    def test_bidirected_counts_both_heads(self, truth):
        result = _result(DiscoveredEdge("X", "Y", EdgeType.BIDIRECTED))
        assert compare(result, truth)["arrowhead_precision"] == 0.5


# =========================================================================
# Result helpers and registry
# =========================================================================


class TestResult:
    def test_edge_views(self):
        result = _result(
            DiscoveredEdge("X", "Y", EdgeType.DIRECTED),
            DiscoveredEdge("Z", "Y", EdgeType.UNDIRECTED),
        )
        assert result.directed_edges() == [("X", "Y")]
        assert result.undirected_edges() == [("Y", "Z")]
        assert list(result.to_frame().columns) == ["source", "edge", "target", "weight"]
        assert result.to_dict()["edges"] == ["X --> Y", "Z --- Y"]

    def test_dag_from_result(self):
        result = _result(DiscoveredEdge("X", "Y", EdgeType.DIRECTED))
        dag = CausalDAG.from_discovery(result)
        assert dag.has_edge("X", "Y")
        assert "Z" in dag.node_ids


class TestDiscover:
    def test_registry(self):
        assert {"pc", "fci", "ges", "lingam", "hillclimb"} <= set(available_algorithms())

    def test_unknown_algorithm(self):
        with pytest.raises(UnknownNameError, match="discovery algorithm"):
            discover(pd.DataFrame({"a": [1.0], "b": [2.0]}), algorithm="magic")

    def test_needs_two_columns(self):
        with pytest.raises(DataError, match="two variables"):
            discover(pd.DataFrame({"a": [1.0, 2.0]}))

    def test_drops_missing_rows(self, monkeypatch):
        seen = {}

        def fake(frame, **params):
            seen["rows"] = len(frame)
            seen["params"] = params
            return _result(variables=list(frame.columns))

        monkeypatch.setitem(_ALGORITHMS, "fake", fake)
        frame = pd.DataFrame({"a": [1.0, None, 3.0], "b": [1.0, 2.0, 3.0]})
        result = discover(frame, algorithm="fake", alpha=0.01)
        assert seen == {"rows": 2, "params": {"alpha": 0.01}}
        assert result.runtime >= 0.0


@pytest.fixture(scope="module")
def discovery_frame() -> pd.DataFrame:
    return simulate("discovery", n=2000, seed=3).frame


class TestCausalLearn:
    @pytest.fixture(autouse=True)
    def _needs_causallearn(self):
        pytest.importorskip("causallearn")

    def test_pc_finds_skeleton_and_v_structure(self, discovery_frame):
        result = discover(discovery_frame, algorithm="pc", alpha=0.01)
        truth = simulate("discovery", n=10).dag
        scores = compare(result, truth)
        assert scores["adjacency_recall"] == 1.0
        assert {("X1", "X3"), ("X2", "X3")} <= set(result.directed_edges())
        assert result.graph_kind == GraphKind.CPDAG

    def test_ges(self, discovery_frame):
        result = discover(discovery_frame, algorithm="ges", score_func="bic")
        truth = simulate("discovery", n=10).dag
        assert compare(result, truth)["adjacency_recall"] == 1.0
        assert result.params["score_func"] == "bic"

    def test_ges_unknown_score(self, discovery_frame):
        with pytest.raises(UnknownNameError, match="GES score"):
            discover(discovery_frame, algorithm="ges", score_func="aic")

    def test_fci_returns_pag(self, discovery_frame):
        result = discover(discovery_frame, algorithm="fci", alpha=0.01)
        assert result.graph_kind == GraphKind.PAG
        assert len(result.edges) >= 4

    @pytest.mark.slow
    def test_lingam_orients_non_gaussian(self):
        data = simulate("discovery", n=2000, seed=3, noise="uniform")
        result = discover(data.frame, algorithm="lingam", seed=0)
        assert result.params["causal_order"][0] in {"X1", "X2"}
        assert compare(result, data.dag)["shd"] <= 1.0


class TestHillClimb:
    def test_learns_sprinkler_skeleton(self, sprinkler_data):
        pytest.importorskip("pgmpy")
        result = discover(sprinkler_data.frame, algorithm="hillclimb")
        assert result.graph_kind == GraphKind.DAG
        assert all(e.is_directed for e in result.edges)
        assert compare(result, sprinkler_data.dag)["adjacency_recall"] >= 0.75
