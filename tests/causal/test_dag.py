"""Tests for CausalDAG construction, editing and serialisation."""

import networkx as nx
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from causalab.causal.dag import CausalDAG
from causalab.errors import CyclicGraphError, DagSyntaxError
from causalab.types import CausalEdge, DiscoveredEdge, EdgeType


class TestFromEdges:
    def test_tuples_and_strengths(self):
        dag = CausalDAG.from_edges([("A", "B", 0.7), ("B", "C")])
        assert dag.edge_count == 2
        assert dag.edge_strength("A", "B") == 0.7
        assert dag.edge_strength("B", "C") == 1.0
        assert dag.edge_strength("A", "C") == 0.0

    def test_causal_edge_objects(self):
        dag = CausalDAG.from_edges([CausalEdge("X", "Y", strength=0.3, label="dose")])
        assert dag.edges == [CausalEdge("X", "Y", strength=0.3, label="dose")]

    def test_isolated_nodes(self):
        dag = CausalDAG.from_edges([("A", "B")], nodes=["C"])
        assert dag.node_ids == frozenset({"A", "B", "C"})
        assert dag.roots() == frozenset({"A", "C"})

    def test_cycle_raises_in_strict_mode(self):
        with pytest.raises(CyclicGraphError, match="not acyclic"):
            CausalDAG.from_edges([("A", "B"), ("B", "C"), ("C", "A")])

    def test_cycle_error_is_value_error(self):
        with pytest.raises(ValueError):
            CausalDAG.from_edges([("A", "B"), ("B", "A")])

    def test_lenient_mode_drops_weakest_edge(self):
        dag = CausalDAG.from_edges(
            [("A", "B", 0.9), ("B", "C", 0.8), ("C", "A", 0.1)],
            strict=False,
        )
        assert dag.is_valid_dag()
        assert not dag.has_edge("C", "A")
        assert dag.has_edge("A", "B") and dag.has_edge("B", "C")


class TestFromDagitty:
    def test_wrapped_statements(self):
        dag = CausalDAG.from_dagitty("dag { Z -> X; Z -> Y; X -> Y }")
        assert dag.edge_list() == [("X", "Y"), ("Z", "X"), ("Z", "Y")]

    def test_bare_chain_with_reverse_arrow(self):
        dag = CausalDAG.from_dagitty("A -> B <- C")
        assert dag.edge_list() == [("A", "B"), ("C", "B")]

    def test_groups_and_newlines(self, sprinkler_dag):
        assert sprinkler_dag.parents("Wet") == frozenset({"Rain", "Sprinkler"})
        assert sprinkler_dag.children("Season") == frozenset({"Rain", "Sprinkler"})

    def test_roles(self, smoking_dag):
        assert smoking_dag.nodes_with_role("exposure") == frozenset({"Smoking"})
        assert smoking_dag.nodes_with_role("outcome") == frozenset({"Cancer"})
        assert smoking_dag.latent == frozenset({"Genotype"})
        assert "Genotype" not in smoking_dag.observed

    def test_lone_node(self):
        dag = CausalDAG.from_dagitty("dag { X -> Y; W }")
        assert "W" in dag.node_ids
        assert dag.edge_count == 1

    def test_dagitty_editor_export(self):
        text = (
            "dag {\n"
            'bb="0,0,1,1"\n'
            'U [latent,pos="0.500,0.200"]\n'
            'X [exposure,pos="0.200,0.500"]\n'
            'Y [outcome,pos="0.800,0.500"]\n'
            "U -> X\n"
            "U -> Y\n"
            "X -> Y\n"
            "}\n"
        )
        dag = CausalDAG.from_dagitty(text)
        assert dag.edge_list() == [("U", "X"), ("U", "Y"), ("X", "Y")]
        assert dag.latent == frozenset({"U"})
        assert dag.nodes_with_role("exposure") == frozenset({"X"})
        assert "bb" not in dag.node_ids

    def test_graph_attribute_before_edges_on_one_line(self):
        dag = CausalDAG.from_dagitty('dag { bb="0,0,1,1" X -> Y }')
        assert dag.edge_list() == [("X", "Y")]

    def test_cycle(self):
        with pytest.raises(CyclicGraphError):
            CausalDAG.from_dagitty("A -> B -> A")

    @pytest.mark.parametrize(
        "text",
        ["A -> ", "A B", "A -> {B", "A -> {}", "A -> } B", "-> A"],
    )
    def test_syntax_errors(self, text):
        with pytest.raises(DagSyntaxError):
            CausalDAG.from_dagitty(text)

    def test_round_trip(self, smoking_dag):
        again = CausalDAG.from_dagitty(smoking_dag.to_dagitty())
        assert again.edge_list() == smoking_dag.edge_list()
        assert again.latent == smoking_dag.latent


class TestFromDiscovery:
    def _result(self, edges, variables=("A", "B", "C")):
        from causalab.discovery import DiscoveryResult
        from causalab.types import GraphKind

        return DiscoveryResult(
            algorithm="pc",
            variables=list(variables),
            edges=edges,
            graph_kind=GraphKind.CPDAG,
        )

    def test_directed_kept_undirected_oriented(self):
        result = self._result(
            [
                DiscoveredEdge("C", "B", EdgeType.UNDIRECTED),
                DiscoveredEdge("A", "B", EdgeType.DIRECTED),
            ]
        )
        dag = CausalDAG.from_discovery(result)
        assert dag.edge_list() == [("A", "B"), ("B", "C")]

    def test_bidirected_dropped(self):
        result = self._result([DiscoveredEdge("A", "C", EdgeType.BIDIRECTED)])
        dag = CausalDAG.from_discovery(result)
        assert dag.edge_count == 0
        assert dag.node_ids == frozenset({"A", "B", "C"})


class TestAccessors:
    def test_ancestry(self, chain_dag):
        assert chain_dag.ancestors("C") == frozenset({"A", "B"})
        assert chain_dag.descendants("A") == frozenset({"B", "C"})
        assert chain_dag.parents("B") == frozenset({"A"})

    def test_topological_order_is_deterministic(self, sprinkler_dag):
        assert sprinkler_dag.topological_order() == ["Season", "Rain", "Sprinkler", "Wet"]

    def test_roles(self, smoking_dag):
        roles = smoking_dag.roles("Smoking", "Cancer")
        assert roles["confounders"] == ["Genotype"]
        assert roles["mediators"] == ["Tar"]
        assert roles["colliders"] == ["Cancer"]

    def test_roles_unknown_node(self, chain_dag):
        with pytest.raises(KeyError):
            chain_dag.roles("A", "Z")


class TestEditing:
    def test_add_edge_returns_copy(self, chain_dag):
        bigger = chain_dag.add_edge("A", "C", strength=0.4)
        assert bigger.has_edge("A", "C")
        assert not chain_dag.has_edge("A", "C")

    def test_add_edge_rejects_cycle(self, chain_dag):
        with pytest.raises(CyclicGraphError):
            chain_dag.add_edge("C", "A")

    def test_remove_edge(self, chain_dag):
        smaller = chain_dag.remove_edge("A", "B")
        assert smaller.edge_list() == [("B", "C")]
        with pytest.raises(KeyError):
            smaller.remove_edge("A", "B")

    def test_do_removes_incoming_edges(self, sprinkler_dag):
        mutilated = sprinkler_dag.do(["Sprinkler"])
        assert mutilated.parents("Sprinkler") == frozenset()
        assert mutilated.has_edge("Sprinkler", "Wet")
        assert sprinkler_dag.has_edge("Season", "Sprinkler")

    def test_do_unknown_node(self, chain_dag):
        with pytest.raises(KeyError):
            chain_dag.do(["Q"])

    def test_subgraph(self, sprinkler_dag):
        sub = sprinkler_dag.subgraph(["Season", "Rain"])
        assert sub.edge_list() == [("Season", "Rain")]


class TestSerialisation:
    def test_dot(self, chain_dag):
        assert chain_dag.to_dot() == "digraph {\n  A -> B;\n  B -> C;\n}"

    def test_dot_parses_with_networkx_edges(self, confounded_dag):
        lines = confounded_dag.to_dot().splitlines()
        assert "  Z -> X;" in lines

    def test_to_dict(self, chain_dag):
        assert chain_dag.to_dict() == {"nodes": ["A", "B", "C"], "edges": [["A", "B"], ["B", "C"]]}


class TestPropertyBased:
    @given(
        edges=st.lists(
            st.tuples(
                st.sampled_from(["n0", "n1", "n2", "n3", "n4"]),
                st.sampled_from(["n0", "n1", "n2", "n3", "n4"]),
                st.floats(min_value=0.01, max_value=1.0),
            ).filter(lambda t: t[0] != t[1]),
            min_size=0,
            max_size=10,
        )
    )
    @settings(max_examples=50)
    def test_lenient_construction_always_valid(self, edges):
        """Any random edge list yields a valid DAG after cycle breaking."""
        dag = CausalDAG.from_edges(edges, strict=False)
        assert dag.is_valid_dag()
        assert nx.is_directed_acyclic_graph(dag.graph)

    @given(
        edges=st.lists(
            st.tuples(st.sampled_from("ABCDE"), st.sampled_from("ABCDE")).filter(
                lambda t: t[0] != t[1]
            ),
            max_size=8,
        )
    )
    @settings(max_examples=50)
    def test_strict_construction_raises_only_on_cycles(self, edges):
        g = nx.DiGraph(edges)
        if nx.is_directed_acyclic_graph(g):
            assert CausalDAG.from_edges(edges).is_valid_dag()
        else:
            with pytest.raises(CyclicGraphError):
                CausalDAG.from_edges(edges)
