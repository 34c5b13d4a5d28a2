"""Tests for DSeparationEngine.

Cross-validates every result against networkx.is_d_separator() directly.
"""

import networkx as nx
import pytest

from causalab.causal.dsep import DSeparationEngine
from causalab.types import CausalQuery, QueryType


class TestChain:
    """A → B → C"""

    def test_a_independent_of_c_given_b(self, chain_dag):
        engine = DSeparationEngine(dag=chain_dag)
        result = engine.is_d_separated(frozenset({"A"}), frozenset({"C"}), frozenset({"B"}))
        assert result.is_independent is True
        assert result.method == "d_separation"
        assert nx.is_d_separator(chain_dag.graph, {"A"}, {"C"}, {"B"})

    def test_a_dependent_on_c_unconditional(self, chain_dag):
        engine = DSeparationEngine(dag=chain_dag)
        result = engine.is_d_separated(frozenset({"A"}), frozenset({"C"}), frozenset())
        assert result.is_independent is False
        assert not nx.is_d_separator(chain_dag.graph, {"A"}, {"C"}, set())


class TestFork:
    """B → A, B → C"""

    def test_a_independent_of_c_given_b(self, fork_dag):
        engine = DSeparationEngine(dag=fork_dag)
        result = engine.is_d_separated(frozenset({"A"}), frozenset({"C"}), frozenset({"B"}))
        assert result.is_independent is True

    def test_a_dependent_on_c_unconditional(self, fork_dag):
        engine = DSeparationEngine(dag=fork_dag)
        result = engine.is_d_separated(frozenset({"A"}), frozenset({"C"}), frozenset())
        assert result.is_independent is False


class TestCollider:
    """A → B, C → B (B is a collider)"""

    def test_a_independent_of_c_unconditional(self, collider_dag):
        engine = DSeparationEngine(dag=collider_dag)
        result = engine.is_d_separated(frozenset({"A"}), frozenset({"C"}), frozenset())
        assert result.is_independent is True

    def test_a_dependent_on_c_given_b(self, collider_dag):
        """Explaining away: conditioning on collider opens the path."""
        engine = DSeparationEngine(dag=collider_dag)
        result = engine.is_d_separated(frozenset({"A"}), frozenset({"C"}), frozenset({"B"}))
        assert result.is_independent is False
        assert not nx.is_d_separator(collider_dag.graph, {"A"}, {"C"}, {"B"})


class TestSprinkler:
    def test_rain_independent_of_sprinkler_given_season(self, sprinkler_dag):
        engine = DSeparationEngine(dag=sprinkler_dag)
        result = engine.is_d_separated(
            frozenset({"Rain"}), frozenset({"Sprinkler"}), frozenset({"Season"})
        )
        assert result.is_independent is True

    def test_rain_dependent_on_sprinkler_given_wet(self, sprinkler_dag):
        """Conditioning on the collider Wet opens Rain → Wet ← Sprinkler."""
        engine = DSeparationEngine(dag=sprinkler_dag)
        result = engine.is_d_separated(
            frozenset({"Rain"}), frozenset({"Sprinkler"}), frozenset({"Wet"})
        )
        assert result.is_independent is False


class TestPaths:
    def test_active_paths_in_collider(self, collider_dag):
        engine = DSeparationEngine(dag=collider_dag)
        assert engine.active_paths("A", "C", frozenset()) == []
        assert engine.active_paths("A", "C", frozenset({"B"})) == [["A", "B", "C"]]

    def test_backdoor_paths(self, confounded_dag):
        engine = DSeparationEngine(dag=confounded_dag)
        assert engine.backdoor_paths("X", "Y") == [["X", "Z", "Y"]]

    def test_no_backdoor_in_chain(self, chain_dag):
        engine = DSeparationEngine(dag=chain_dag)
        assert engine.backdoor_paths("A", "C") == []


class TestQuery:
    def test_observational_query(self, chain_dag):
        engine = DSeparationEngine(dag=chain_dag)
        cq = CausalQuery(
            query_type=QueryType.OBSERVATIONAL,
            target_nodes=frozenset({"A"}),
            conditioning_nodes=frozenset({"C"}),
        )
        result = engine.query(cq)
        assert result.backend_used == "networkx"
        assert "d_separation" in result.capabilities_used
        assert result.independences[0].is_independent is False
        assert result.active_paths == [["A", "B", "C"]]

    def test_interventional_raises(self, chain_dag):
        engine = DSeparationEngine(dag=chain_dag)
        cq = CausalQuery(
            query_type=QueryType.INTERVENTIONAL,
            target_nodes=frozenset({"A"}),
        )
        with pytest.raises(NotImplementedError, match="interventional"):
            engine.query(cq)


class TestFindAllDSeparations:
    def test_chain_finds_separation(self, chain_dag):
        engine = DSeparationEngine(dag=chain_dag)
        results = engine.find_all_d_separations(max_conditioning_size=3)
        assert any(
            r.x == frozenset({"A"}) and r.y == frozenset({"C"}) and "B" in r.z for r in results
        )

    def test_collider_finds_unconditional_separation(self, collider_dag):
        engine = DSeparationEngine(dag=collider_dag)
        results = engine.find_all_d_separations(max_conditioning_size=3)
        assert any(
            r.x == frozenset({"A"}) and r.y == frozenset({"C"}) and r.z == frozenset()
            for r in results
        )


class TestFindMinimalConditioningSet:
    def test_chain_minimal_set(self, chain_dag):
        engine = DSeparationEngine(dag=chain_dag)
        assert engine.find_minimal_conditioning_set("A", "C") == frozenset({"B"})

    def test_collider_minimal_is_empty(self, collider_dag):
        engine = DSeparationEngine(dag=collider_dag)
        assert engine.find_minimal_conditioning_set("A", "C") == frozenset()

    def test_direct_edge_no_separation(self, chain_dag):
        engine = DSeparationEngine(dag=chain_dag)
        assert engine.find_minimal_conditioning_set("A", "B") is None


class TestImpliedIndependences:
    def test_sprinkler_basis(self, sprinkler_dag):
        engine = DSeparationEngine(dag=sprinkler_dag)
        implied = [str(a) for a in engine.implied_independences()]
        assert implied == [
            "Season _||_ Wet | Rain, Sprinkler",
            "Rain _||_ Sprinkler | Season",
        ]

    def test_every_implication_is_a_d_separation(self, sprinkler_dag):
        engine = DSeparationEngine(dag=sprinkler_dag)
        for a in engine.implied_independences():
            assert nx.is_d_separator(sprinkler_dag.graph, set(a.x), set(a.y), set(a.z))

    def test_complete_dag_implies_nothing(self, confounded_dag):
        assert DSeparationEngine(dag=confounded_dag).implied_independences() == []

    def test_latent_nodes_skipped(self, smoking_dag):
        implied = DSeparationEngine(dag=smoking_dag).implied_independences()
        for a in implied:
            assert "Genotype" not in a.x | a.y | a.z


class TestAdjustment:
    def test_confounder_is_the_adjustment_set(self, confounded_dag):
        engine = DSeparationEngine(dag=confounded_dag)
        assert engine.adjustment_set("X", "Y") == frozenset({"Z"})
        assert engine.is_valid_adjustment_set("X", "Y", frozenset({"Z"}))
        assert not engine.is_valid_adjustment_set("X", "Y", frozenset())

    def test_chain_needs_no_adjustment(self, chain_dag):
        engine = DSeparationEngine(dag=chain_dag)
        assert engine.adjustment_set("A", "C") == frozenset()

    def test_mediator_is_not_valid(self, smoking_dag):
        engine = DSeparationEngine(dag=smoking_dag)
        assert not engine.is_valid_adjustment_set("Smoking", "Cancer", frozenset({"Tar"}))

    def test_latent_confounder_blocks_identification(self, smoking_dag):
        engine = DSeparationEngine(dag=smoking_dag)
        assert engine.adjustment_set("Smoking", "Cancer") is None

    def test_unknown_node(self, chain_dag):
        with pytest.raises(KeyError):
            DSeparationEngine(dag=chain_dag).adjustment_set("A", "Nope")
