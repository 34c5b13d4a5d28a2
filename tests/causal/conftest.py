"""Shared fixtures for causal tests.

Canonical DAGs: chain, fork, collider, sprinkler, smoking.
"""

from __future__ import annotations

import pytest

from causalab.causal.dag import CausalDAG


@pytest.fixture
def chain_dag() -> CausalDAG:
    """A → B → C"""
    return CausalDAG.from_edges([("A", "B"), ("B", "C")])


@pytest.fixture
def fork_dag() -> CausalDAG:
    """B → A, B → C (B is a common cause)"""
    return CausalDAG.from_edges([("B", "A"), ("B", "C")])


@pytest.fixture
def collider_dag() -> CausalDAG:
    """A → B, C → B (B is a collider)"""
    return CausalDAG.from_edges([("A", "B"), ("C", "B")])


@pytest.fixture
def sprinkler_dag() -> CausalDAG:
    """Season → Rain, Season → Sprinkler, Rain → Wet, Sprinkler → Wet"""
    return CausalDAG.from_dagitty(
        """
        dag {
            Season -> {Rain Sprinkler}
            Rain -> Wet <- Sprinkler
        }
        """
    )


@pytest.fixture
def smoking_dag() -> CausalDAG:
    """Smoking → Tar → Cancer, Smoking → Cancer, Genotype (latent) → Smoking, Cancer"""
    return CausalDAG.from_dagitty(
        "dag { Smoking [exposure]; Cancer [outcome]; Genotype [latent]; "
        "Smoking -> Tar -> Cancer; Smoking -> Cancer; Genotype -> {Smoking Cancer} }"
    )


@pytest.fixture
def confounded_dag() -> CausalDAG:
    """Z → X, Z → Y, X → Y"""
    return CausalDAG.from_edges([("Z", "X", 0.8), ("Z", "Y", 1.2), ("X", "Y", 0.5)])
