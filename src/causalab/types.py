"""Causal type system: enums, dataclasses, endpoint marks.

Every other causalab module imports from here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import pandas as pd

# =============================================================================
# Enums
# =============================================================================


class EdgeMark(StrEnum):
    """Endpoint mark of an edge in a DAG, CPDAG or PAG."""

    TAIL = "tail"
    ARROW = "arrow"
    CIRCLE = "circle"


class EdgeType(StrEnum):
    """Edge type as read from source to target."""

    DIRECTED = "-->"
    UNDIRECTED = "---"
    BIDIRECTED = "<->"
    PARTIALLY_DIRECTED = "o->"
    NONDIRECTED = "o-o"
    PARTIALLY_UNDIRECTED = "o--"

    @classmethod
    def from_marks(cls, source_mark: EdgeMark, target_mark: EdgeMark) -> EdgeType:
        """Edge type for the marks at the source and target ends.

        Only the canonical orientation is accepted: an arrowhead sits at the
        target, and when one end is a circle and the other is not an arrow the
        circle sits at the source. Raises ValueError for the flipped pairs
        (``arrow/tail``, ``arrow/circle``, ``tail/circle``); callers flip the
        edge and retry.
        """
        table = {
            (EdgeMark.TAIL, EdgeMark.ARROW): cls.DIRECTED,
            (EdgeMark.TAIL, EdgeMark.TAIL): cls.UNDIRECTED,
            (EdgeMark.ARROW, EdgeMark.ARROW): cls.BIDIRECTED,
            (EdgeMark.CIRCLE, EdgeMark.ARROW): cls.PARTIALLY_DIRECTED,
            (EdgeMark.CIRCLE, EdgeMark.CIRCLE): cls.NONDIRECTED,
            (EdgeMark.CIRCLE, EdgeMark.TAIL): cls.PARTIALLY_UNDIRECTED,
        }
        try:
            return table[(source_mark, target_mark)]
        except KeyError:
            raise ValueError(
                f"No edge type for marks {source_mark.value}/{target_mark.value}; "
                "flip the edge so the arrowhead is at the target"
            ) from None


class GraphKind(StrEnum):
    """Kind of graph a search algorithm returns."""

    DAG = "DAG"
    CPDAG = "CPDAG"
    PAG = "PAG"


class CausalCapability(StrEnum):
    """What a causal backend can do."""

    D_SEPARATION = "d_separation"
    CI_TESTING = "ci_testing"
    PROBABILISTIC_INFERENCE = "probabilistic_inference"
    INTERVENTION = "intervention"
    COUNTERFACTUAL = "counterfactual"


class QueryType(StrEnum):
    """Pearl's three rungs of the causal ladder."""

    OBSERVATIONAL = "observational"
    INTERVENTIONAL = "interventional"
    COUNTERFACTUAL = "counterfactual"


# =============================================================================
# Dataclasses
# =============================================================================


@dataclass(frozen=True)
class CausalEdge:
    """A directed edge ``source -> target`` of an assumed causal DAG."""

    source: str
    target: str
    strength: float = 1.0
    label: str | None = None


@dataclass(frozen=True)
class DiscoveredEdge:
    """An edge returned by a discovery algorithm."""

    source: str
    target: str
    edge_type: EdgeType
    weight: float | None = None

    @property
    def is_directed(self) -> bool:
        return self.edge_type == EdgeType.DIRECTED

    def __str__(self) -> str:
        return f"{self.source} {self.edge_type.value} {self.target}"


@dataclass
class CausalQuery:
    """A causal query: observational, interventional, or counterfactual."""

    query_type: QueryType
    target_nodes: frozenset[str]
    conditioning_nodes: frozenset[str] = field(default_factory=frozenset)
    conditioning_values: dict[str, Any] = field(default_factory=dict)

    intervention_nodes: frozenset[str] = field(default_factory=frozenset)
    intervention_values: dict[str, Any] = field(default_factory=dict)


@dataclass
class IndependenceAssertion:
    """Result of a d-separation or conditional independence test."""

    x: frozenset[str]
    y: frozenset[str]
    z: frozenset[str]
    is_independent: bool
    method: str  # "d_separation", "chi_squared", "fisher_z"
    p_value: float | None = None
    confidence: float = 1.0

    def __str__(self) -> str:
        x = ", ".join(sorted(self.x))
        y = ", ".join(sorted(self.y))
        sym = "_||_" if self.is_independent else "not _||_"
        if self.z:
            return f"{x} {sym} {y} | {', '.join(sorted(self.z))}"
        return f"{x} {sym} {y}"


@dataclass
class CausalResult:
    """Full result of a causal query."""

    query: CausalQuery
    independences: list[IndependenceAssertion] = field(default_factory=list)
    active_paths: list[list[str]] = field(default_factory=list)

    causal_effect: float | None = None
    effect_bounds: tuple[float, float] | None = None
    adjustment_set: frozenset[str] | None = None
    distribution: pd.DataFrame | None = None

    backend_used: str = ""
    capabilities_used: list[str] = field(default_factory=list)


@dataclass
class EffectEstimate:
    """Average (and optionally conditional) treatment effect from one method."""

    method: str
    ate: float
    ci_low: float | None = None
    ci_high: float | None = None
    cate: Any = None  # numpy array of per-row effects when available
    n: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "ate": self.ate,
            "ci_low": self.ci_low,
            "ci_high": self.ci_high,
            "n": self.n,
        }
