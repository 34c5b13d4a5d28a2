"""DSeparationEngine: structural independence and back-door adjustment.

Requires networkx >= 3.3 for ``nx.is_d_separator()`` and
``nx.find_minimal_d_separator()``.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass

import networkx as nx

from causalab.types import CausalQuery, CausalResult, IndependenceAssertion, QueryType

from .dag import CausalDAG


@dataclass
class DSeparationEngine:
    """Answers d-separation and adjustment queries on a CausalDAG."""

    dag: CausalDAG
    max_path_length: int = 8

    # ------------------------------------------------------------------
    # Core query
    # ------------------------------------------------------------------

    def is_d_separated(
        self,
        x: frozenset[str],
        y: frozenset[str],
        z: frozenset[str],
    ) -> IndependenceAssertion:
        """Test whether *x* and *y* are d-separated given *z*."""
        result = nx.is_d_separator(self.dag.graph, set(x), set(y), set(z))
        return IndependenceAssertion(
            x=frozenset(x),
            y=frozenset(y),
            z=frozenset(z),
            is_independent=result,
            method="d_separation",
        )

    def query(self, cq: CausalQuery) -> CausalResult:
        """Answer an OBSERVATIONAL CausalQuery.

        Asserts target vs. conditioning independence (given the empty set)
        and lists the paths that keep them connected.
        """
        if cq.query_type != QueryType.OBSERVATIONAL:
            raise NotImplementedError(
                f"{cq.query_type.value} queries need data: use an estimating backend"
            )

        independences: list[IndependenceAssertion] = []
        paths: list[list[str]] = []
        if cq.target_nodes and cq.conditioning_nodes:
            independences.append(
                self.is_d_separated(cq.target_nodes, cq.conditioning_nodes, frozenset())
            )
            for x in sorted(cq.target_nodes):
                for y in sorted(cq.conditioning_nodes):
                    paths.extend(self.active_paths(x, y, frozenset()))

        return CausalResult(
            query=cq,
            independences=independences,
            active_paths=paths,
            backend_used="networkx",
            capabilities_used=["d_separation"],
        )

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def active_paths(self, x: str, y: str, z: frozenset[str]) -> list[list[str]]:
        """Simple paths between x and y that are open given z."""
        g = self.dag.graph
        skeleton = g.to_undirected(as_view=True)
        opened: list[list[str]] = []
        for path in nx.all_simple_paths(skeleton, x, y, cutoff=self.max_path_length):
            if self._path_is_open(path, z):
                opened.append(list(path))
        return sorted(opened, key=lambda p: (len(p), p))

    def _path_is_open(self, path: list[str], z: frozenset[str]) -> bool:
        g = self.dag.graph
        for a, b, c in zip(path, path[1:], path[2:]):
            collider = g.has_edge(a, b) and g.has_edge(c, b)
            if collider:
                if b not in z and not (self.dag.descendants(b) & z):
                    return False
            elif b in z:
                return False
        return True

    def backdoor_paths(self, treatment: str, outcome: str) -> list[list[str]]:
        """Paths from treatment to outcome that start with an arrow into treatment."""
        g = self.dag.graph
        skeleton = g.to_undirected(as_view=True)
        return sorted(
            (
                list(p)
                for p in nx.all_simple_paths(
                    skeleton, treatment, outcome, cutoff=self.max_path_length
                )
                if g.has_edge(p[1], treatment)
            ),
            key=lambda p: (len(p), p),
        )

    # ------------------------------------------------------------------
    # Exhaustive enumeration
    # ------------------------------------------------------------------

    def find_all_d_separations(
        self,
        max_conditioning_size: int = 3,
    ) -> list[IndependenceAssertion]:
        """Find all d-separation relations up to a conditioning set size bound."""
        nodes = sorted(self.dag.node_ids)
        results: list[IndependenceAssertion] = []

        for i, x_id in enumerate(nodes):
            for y_id in nodes[i + 1 :]:
                remaining = [n for n in nodes if n != x_id and n != y_id]

                for size in range(0, min(max_conditioning_size + 1, len(remaining) + 1)):
                    for z_tuple in itertools.combinations(remaining, size):
                        assertion = self.is_d_separated(
                            frozenset({x_id}),
                            frozenset({y_id}),
                            frozenset(z_tuple),
                        )
                        if assertion.is_independent:
                            results.append(assertion)

        return results

    def find_minimal_conditioning_set(
        self,
        x: str,
        y: str,
    ) -> frozenset[str] | None:
        """Smallest conditioning set that d-separates x and y, or None."""
        nodes = sorted(self.dag.node_ids)
        remaining = [n for n in nodes if n != x and n != y]

        for size in range(0, len(remaining) + 1):
            for z_tuple in itertools.combinations(remaining, size):
                z = frozenset(z_tuple)
                if nx.is_d_separator(self.dag.graph, {x}, {y}, set(z)):
                    return z

        return None

    def implied_independences(self) -> list[IndependenceAssertion]:
        """Testable independences implied by the DAG (local Markov basis).

        For every non-adjacent observed pair, the later node in topological
        order is independent of the earlier one given its own parents.
        Pairs whose conditioning set would need a latent node are skipped.
        """
        order = self.dag.topological_order()
        position = {n: i for i, n in enumerate(order)}
        latent = self.dag.latent
        g = self.dag.graph
        results: list[IndependenceAssertion] = []

        observed = [n for n in order if n not in latent]
        for early, late in itertools.combinations(observed, 2):
            if position[early] > position[late]:
                early, late = late, early
            if g.has_edge(early, late) or g.has_edge(late, early):
                continue
            z = self.dag.parents(late)
            if z & latent:
                continue
            results.append(
                IndependenceAssertion(
                    x=frozenset({early}),
                    y=frozenset({late}),
                    z=z,
                    is_independent=True,
                    method="d_separation",
                )
            )

        return sorted(results, key=lambda a: (position[next(iter(a.x))], position[next(iter(a.y))]))

    # ------------------------------------------------------------------
    # Back-door adjustment
    # ------------------------------------------------------------------

    def _backdoor_graph(self, treatment: str) -> nx.DiGraph:
        g = self.dag.graph.copy()
        g.remove_edges_from(list(g.out_edges(treatment)))
        return g

    def is_valid_adjustment_set(
        self,
        treatment: str,
        outcome: str,
        z: frozenset[str],
    ) -> bool:
        """Back-door criterion: no descendant of treatment, blocks every back-door path."""
        if z & self.dag.descendants(treatment) or treatment in z or outcome in z:
            return False
        return nx.is_d_separator(self._backdoor_graph(treatment), {treatment}, {outcome}, set(z))

    def adjustment_set(self, treatment: str, outcome: str) -> frozenset[str] | None:
        """A minimal back-door adjustment set, or None if none exists among observed nodes."""
        for n in (treatment, outcome):
            if n not in self.dag.node_ids:
                raise KeyError(f"Unknown node: {n!r}")

        allowed = (
            self.dag.observed
            - self.dag.descendants(treatment)
            - {treatment, outcome}
        )
        sep = nx.find_minimal_d_separator(
            self._backdoor_graph(treatment),
            {treatment},
            {outcome},
            restricted=set(allowed),
        )
        return None if sep is None else frozenset(sep)
