"""CausalDAG: acyclic directed graph describing assumed causal structure.

Wraps networkx.DiGraph. Plays the part of a DAG editor: textual
(dagitty-style and DOT) round trips, non-mutating edits, and the
graphical vocabulary labs talk in (parents, ancestors, roles).
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import networkx as nx

from causalab.errors import CyclicGraphError, DagSyntaxError
from causalab.types import CausalEdge, EdgeType

if TYPE_CHECKING:
    from causalab.discovery import DiscoveryResult

logger = logging.getLogger(__name__)

EdgeLike = CausalEdge | tuple[str, str] | tuple[str, str, float]

# Node roles understood in dagitty attribute lists: ``X [exposure]``
NODE_ROLES = ("exposure", "outcome", "latent", "adjusted")

_TOKEN_RE = re.compile(r"->|<-|\{|\}|\[[^\]]*\]|;|\n|'[^']*'|\"[^\"]*\"|[A-Za-z_][A-Za-z0-9_.]*|-?\d+(?:\.\d+)?|\S")
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*")
_WRAPPER_RE = re.compile(r"^\s*(?:dag|digraph)\s*\{(.*)\}\s*$", re.DOTALL)


def _as_edge(e: EdgeLike) -> CausalEdge:
    if isinstance(e, CausalEdge):
        return e
    if len(e) == 3:
        return CausalEdge(source=e[0], target=e[1], strength=float(e[2]))
    return CausalEdge(source=e[0], target=e[1])


@dataclass
class CausalDAG:
    """Acyclic directed graph for causal reasoning.

    Wraps ``networkx.DiGraph``; node attributes hold dagitty roles, edge
    attributes hold ``strength`` and an optional ``label``.
    """

    _graph: nx.DiGraph = field(default_factory=nx.DiGraph, repr=False)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_edges(
        cls,
        edges: Iterable[EdgeLike],
        nodes: Iterable[str] | None = None,
        strict: bool = True,
    ) -> CausalDAG:
        """Build a CausalDAG from explicit edges.

        Args:
            edges: ``CausalEdge`` objects or ``(source, target[, strength])`` tuples.
            nodes: Extra (possibly isolated) nodes. Order is preserved.
            strict: Raise ``CyclicGraphError`` on a cycle. When False the
                weakest edge of each cycle is dropped instead.
        """
        dag = cls()
        for nid in nodes or ():
            dag._graph.add_node(nid)

        for raw in edges:
            e = _as_edge(raw)
            dag._graph.add_edge(e.source, e.target, strength=e.strength, label=e.label)

        if strict:
            dag._check_acyclic()
        else:
            dag._break_cycles()
        return dag

    @classmethod
    def from_dagitty(cls, text: str) -> CausalDAG:
        """Parse a dagitty-style description.

        Accepts ``dag { ... }`` (or bare statements) where statements are
        separated by newlines or ``;``. Supports chains (``A -> B <- C``),
        groups (``Z -> {X Y}``) and role attributes (``X [exposure]``).
        """
        match = _WRAPPER_RE.match(text)
        body = match.group(1) if match else text

        dag = cls()
        for statement in _split_statements(_TOKEN_RE.findall(body)):
            dag._parse_statement(statement)
        dag._check_acyclic()
        return dag

    @classmethod
    def from_discovery(cls, result: DiscoveryResult) -> CausalDAG:
        """Pick one DAG out of a discovery result.

        Directed edges are kept; undirected edges are oriented along the
        result's variable order; bidirected and circle edges are dropped.
        Any cycle is broken at its lowest-weight edge.
        """
        position = {v: i for i, v in enumerate(result.variables)}
        dag = cls()
        for v in result.variables:
            dag._graph.add_node(v)

        for e in result.edges:
            strength = abs(e.weight) if e.weight is not None else 1.0
            if e.edge_type == EdgeType.DIRECTED:
                dag._graph.add_edge(e.source, e.target, strength=strength, label=None)
            elif e.edge_type == EdgeType.UNDIRECTED:
                src, tgt = sorted((e.source, e.target), key=position.__getitem__)
                dag._graph.add_edge(src, tgt, strength=strength, label="oriented")
            else:
                logger.debug("Dropping %s edge %s", e.edge_type.value, e)

        dag._break_cycles()
        return dag

    # ------------------------------------------------------------------
    # Parsing helpers
    # ------------------------------------------------------------------

    def _parse_statement(self, tokens: list[str]) -> None:
        # graph attributes such as bb="0,0,1,1" in dagitty.net exports
        while len(tokens) >= 3 and _IDENT_RE.fullmatch(tokens[0]) and tokens[1] == "=":
            logger.debug("Ignoring graph attribute %s=%s", tokens[0], tokens[2])
            tokens = tokens[3:]

        terms: list[list[str]] = []
        arrows: list[str] = []
        i = 0
        expect_term = True

        while i < len(tokens):
            tok = tokens[i]
            if expect_term:
                if tok == "{":
                    group: list[str] = []
                    i += 1
                    while i < len(tokens) and tokens[i] != "}":
                        if not _IDENT_RE.fullmatch(tokens[i]):
                            raise DagSyntaxError(f"Unexpected {tokens[i]!r} inside group")
                        group.append(tokens[i])
                        i += 1
                    if i >= len(tokens):
                        raise DagSyntaxError("Unclosed '{' in group")
                    if not group:
                        raise DagSyntaxError("Empty node group '{}'")
                    terms.append(group)
                elif _IDENT_RE.fullmatch(tok):
                    terms.append([tok])
                    if i + 1 < len(tokens) and tokens[i + 1].startswith("["):
                        i += 1
                        self._apply_attributes(tok, tokens[i])
                else:
                    raise DagSyntaxError(f"Expected a node name, got {tok!r}")
                expect_term = False
            else:
                if tok not in ("->", "<-"):
                    raise DagSyntaxError(f"Expected '->' or '<-', got {tok!r}")
                arrows.append(tok)
                expect_term = True
            i += 1

        if expect_term and arrows:
            raise DagSyntaxError(f"Dangling {arrows[-1]!r} at end of statement")

        for term in terms:
            for nid in term:
                self._graph.add_node(nid)
        for k, arrow in enumerate(arrows):
            left, right = terms[k], terms[k + 1]
            for a in left:
                for b in right:
                    src, tgt = (a, b) if arrow == "->" else (b, a)
                    self._graph.add_edge(src, tgt, strength=1.0, label=None)

    def _apply_attributes(self, node: str, attr_token: str) -> None:
        self._graph.add_node(node)
        for item in attr_token.strip("[]").split(","):
            key = item.split("=", 1)[0].strip()
            if key in NODE_ROLES:
                self._graph.nodes[node][key] = True

    # ------------------------------------------------------------------
    # Cycle handling
    # ------------------------------------------------------------------

    def _check_acyclic(self) -> None:
        try:
            cycle = nx.find_cycle(self._graph)
        except nx.NetworkXNoCycle:
            return
        nodes = [u for u, _v, *_ in cycle]
        raise CyclicGraphError([*nodes, nodes[0]])

    def _break_cycles(self) -> None:
        """Remove lowest-strength edges until the graph is acyclic."""
        while True:
            try:
                cycle = nx.find_cycle(self._graph)
            except nx.NetworkXNoCycle:
                break

            weakest_edge: tuple[str, str] | None = None
            weakest_strength = float("inf")
            for u, v, *_ in cycle:
                s = self._graph.edges[u, v].get("strength", 1.0)
                if s < weakest_strength:
                    weakest_strength = s
                    weakest_edge = (u, v)

            if weakest_edge:
                logger.info(
                    "Breaking cycle: removing edge %s->%s (strength=%.3f)",
                    weakest_edge[0],
                    weakest_edge[1],
                    weakest_strength,
                )
                self._graph.remove_edge(*weakest_edge)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def graph(self) -> nx.DiGraph:
        """The underlying networkx DiGraph."""
        return self._graph

    @property
    def node_ids(self) -> frozenset[str]:
        return frozenset(self._graph.nodes)

    @property
    def edges(self) -> list[CausalEdge]:
        return [
            CausalEdge(u, v, strength=d.get("strength", 1.0), label=d.get("label"))
            for u, v, d in self._graph.edges(data=True)
        ]

    @property
    def edge_count(self) -> int:
        return self._graph.number_of_edges()

    def edge_list(self) -> list[tuple[str, str]]:
        return sorted(self._graph.edges)

    def has_edge(self, source: str, target: str) -> bool:
        return self._graph.has_edge(source, target)

    def ancestors(self, node_id: str) -> frozenset[str]:
        """All ancestors of a node (transitive parents)."""
        return frozenset(nx.ancestors(self._graph, node_id))

    def descendants(self, node_id: str) -> frozenset[str]:
        """All descendants of a node (transitive children)."""
        return frozenset(nx.descendants(self._graph, node_id))

    def parents(self, node_id: str) -> frozenset[str]:
        return frozenset(self._graph.predecessors(node_id))

    def children(self, node_id: str) -> frozenset[str]:
        return frozenset(self._graph.successors(node_id))

    def roots(self) -> frozenset[str]:
        """Nodes without parents (exogenous variables)."""
        return frozenset(n for n, deg in self._graph.in_degree() if deg == 0)

    def topological_order(self) -> list[str]:
        """Topological sort, ties broken by node name for reproducibility."""
        return list(nx.lexicographical_topological_sort(self._graph))

    def is_valid_dag(self) -> bool:
        return self._graph.is_directed() and nx.is_directed_acyclic_graph(self._graph)

    def edge_strength(self, source: str, target: str) -> float:
        """Get the strength of an edge, or 0.0 if absent."""
        data = self._graph.edges.get((source, target))
        if data is None:
            return 0.0
        return data.get("strength", 1.0)

    def nodes_with_role(self, role: str) -> frozenset[str]:
        """Nodes tagged with a dagitty role such as ``exposure``."""
        return frozenset(n for n, d in self._graph.nodes(data=True) if d.get(role))

    @property
    def latent(self) -> frozenset[str]:
        return self.nodes_with_role("latent")

    @property
    def observed(self) -> frozenset[str]:
        return self.node_ids - self.latent

    # ------------------------------------------------------------------
    # Editing (returns new DAGs)
    # ------------------------------------------------------------------

    def _copy_with(self, graph: nx.DiGraph) -> CausalDAG:
        return CausalDAG(_graph=graph)

    def copy(self) -> CausalDAG:
        return self._copy_with(self._graph.copy())

    def add_edge(self, source: str, target: str, strength: float = 1.0) -> CausalDAG:
        """Return a copy with ``source -> target`` added.

        Raises CyclicGraphError if the new edge closes a cycle.
        """
        g = self._graph.copy()
        g.add_edge(source, target, strength=strength, label=None)
        dag = self._copy_with(g)
        dag._check_acyclic()
        return dag

    def remove_edge(self, source: str, target: str) -> CausalDAG:
        g = self._graph.copy()
        if not g.has_edge(source, target):
            raise KeyError(f"No edge {source} -> {target}")
        g.remove_edge(source, target)
        return self._copy_with(g)

    def do(self, nodes: Iterable[str]) -> CausalDAG:
        """Mutilated graph for ``do(nodes)``: incoming edges removed."""
        g = self._graph.copy()
        for n in nodes:
            if n not in g:
                raise KeyError(f"Unknown node: {n!r}")
            g.remove_edges_from(list(g.in_edges(n)))
        return self._copy_with(g)

    def subgraph(self, nodes: Iterable[str]) -> CausalDAG:
        return self._copy_with(self._graph.subgraph(nodes).copy())

    # ------------------------------------------------------------------
    # Roles for a treatment/outcome pair
    # ------------------------------------------------------------------

    def roles(self, treatment: str, outcome: str) -> dict[str, list[str]]:
        """Confounders, mediators and colliders relative to ``treatment -> outcome``.

        Confounder: common ancestor of treatment and outcome that is not
        itself downstream of the treatment. Mediator: lies on a directed
        path treatment -> ... -> outcome. Collider: child of the treatment
        with more than one parent.
        """
        for n in (treatment, outcome):
            if n not in self._graph:
                raise KeyError(f"Unknown node: {n!r}")

        downstream = self.descendants(treatment)
        confounders = (self.ancestors(treatment) & self.ancestors(outcome)) - downstream
        mediators = downstream & self.ancestors(outcome)
        colliders = {c for c in self.children(treatment) if self._graph.in_degree(c) >= 2}

        return {
            "confounders": sorted(confounders),
            "mediators": sorted(mediators),
            "colliders": sorted(colliders),
        }

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dagitty(self) -> str:
        lines = ["dag {"]
        for n, data in sorted(self._graph.nodes(data=True)):
            roles = [r for r in NODE_ROLES if data.get(r)]
            if roles:
                lines.append(f"{n} [{','.join(roles)}]")
            elif self._graph.degree(n) == 0:
                lines.append(n)
        for u, v in self.edge_list():
            lines.append(f"{u} -> {v}")
        lines.append("}")
        return "\n".join(lines)

    def to_dot(self) -> str:
        """DOT text, the graph format DoWhy-style tools accept."""
        lines = ["digraph {"]
        for n in sorted(self._graph.nodes):
            if self._graph.degree(n) == 0:
                lines.append(f"  {n};")
        for u, v in self.edge_list():
            lines.append(f"  {u} -> {v};")
        lines.append("}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": sorted(self._graph.nodes),
            "edges": [list(e) for e in self.edge_list()],
        }

    def __str__(self) -> str:
        return self.to_dagitty()


def _split_statements(tokens: list[str]) -> list[list[str]]:
    """Split a token stream on ';' and newlines outside of groups."""
    statements: list[list[str]] = []
    current: list[str] = []
    depth = 0
    for tok in tokens:
        if tok == "{":
            depth += 1
        elif tok == "}":
            depth -= 1
            if depth < 0:
                raise DagSyntaxError("Unbalanced '}'")
        if tok in (";", "\n"):
            if depth == 0:
                if current:
                    statements.append(current)
                current = []
            continue
        current.append(tok)
    if depth != 0:
        raise DagSyntaxError("Unclosed '{' in group")
    if current:
        statements.append(current)
    return statements
