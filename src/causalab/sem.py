"""Structural equation models with semopy.

Models are written in lavaan syntax (``Y ~ X + M``, ``F =~ x1 + x2``,
``A ~~ B``), either by hand or derived from a CausalDAG. Fitting and fit
statistics are semopy's; this module only checks names and reads results.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import networkx as nx
import pandas as pd

from causalab.causal.dag import CausalDAG
from causalab.data import require_columns

logger = logging.getLogger(__name__)

_OP_RE = re.compile(r"(=~|~~|~)")
_FIT_INDICES = ("chi2", "DoF", "CFI", "TLI", "RMSEA", "AIC", "BIC")
_NUMERIC_COLUMNS = ("Estimate", "Std. Err", "z-value", "p-value")


def describe_dag(
    dag: CausalDAG,
    latent: Mapping[str, Sequence[str]] | None = None,
    covariances: Iterable[tuple[str, str]] = (),
) -> str:
    """Lavaan description of a DAG: one regression per node with parents.

    Args:
        latent: factor name -> indicator columns (measurement part).
        covariances: pairs whose residuals are allowed to correlate.
    """
    lines = []
    for factor, indicators in (latent or {}).items():
        lines.append(f"{factor} =~ {' + '.join(indicators)}")
    for node in dag.topological_order():
        parents = sorted(dag.parents(node))
        if parents:
            lines.append(f"{node} ~ {' + '.join(parents)}")
    for a, b in covariances:
        lines.append(f"{a} ~~ {b}")
    return "\n".join(lines)


def _term_name(term: str) -> str:
    # "0.5*X" and "a*X" fix or label a parameter; the variable is after "*"
    return term.split("*")[-1].strip()


def description_variables(description: str) -> tuple[set[str], set[str]]:
    """(observed, latent) variable names referenced by a lavaan description."""
    names: set[str] = set()
    latent: set[str] = set()
    for raw in description.splitlines():
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        parts = _OP_RE.split(line, maxsplit=1)
        if len(parts) != 3:
            raise ValueError(f"Not a lavaan statement: {line!r}")
        lhs, op, rhs = (p.strip() for p in parts)
        lefts = {t.strip() for t in lhs.split(",") if t.strip()}
        rights = {_term_name(t) for t in rhs.split("+") if t.strip()}
        if op == "=~":
            latent |= lefts
        names |= lefts | rights
    # numeric right-hand sides such as "Y ~ 1"
    names = {n for n in names if not _is_number(n)}
    return names - latent, latent


def _is_number(text: str) -> bool:
    try:
        float(text)
    except ValueError:
        return False
    return True


@dataclass
class SemFit:
    """A fitted semopy model and the tables labs print."""

    description: str
    model: Any
    estimates: pd.DataFrame
    fit_indices: dict[str, float] = field(default_factory=dict)

    def regressions(self) -> pd.DataFrame:
        return self.estimates[self.estimates["op"] == "~"].reset_index(drop=True)

    def path_coefficient(self, lhs: str, rhs: str) -> float:
        """Coefficient of ``rhs`` in the equation for ``lhs`` (``lhs ~ rhs``)."""
        rows = self.estimates[
            (self.estimates["lval"] == lhs)
            & (self.estimates["op"] == "~")
            & (self.estimates["rval"] == rhs)
        ]
        if rows.empty:
            raise KeyError(f"No path {rhs} -> {lhs} in the model")
        return float(rows["Estimate"].iloc[0])

    def indirect_effect(self, path: Sequence[str]) -> float:
        """Product of coefficients along ``path`` (cause first), e.g. ``["X", "M", "Y"]``."""
        if len(path) < 2:
            raise ValueError("A path needs at least two variables")
        effect = 1.0
        for cause, effect_var in zip(path, path[1:]):
            effect *= self.path_coefficient(effect_var, cause)
        return effect

    def total_effect(self, source: str, target: str) -> float:
        """Sum of path products over every directed path ``source -> ... -> target``."""
        reg = self.regressions()
        graph = nx.DiGraph()
        graph.add_edges_from(zip(reg["rval"], reg["lval"]))
        if source not in graph or target not in graph:
            return 0.0
        return sum(
            self.indirect_effect(path) for path in nx.all_simple_paths(graph, source, target)
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "fit_indices": dict(self.fit_indices),
            "estimates": self.estimates.to_dict(orient="records"),
        }


def fit_sem(description: str, frame: pd.DataFrame, **fit_kwargs: Any) -> SemFit:
    """Fit a lavaan-syntax model with semopy.

    Observed variable names are checked against ``frame`` first so a typo
    surfaces as ColumnMismatchError instead of a solver failure.
    """
    observed, latent = description_variables(description)
    require_columns(frame, observed)

    import semopy

    model = semopy.Model(description)
    model.fit(frame[sorted(observed)], **fit_kwargs)

    estimates = model.inspect()
    for col in _NUMERIC_COLUMNS:
        if col in estimates.columns:
            estimates[col] = pd.to_numeric(estimates[col], errors="coerce")

    stats = semopy.calc_stats(model)
    row = stats.iloc[0]
    fit_indices = {k: float(row[k]) for k in _FIT_INDICES if k in stats.columns}

    logger.info(
        "Fitted SEM: %d observed, %d latent, %d parameters",
        len(observed),
        len(latent),
        len(estimates),
    )
    return SemFit(
        description=description,
        model=model,
        estimates=estimates,
        fit_indices=fit_indices,
    )
