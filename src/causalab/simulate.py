"""Data simulation from parametric distributions with fixed coefficients.

Every generator takes an explicit seed and draws from a single
``numpy.random.Generator`` in topological order, so a (dataset, n, seed)
triple always yields the same frame.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from causalab.causal.dag import CausalDAG
from causalab.errors import UnknownNameError

logger = logging.getLogger(__name__)


@dataclass
class SimulatedData:
    """A simulated dataset together with the DAG and parameters that made it."""

    name: str
    frame: pd.DataFrame
    dag: CausalDAG
    truth: dict[str, float] = field(default_factory=dict)
    description: str = ""
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass
class CPT:
    """Conditional probability table for one discrete node.

    ``table`` maps a tuple of parent states (ordered as ``parents``) to
    the probabilities of ``states``. Root nodes use the empty tuple.
    """

    node: str
    states: Sequence[Any]
    parents: tuple[str, ...] = ()
    table: Mapping[tuple, Sequence[float]] = field(default_factory=dict)

    def probabilities(self, parent_states: tuple) -> np.ndarray:
        try:
            probs = np.asarray(self.table[parent_states], dtype=float)
        except KeyError:
            raise KeyError(
                f"CPT for {self.node!r} has no row for parents {self.parents}={parent_states}"
            ) from None
        if len(probs) != len(self.states) or not np.isclose(probs.sum(), 1.0):
            raise ValueError(
                f"CPT row {parent_states} for {self.node!r} must have "
                f"{len(self.states)} probabilities summing to 1"
            )
        return probs


# =============================================================================
# Generic generators
# =============================================================================


def linear_sem(
    dag: CausalDAG,
    n: int,
    coefficients: Mapping[tuple[str, str], float] | None = None,
    intercepts: Mapping[str, float] | None = None,
    noise_scale: float | Mapping[str, float] = 1.0,
    noise: str = "gaussian",
    seed: int | None = None,
) -> pd.DataFrame:
    """Linear structural equations: each node = intercept + sum(coef * parent) + noise.

    Args:
        coefficients: ``(parent, child) -> coefficient``; defaults to edge strengths.
        noise: ``"gaussian"`` or ``"uniform"`` (non-Gaussian, for LiNGAM).
    """
    if noise not in ("gaussian", "uniform"):
        raise ValueError(f"Unknown noise distribution: {noise!r}")
    rng = np.random.default_rng(seed)
    coefs = dict(coefficients) if coefficients is not None else {}
    intercepts = intercepts or {}
    columns: dict[str, np.ndarray] = {}

    for node in dag.topological_order():
        scale = noise_scale[node] if isinstance(noise_scale, Mapping) else noise_scale
        if noise == "gaussian":
            values = rng.normal(0.0, scale, size=n)
        else:
            # uniform with the same standard deviation
            half = scale * np.sqrt(3.0)
            values = rng.uniform(-half, half, size=n)
        values = values + intercepts.get(node, 0.0)
        for parent in sorted(dag.parents(node)):
            coef = coefs.get((parent, node), dag.edge_strength(parent, node))
            values = values + coef * columns[parent]
        columns[node] = values

    return pd.DataFrame(columns)


def linear_gaussian(
    dag: CausalDAG,
    n: int,
    coefficients: Mapping[tuple[str, str], float] | None = None,
    noise_scale: float | Mapping[str, float] = 1.0,
    seed: int | None = None,
) -> pd.DataFrame:
    """Linear Gaussian SEM; see :func:`linear_sem`."""
    return linear_sem(dag, n, coefficients=coefficients, noise_scale=noise_scale, seed=seed)


def discrete_from_cpts(
    dag: CausalDAG,
    cpts: Mapping[str, CPT],
    n: int,
    seed: int | None = None,
) -> pd.DataFrame:
    """Ancestral sampling from conditional probability tables."""
    rng = np.random.default_rng(seed)
    columns: dict[str, np.ndarray] = {}

    for node in dag.topological_order():
        if node not in cpts:
            raise KeyError(f"No CPT for node {node!r}")
        cpt = cpts[node]
        if set(cpt.parents) != dag.parents(node):
            raise ValueError(
                f"CPT parents {sorted(cpt.parents)} for {node!r} do not match "
                f"DAG parents {sorted(dag.parents(node))}"
            )
        states = np.asarray(cpt.states)
        out = np.empty(n, dtype=states.dtype)

        if not cpt.parents:
            out[:] = rng.choice(states, size=n, p=cpt.probabilities(()))
        else:
            parent_cols = [columns[p] for p in cpt.parents]
            assigned = np.zeros(n, dtype=bool)
            for combo in cpt.table:
                mask = np.ones(n, dtype=bool)
                for col, state in zip(parent_cols, combo):
                    mask &= col == state
                count = int(mask.sum())
                if count:
                    out[mask] = rng.choice(states, size=count, p=cpt.probabilities(combo))
                    assigned |= mask
            if not assigned.all():
                first = int(np.argmin(assigned))
                combo = tuple(col[first] for col in parent_cols)
                raise KeyError(f"CPT for {node!r} has no row for parents {cpt.parents}={combo}")
        columns[node] = out

    return pd.DataFrame(columns)


def exact_do_probability(
    dag: CausalDAG,
    cpts: Mapping[str, CPT],
    target: str,
    target_state: Any,
    do: Mapping[str, Any],
) -> float:
    """P(target = state | do(...)) by brute-force enumeration of the truncated factorisation."""
    order = dag.topological_order()
    free = [v for v in order if v not in do]
    total = 0.0
    for combo in itertools.product(*(cpts[v].states for v in free)):
        assignment = dict(do)
        assignment.update(zip(free, combo))
        if assignment[target] != target_state:
            continue
        p = 1.0
        for v in free:
            cpt = cpts[v]
            row = cpt.probabilities(tuple(assignment[par] for par in cpt.parents))
            p *= row[list(cpt.states).index(assignment[v])]
        total += p
    return total


# =============================================================================
# Canonical lab datasets
# =============================================================================


def confounding(n: int = 2000, seed: int | None = 42) -> SimulatedData:
    dag = CausalDAG.from_edges([("Z", "X", 0.8), ("Z", "Y", 1.2), ("X", "Y", 0.5)])
    frame = linear_gaussian(dag, n, seed=seed)
    return SimulatedData(
        name="confounding",
        frame=frame,
        dag=dag,
        truth={"effect_X_on_Y": 0.5},
        description="Z confounds X -> Y; the naive slope of Y on X is biased upward.",
    )


def collider(n: int = 2000, seed: int | None = 42) -> SimulatedData:
    dag = CausalDAG.from_edges([("X", "C", 0.9), ("Y", "C", 0.9)])
    frame = linear_gaussian(dag, n, seed=seed)
    return SimulatedData(
        name="collider",
        frame=frame[["X", "Y", "C"]],
        dag=dag,
        truth={"effect_X_on_Y": 0.0},
        description="X and Y are independent causes of C; adjusting for C links them.",
    )


def mediation(n: int = 2000, seed: int | None = 42) -> SimulatedData:
    a, b, direct = 0.6, 0.4, 0.3
    dag = CausalDAG.from_edges([("X", "M", a), ("M", "Y", b), ("X", "Y", direct)])
    frame = linear_gaussian(dag, n, seed=seed)
    return SimulatedData(
        name="mediation",
        frame=frame,
        dag=dag,
        truth={"a": a, "b": b, "direct": direct, "indirect": a * b, "total": direct + a * b},
        description="X affects Y directly and through the mediator M.",
    )


def discovery(n: int = 2000, seed: int | None = 42, noise: str = "gaussian") -> SimulatedData:
    dag = CausalDAG.from_edges(
        [
            ("X1", "X3", 0.9),
            ("X2", "X3", -0.8),
            ("X3", "X4", 0.7),
            ("X3", "X5", 0.6),
            ("X4", "X5", 0.8),
        ]
    )
    frame = linear_sem(dag, n, noise=noise, seed=seed)
    return SimulatedData(
        name="discovery",
        frame=frame,
        dag=dag,
        truth={f"{u}->{v}": dag.edge_strength(u, v) for u, v in dag.edge_list()},
        description="Five-variable linear SEM with a v-structure at X3.",
    )


SPRINKLER_CPTS: dict[str, CPT] = {
    "Cloudy": CPT("Cloudy", states=(0, 1), table={(): (0.5, 0.5)}),
    "Sprinkler": CPT(
        "Sprinkler",
        states=(0, 1),
        parents=("Cloudy",),
        table={(0,): (0.5, 0.5), (1,): (0.9, 0.1)},
    ),
    "Rain": CPT(
        "Rain",
        states=(0, 1),
        parents=("Cloudy",),
        table={(0,): (0.8, 0.2), (1,): (0.2, 0.8)},
    ),
    "WetGrass": CPT(
        "WetGrass",
        states=(0, 1),
        parents=("Sprinkler", "Rain"),
        table={
            (0, 0): (1.0, 0.0),
            (0, 1): (0.1, 0.9),
            (1, 0): (0.1, 0.9),
            (1, 1): (0.01, 0.99),
        },
    ),
}


def sprinkler(n: int = 2000, seed: int | None = 42) -> SimulatedData:
    dag = CausalDAG.from_edges(
        [
            ("Cloudy", "Sprinkler"),
            ("Cloudy", "Rain"),
            ("Sprinkler", "WetGrass"),
            ("Rain", "WetGrass"),
        ]
    )
    frame = discrete_from_cpts(dag, SPRINKLER_CPTS, n, seed=seed)
    truth = {
        f"P(WetGrass=1|do(Sprinkler={s}))": exact_do_probability(
            dag, SPRINKLER_CPTS, "WetGrass", 1, {"Sprinkler": s}
        )
        for s in (0, 1)
    }
    return SimulatedData(
        name="sprinkler",
        frame=frame,
        dag=dag,
        truth=truth,
        description="Classic sprinkler network with binary variables.",
        extras={"cpts": SPRINKLER_CPTS},
    )


def heterogeneous_effect(n: int = 2000, seed: int | None = 42) -> SimulatedData:
    """Binary treatment T whose effect on Y grows linearly in X2.

    X1 confounds (drives both treatment uptake and outcome), X3 only
    affects the outcome. tau(x) = 1 + 2 * X2, so the population ATE is 1.
    """
    rng = np.random.default_rng(seed)
    x1 = rng.normal(size=n)
    x2 = rng.normal(size=n)
    x3 = rng.normal(size=n)
    propensity = 1.0 / (1.0 + np.exp(-0.5 * x1))
    t = rng.binomial(1, propensity)
    tau = 1.0 + 2.0 * x2
    y = tau * t + x1 + 0.5 * x3 + rng.normal(size=n)

    dag = CausalDAG.from_edges(
        [("X1", "T"), ("X1", "Y"), ("X2", "Y"), ("X3", "Y"), ("T", "Y")]
    )
    frame = pd.DataFrame({"X1": x1, "X2": x2, "X3": x3, "T": t, "Y": y})
    return SimulatedData(
        name="heterogeneous_effect",
        frame=frame,
        dag=dag,
        truth={"ate": 1.0, "sample_ate": float(tau.mean()), "cate_slope_X2": 2.0},
        description="Binary treatment with effect heterogeneity in X2, confounded by X1.",
        extras={"cate": tau},
    )


DATASETS: dict[str, Callable[..., SimulatedData]] = {
    "confounding": confounding,
    "collider": collider,
    "mediation": mediation,
    "discovery": discovery,
    "sprinkler": sprinkler,
    "heterogeneous_effect": heterogeneous_effect,
}


def available_datasets() -> list[str]:
    return list(DATASETS)


def simulate(name: str, n: int = 2000, seed: int | None = 42, **kwargs: Any) -> SimulatedData:
    """Simulate a canonical dataset by name."""
    if name not in DATASETS:
        raise UnknownNameError("dataset", name, DATASETS)
    data = DATASETS[name](n=n, seed=seed, **kwargs)
    logger.info("Simulated %s: %d rows, seed=%s", name, len(data.frame), seed)
    return data
