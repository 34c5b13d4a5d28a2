"""Discrete Bayesian networks via pgmpy.

Fit conditional probability tables on a known DAG, ask posterior and
do() questions, and run pgmpy's hill-climb structure search. Inference
(variable elimination, truncated factorisation) is pgmpy's.
"""

from __future__ import annotations

import itertools
import logging
import re
from dataclasses import dataclass
from typing import Any

import pandas as pd

from causalab.causal.dag import CausalDAG
from causalab.data import require_columns
from causalab.errors import UnknownNameError

logger = logging.getLogger(__name__)

# pgmpy 1.0 renamed its scoring methods
_SCORES_V1 = {"bic": "bic-d", "aic": "aic-d", "bdeu": "bdeu", "k2": "k2"}
_SCORES_LEGACY = {"bic": "bicscore", "aic": "aicscore", "bdeu": "bdeuscore", "k2": "k2score"}


def _pgmpy_version() -> tuple[int, int]:
    import pgmpy

    match = re.match(r"(\d+)\.(\d+)", str(pgmpy.__version__))
    version = (int(match.group(1)), int(match.group(2))) if match else (0, 0)
    # 1.1 replaced the estimator classes accepted by fit()
    if version >= (1, 1):
        raise ImportError(
            f"causalab needs pgmpy < 1.1, found {pgmpy.__version__}; run pip install 'pgmpy<1.1'"
        )
    return version


def _pgmpy_major() -> int:
    return _pgmpy_version()[0]


def _discrete_frame(frame: pd.DataFrame) -> pd.DataFrame:
    """Cast every column to ``category`` so pgmpy scores it as discrete."""
    casts = {
        c: "category" for c in frame.columns if not isinstance(frame[c].dtype, pd.CategoricalDtype)
    }
    return frame.astype(casts)


def _network_class() -> type:
    if _pgmpy_major() >= 1:
        from pgmpy.models import DiscreteBayesianNetwork

        return DiscreteBayesianNetwork
    from pgmpy.models import BayesianNetwork

    return BayesianNetwork


def _scoring_method(name: str) -> str:
    table = _SCORES_V1 if _pgmpy_major() >= 1 else _SCORES_LEGACY
    if name not in table:
        raise UnknownNameError("scoring method", name, table)
    return table[name]


def factor_to_frame(factor: Any) -> pd.DataFrame:
    """Flatten a pgmpy DiscreteFactor (or TabularCPD) to one row per joint state."""
    variables = list(factor.variables)
    states = [factor.state_names[v] for v in variables]
    values = factor.values
    rows = []
    for idx in itertools.product(*(range(len(s)) for s in states)):
        row = {v: states[k][i] for k, (v, i) in enumerate(zip(variables, idx))}
        row["probability"] = float(values[idx])
        rows.append(row)
    return pd.DataFrame(rows, columns=[*variables, "probability"])


@dataclass
class FittedNetwork:
    """A pgmpy network with fitted CPDs for a CausalDAG."""

    dag: CausalDAG
    model: Any

    def query(self, variables: list[str], evidence: dict[str, Any] | None = None) -> pd.DataFrame:
        """P(variables | evidence) by variable elimination."""
        from pgmpy.inference import VariableElimination

        factor = VariableElimination(self.model).query(
            variables=list(variables),
            evidence=evidence or None,
            show_progress=False,
        )
        return factor_to_frame(factor)

    def do_query(
        self,
        variables: list[str],
        do: dict[str, Any],
        evidence: dict[str, Any] | None = None,
    ) -> pd.DataFrame:
        """P(variables | do(...), evidence) through pgmpy's CausalInference."""
        from pgmpy.inference import CausalInference

        factor = CausalInference(self.model).query(
            variables=list(variables),
            do=do,
            evidence=evidence or None,
            inference_algo="ve",
            show_progress=False,
        )
        return factor_to_frame(factor)

    def probability(
        self,
        variable: str,
        state: Any,
        evidence: dict[str, Any] | None = None,
        do: dict[str, Any] | None = None,
    ) -> float:
        """Single probability such as P(WetGrass=1 | do(Sprinkler=1))."""
        table = self.do_query([variable], do, evidence) if do else self.query([variable], evidence)
        match = table.loc[table[variable] == state, "probability"]
        if match.empty:
            raise KeyError(f"{variable!r} has no state {state!r}")
        return float(match.iloc[0])

    def cpd_table(self, node: str) -> pd.DataFrame:
        """The fitted CPD of ``node`` as a long table (parents, node, probability)."""
        cpd = self.model.get_cpds(node)
        if cpd is None:
            raise KeyError(f"No CPD for node {node!r}")
        return factor_to_frame(cpd)

    def simulate(self, n: int, seed: int | None = None) -> pd.DataFrame:
        """Forward-sample ``n`` rows from the fitted network."""
        return self.model.simulate(n_samples=n, seed=seed, show_progress=False)


def fit_network(
    dag: CausalDAG,
    frame: pd.DataFrame,
    estimator: str = "mle",
    prior: str = "BDeu",
    equivalent_sample_size: int = 10,
) -> FittedNetwork:
    """Fit CPDs for ``dag`` from discrete data.

    Args:
        estimator: ``"mle"`` (maximum likelihood) or ``"bayes"`` (Dirichlet prior).
        prior: pgmpy prior type for ``"bayes"`` (``BDeu``, ``K2``).
    """
    _pgmpy_version()
    from pgmpy.estimators import BayesianEstimator, MaximumLikelihoodEstimator

    require_columns(frame, dag.node_ids)
    columns = dag.topological_order()

    model = _network_class()(dag.edge_list())
    model.add_nodes_from(columns)

    if estimator == "mle":
        model.fit(frame[columns], estimator=MaximumLikelihoodEstimator)
    elif estimator == "bayes":
        model.fit(
            frame[columns],
            estimator=BayesianEstimator,
            prior_type=prior,
            equivalent_sample_size=equivalent_sample_size,
        )
    else:
        raise UnknownNameError("estimator", estimator, ("mle", "bayes"))

    model.check_model()
    logger.info("Fitted %d CPDs with %s estimator", len(model.get_cpds()), estimator)
    return FittedNetwork(dag=dag, model=model)


def learn_structure(
    frame: pd.DataFrame,
    scoring: str = "bic",
    max_indegree: int | None = None,
) -> CausalDAG:
    """Score-based structure search (pgmpy HillClimbSearch) on discrete data."""
    _pgmpy_version()
    from pgmpy.estimators import HillClimbSearch

    search = HillClimbSearch(_discrete_frame(frame))
    best = search.estimate(
        scoring_method=_scoring_method(scoring),
        max_indegree=max_indegree,
        show_progress=False,
    )
    return CausalDAG.from_edges(list(best.edges()), nodes=[str(c) for c in frame.columns])
