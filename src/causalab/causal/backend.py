"""CausalBackend protocol and its implementations.

NetworkXCausalBackend answers structural questions from the DAG alone.
RegressionCausalBackend adds back-door adjusted OLS effects (statsmodels)
for continuous data; PgmpyCausalBackend adds posterior and do()
distributions for discrete data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import pandas as pd

from causalab.data import check_formula
from causalab.errors import DataError, QueryError
from causalab.types import (
    CausalCapability,
    CausalQuery,
    CausalResult,
    EffectEstimate,
    IndependenceAssertion,
    QueryType,
)

from .dag import CausalDAG
from .dsep import DSeparationEngine
from .refutation import DAGRefuter, RefutationResult

if TYPE_CHECKING:
    from causalab.bayesnet import FittedNetwork

logger = logging.getLogger(__name__)


@runtime_checkable
class CausalBackend(Protocol):
    """Backend-agnostic causal inference interface."""

    def capabilities(self) -> frozenset[CausalCapability]: ...

    def has_capability(self, cap: CausalCapability) -> bool: ...

    def query(self, cq: CausalQuery) -> CausalResult: ...

    def is_d_separated(
        self,
        x: frozenset[str],
        y: frozenset[str],
        z: frozenset[str],
    ) -> IndependenceAssertion: ...


def _refuse_counterfactual(cq: CausalQuery) -> None:
    if cq.query_type == QueryType.COUNTERFACTUAL:
        raise NotImplementedError("counterfactual queries are not supported by any backend")


def _single(nodes: frozenset[str], what: str) -> str:
    if len(nodes) != 1:
        raise QueryError(f"Expected exactly one {what} node, got {sorted(nodes)}")
    return next(iter(nodes))


def formula_term(name: str) -> str:
    """Quote a column name for a patsy formula when it is not an identifier."""
    return name if name.isidentifier() else f'Q("{name}")'


# =============================================================================
# Structural backend
# =============================================================================


@dataclass
class NetworkXCausalBackend:
    """Causal backend using networkx d-separation.

    Claims only ``{D_SEPARATION}`` capability.
    """

    dag: CausalDAG
    _engine: DSeparationEngine | None = None

    @property
    def engine(self) -> DSeparationEngine:
        if self._engine is None:
            self._engine = DSeparationEngine(dag=self.dag)
        return self._engine

    def capabilities(self) -> frozenset[CausalCapability]:
        return frozenset({CausalCapability.D_SEPARATION})

    def has_capability(self, cap: CausalCapability) -> bool:
        return cap in self.capabilities()

    def query(self, cq: CausalQuery) -> CausalResult:
        _refuse_counterfactual(cq)
        if cq.query_type != QueryType.OBSERVATIONAL:
            raise NotImplementedError(f"{cq.query_type.value} queries need data")
        return self.engine.query(cq)

    def is_d_separated(
        self,
        x: frozenset[str],
        y: frozenset[str],
        z: frozenset[str],
    ) -> IndependenceAssertion:
        return self.engine.is_d_separated(x, y, z)


# =============================================================================
# Regression adjustment (statsmodels)
# =============================================================================


@dataclass(eq=False)
class RegressionCausalBackend(NetworkXCausalBackend):
    """Back-door adjusted OLS effects for continuous data."""

    data: pd.DataFrame = field(default_factory=pd.DataFrame)

    def capabilities(self) -> frozenset[CausalCapability]:
        return frozenset(
            {
                CausalCapability.D_SEPARATION,
                CausalCapability.CI_TESTING,
                CausalCapability.INTERVENTION,
            }
        )

    def query(self, cq: CausalQuery) -> CausalResult:
        _refuse_counterfactual(cq)
        if cq.query_type == QueryType.OBSERVATIONAL:
            result = self.engine.query(cq)
            result.backend_used = "statsmodels"
            return result

        treatment = _single(cq.intervention_nodes, "intervention")
        outcome = _single(cq.target_nodes, "target")
        adjustment = self.engine.adjustment_set(treatment, outcome)
        if adjustment is None:
            raise QueryError(
                f"No back-door adjustment set identifies {treatment} -> {outcome} "
                "among the observed variables"
            )
        estimate = self.estimate_effect(treatment, outcome, adjustment)
        return CausalResult(
            query=cq,
            causal_effect=estimate.ate,
            effect_bounds=(estimate.ci_low, estimate.ci_high),
            adjustment_set=adjustment,
            backend_used="statsmodels",
            capabilities_used=["d_separation", "intervention"],
        )

    def local_tests(self, significance_level: float = 0.05) -> list[RefutationResult]:
        """Test every implied independence of the DAG against the data."""
        refuter = DAGRefuter(significance_level=significance_level)
        return refuter.refute_all(self.engine.implied_independences(), self.data)

    def estimate_effect(
        self,
        treatment: str,
        outcome: str,
        adjustment: frozenset[str] | None = None,
        alpha: float = 0.05,
    ) -> EffectEstimate:
        """OLS slope of outcome on treatment, controlling for ``adjustment``."""
        import statsmodels.formula.api as smf

        covariates = sorted(adjustment or ())
        rhs = " + ".join(formula_term(v) for v in [treatment, *covariates])
        formula = f"{formula_term(outcome)} ~ {rhs}"
        check_formula(self.data, formula)
        column = self.data[treatment]
        if not pd.api.types.is_numeric_dtype(column) or pd.api.types.is_bool_dtype(column):
            raise DataError(
                f"Treatment {treatment!r} must be numeric for a regression estimate, "
                f"got dtype {column.dtype}; encode it as 0/1 first"
            )

        fit =smf.ols(formula, data=self.data).fit()
        term = formula_term(treatment)
        low, high = fit.conf_int(alpha=alpha).loc[term]
        method = "ols_adjusted" if covariates else "ols_naive"
        logger.info("%s: %s -> %.4f", method, formula, fit.params[term])
        return EffectEstimate(
            method=method,
            ate=float(fit.params[term]),
            ci_low=float(low),
            ci_high=float(high),
            n=int(fit.nobs),
        )


# =============================================================================
# Discrete Bayesian network (pgmpy)
# =============================================================================


@dataclass(eq=False)
class PgmpyCausalBackend(NetworkXCausalBackend):
    """Posterior and interventional distributions from a fitted discrete BN."""

    data: pd.DataFrame = field(default_factory=pd.DataFrame)
    _network: FittedNetwork | None = None

    @property
    def network(self) -> FittedNetwork:
        if self._network is None:
            from causalab.bayesnet import fit_network

            self._network = fit_network(self.dag, self.data)
        return self._network

    def capabilities(self) -> frozenset[CausalCapability]:
        return frozenset(
            {
                CausalCapability.D_SEPARATION,
                CausalCapability.PROBABILISTIC_INFERENCE,
                CausalCapability.INTERVENTION,
            }
        )

    def query(self, cq: CausalQuery) -> CausalResult:
        _refuse_counterfactual(cq)
        targets = sorted(cq.target_nodes)
        evidence = dict(cq.conditioning_values) or None

        if cq.query_type == QueryType.OBSERVATIONAL:
            result = self.engine.query(cq) if cq.conditioning_nodes else CausalResult(query=cq)
            result.distribution = self.network.query(targets, evidence=evidence)
            result.capabilities_used = [*result.capabilities_used, "probabilistic_inference"]
        else:
            do = dict(cq.intervention_values)
            if not do:
                raise QueryError("Interventional query needs intervention_values")
            result = CausalResult(query=cq, capabilities_used=["intervention"])
            result.distribution = self.network.do_query(targets, do=do, evidence=evidence)

        result.causal_effect = _expected_value(result.distribution, targets)
        result.backend_used = "pgmpy"
        return result


def _expected_value(distribution: pd.DataFrame | None, targets: list[str]) -> float | None:
    """Mean of a single numeric target under a distribution table."""
    if distribution is None or len(targets) != 1:
        return None
    states = distribution[targets[0]]
    if not pd.api.types.is_numeric_dtype(states):
        return None
    value: Any = (states * distribution["probability"]).sum()
    return float(value)
