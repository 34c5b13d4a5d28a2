"""DAGRefuter: local tests of a DAG's implied independences against data.

Chi-squared (pooled over strata of Z) for categorical columns, Fisher-z
partial correlation for continuous ones. The same checks dagitty runs as
``localTests``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy.stats import chi2, chi2_contingency, norm

from causalab.data import require_columns
from causalab.errors import DataError, QueryError
from causalab.types import IndependenceAssertion

logger = logging.getLogger(__name__)

MIN_SAMPLES = 5


@dataclass
class RefutationResult:
    """Outcome of a statistical independence test."""

    assertion: IndependenceAssertion
    test_statistic: float
    p_value: float
    dof: int
    consistent: bool  # Does the data agree with the structural claim?
    sample_size: int
    method: str = "chi_squared"

    def to_dict(self) -> dict:
        return {
            "claim": str(self.assertion),
            "method": self.method,
            "statistic": self.test_statistic,
            "dof": self.dof,
            "p_value": self.p_value,
            "consistent": bool(self.consistent),
        }


@dataclass
class DAGRefuter:
    """Refute d-separation assertions against observed data."""

    significance_level: float = 0.05
    method: str = "auto"  # "auto" | "chi_squared" | "fisher_z"

    def test_independence(
        self,
        assertion: IndependenceAssertion,
        data: pd.DataFrame | Mapping[str, list],
    ) -> RefutationResult:
        """Test a single independence assertion.

        Args:
            assertion: The d-separation claim to test.
            data: DataFrame, or column-oriented mapping of equal-length lists.

        Raises:
            ColumnMismatchError: If a variable of the claim is not a column.
            DataError: If data is insufficient for the test.
        """
        frame = data if isinstance(data, pd.DataFrame) else pd.DataFrame(dict(data))

        all_vars = assertion.x | assertion.y | assertion.z
        require_columns(frame, all_vars)

        frame = frame[sorted(all_vars)].dropna()
        n = len(frame)
        if n < MIN_SAMPLES:
            raise DataError(f"Insufficient data: {n} samples (need >= {MIN_SAMPLES})")

        method = self._select_method(frame)
        if method == "fisher_z":
            return self._test_fisher_z(assertion, frame)

        x_vals = self._combine_columns(assertion.x, frame)
        y_vals = self._combine_columns(assertion.y, frame)
        if assertion.z:
            z_vals = self._combine_columns(assertion.z, frame)
            return self._test_conditional(assertion, x_vals, y_vals, z_vals, n)
        return self._test_marginal(assertion, x_vals, y_vals, n)

    def refute_all(
        self,
        assertions: list[IndependenceAssertion],
        data: pd.DataFrame | Mapping[str, list],
    ) -> list[RefutationResult]:
        """Refute all assertions, skipping those with missing or insufficient data."""
        results: list[RefutationResult] = []
        for assertion in assertions:
            try:
                results.append(self.test_independence(assertion, data))
            except ValueError as e:
                logger.debug("Skipping assertion %s: %s", assertion, e)
        return results

    @staticmethod
    def to_frame(results: list[RefutationResult]) -> pd.DataFrame:
        return pd.DataFrame(
            [r.to_dict() for r in results],
            columns=["claim", "method", "statistic", "dof", "p_value", "consistent"],
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _select_method(self, frame: pd.DataFrame) -> str:
        if self.method != "auto":
            return self.method
        if all(pd.api.types.is_float_dtype(frame[c]) for c in frame.columns):
            return "fisher_z"
        return "chi_squared"

    @staticmethod
    def _combine_columns(var_set: frozenset[str], frame: pd.DataFrame) -> list[str]:
        """Combine multiple variable columns into a single joint column."""
        cols = sorted(var_set)
        if len(cols) == 1:
            return [str(v) for v in frame[cols[0]]]
        return ["|".join(str(v) for v in row) for row in frame[cols].itertuples(index=False)]

    def _consistent(self, assertion: IndependenceAssertion, p: float) -> bool:
        # Independent if p > significance (fail to reject null of independence)
        return (p > self.significance_level) == assertion.is_independent

    def _test_marginal(
        self,
        assertion: IndependenceAssertion,
        x_vals: list[str],
        y_vals: list[str],
        n: int,
    ) -> RefutationResult:
        table = self._contingency_table(x_vals, y_vals)
        if table.shape[0] < 2 or table.shape[1] < 2:
            raise DataError("Need at least two levels in each variable for a chi-squared test")
        stat, p, dof, _ = chi2_contingency(table)

        return RefutationResult(
            assertion=assertion,
            test_statistic=float(stat),
            p_value=float(p),
            dof=int(dof),
            consistent=self._consistent(assertion, float(p)),
            sample_size=n,
            method="chi_squared",
        )

    def _test_conditional(
        self,
        assertion: IndependenceAssertion,
        x_vals: list[str],
        y_vals: list[str],
        z_vals: list[str],
        n: int,
    ) -> RefutationResult:
        """Stratified chi-squared test, pooling statistics across strata of Z."""
        strata: dict[str, list[int]] = {}
        for i, z in enumerate(z_vals):
            strata.setdefault(z, []).append(i)

        total_stat = 0.0
        total_dof = 0

        for indices in strata.values():
            if len(indices) < MIN_SAMPLES:
                continue
            table = self._contingency_table(
                [x_vals[i] for i in indices], [y_vals[i] for i in indices]
            )
            if table.shape[0] < 2 or table.shape[1] < 2:
                continue

            stat, _p, dof, _ = chi2_contingency(table)
            total_stat += stat
            total_dof += dof

        if total_dof == 0:
            raise DataError("Insufficient data in all strata for conditional test")

        pooled_p = float(chi2.sf(total_stat, total_dof))
        return RefutationResult(
            assertion=assertion,
            test_statistic=float(total_stat),
            p_value=pooled_p,
            dof=total_dof,
            consistent=self._consistent(assertion, pooled_p),
            sample_size=n,
            method="chi_squared",
        )

    def _test_fisher_z(
        self,
        assertion: IndependenceAssertion,
        frame: pd.DataFrame,
    ) -> RefutationResult:
        """Fisher-z test of zero partial correlation between single x and y given z."""
        if len(assertion.x) != 1 or len(assertion.y) != 1:
            raise QueryError("Fisher-z test needs exactly one variable on each side")

        x = frame[next(iter(assertion.x))].to_numpy(dtype=float)
        y = frame[next(iter(assertion.y))].to_numpy(dtype=float)
        n = len(x)
        k = len(assertion.z)
        if n - k - 3 <= 0:
            raise DataError(f"Insufficient data: {n} samples for {k} conditioning variables")

        if k:
            design = np.column_stack(
                [np.ones(n), frame[sorted(assertion.z)].to_numpy(dtype=float)]
            )
            x = x - design @ np.linalg.lstsq(design, x, rcond=None)[0]
            y = y - design @ np.linalg.lstsq(design, y, rcond=None)[0]

        r = float(np.corrcoef(x, y)[0, 1])
        r = max(min(r, 1 - 1e-12), -1 + 1e-12)
        stat = math.sqrt(n - k - 3) * 0.5 * math.log((1 + r) / (1 - r))
        p = float(2 * norm.sf(abs(stat)))

        return RefutationResult(
            assertion=assertion,
            test_statistic=stat,
            p_value=p,
            dof=n - k - 3,
            consistent=self._consistent(assertion, p),
            sample_size=n,
            method="fisher_z",
        )

    @staticmethod
    def _contingency_table(x_vals: list[str], y_vals: list[str]) -> np.ndarray:
        """Build a contingency table from two categorical columns."""
        x_labels = sorted(set(x_vals))
        y_labels = sorted(set(y_vals))
        x_map = {v: i for i, v in enumerate(x_labels)}
        y_map = {v: i for i, v in enumerate(y_labels)}

        table = np.zeros((len(x_labels), len(y_labels)), dtype=int)
        for xv, yv in zip(x_vals, y_vals):
            table[x_map[xv], y_map[yv]] += 1

        return table
