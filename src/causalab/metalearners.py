"""Heterogeneous treatment effects with econml meta-learners.

S-, T- and X-learners, NonParamDML as the R-learner, and CausalForestDML,
each wrapping scikit-learn base models. Treatment must be binary 0/1.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import numpy as np
import pandas as pd

from causalab.data import require_columns
from causalab.errors import DataError, QueryError, UnknownNameError
from causalab.types import EffectEstimate

logger = logging.getLogger(__name__)

BASE_MODELS = ("forest", "linear")


def _regressor(base_model: str, seed: int | None) -> Any:
    if base_model == "forest":
        from sklearn.ensemble import RandomForestRegressor

        return RandomForestRegressor(n_estimators=100, min_samples_leaf=5, random_state=seed)
    if base_model == "linear":
        from sklearn.linear_model import LinearRegression

        return LinearRegression()
    raise UnknownNameError("base model", base_model, BASE_MODELS)


def _classifier(base_model: str, seed: int | None) -> Any:
    if base_model == "forest":
        from sklearn.ensemble import RandomForestClassifier

        return RandomForestClassifier(n_estimators=100, min_samples_leaf=5, random_state=seed)
    if base_model == "linear":
        from sklearn.linear_model import LogisticRegression

        return LogisticRegression(max_iter=1000)
    raise UnknownNameError("base model", base_model, BASE_MODELS)


# =============================================================================
# Learners: (Y, T, X, base_model, seed) -> fitted econml estimator
# =============================================================================


def _s_learner(y, t, x, base_model: str, seed: int | None) -> Any:
    from econml.metalearners import SLearner

    est = SLearner(overall_model=_regressor(base_model, seed))
    est.fit(y, t, X=x)
    return est


def _t_learner(y, t, x, base_model: str, seed: int | None) -> Any:
    from econml.metalearners import TLearner

    est = TLearner(models=_regressor(base_model, seed))
    est.fit(y, t, X=x)
    return est


def _x_learner(y, t, x, base_model: str, seed: int | None) -> Any:
    from econml.metalearners import XLearner

    est = XLearner(
        models=_regressor(base_model, seed),
        propensity_model=_classifier(base_model, seed),
    )
    est.fit(y, t, X=x)
    return est


def _r_learner(y, t, x, base_model: str, seed: int | None) -> Any:
    from econml.dml import NonParamDML

    est = NonParamDML(
        model_y=_regressor(base_model, seed),
        model_t=_classifier(base_model, seed),
        model_final=_regressor(base_model, seed),
        discrete_treatment=True,
        random_state=seed,
    )
    est.fit(y, t, X=x)
    return est


def _causal_forest(y, t, x, base_model: str, seed: int | None) -> Any:
    from econml.dml import CausalForestDML

    est = CausalForestDML(
        model_y=_regressor(base_model, seed),
        model_t=_classifier(base_model, seed),
        discrete_treatment=True,
        n_estimators=200,
        random_state=seed,
    )
    est.fit(y, t, X=x)
    return est


_LEARNERS: dict[str, Callable[..., Any]] = {
    "s_learner": _s_learner,
    "t_learner": _t_learner,
    "x_learner": _x_learner,
    "r_learner": _r_learner,
    "causal_forest": _causal_forest,
}

# Learners whose econml estimator reports an ATE interval
_WITH_INTERVAL = {"causal_forest"}


def register_learner(name: str, fn: Callable[..., Any], with_interval: bool = False) -> None:
    _LEARNERS[name] = fn
    if with_interval:
        _WITH_INTERVAL.add(name)


def available_learners() -> list[str]:
    return list(_LEARNERS)


def _check_binary(t: pd.Series) -> None:
    levels = set(pd.unique(t))
    if not levels <= {0, 1} or len(levels) != 2:
        raise DataError(
            f"Treatment {t.name!r} must be binary 0/1, got levels {sorted(levels)[:10]}"
        )


def estimate_effects(
    frame: pd.DataFrame,
    treatment: str,
    outcome: str,
    covariates: Sequence[str],
    learner: str = "t_learner",
    base_model: str = "forest",
    seed: int | None = 42,
    alpha: float = 0.05,
) -> EffectEstimate:
    """Fit one meta-learner and return its ATE and per-row CATE.

    ``covariates`` are the effect modifiers (and confounders) handed to
    econml as ``X``.
    """
    if learner not in _LEARNERS:
        raise UnknownNameError("learner", learner, _LEARNERS)
    if not covariates:
        raise QueryError("At least one covariate is required")

    columns = [treatment, outcome, *covariates]
    require_columns(frame, columns)
    data = frame[columns].dropna()
    _check_binary(data[treatment])

    y = data[outcome].to_numpy(dtype=float)
    t = data[treatment].to_numpy(dtype=int)
    x = data[list(covariates)].to_numpy(dtype=float)

    est = _LEARNERS[learner](y, t, x, base_model, seed)
    cate = np.asarray(est.effect(x)).ravel()

    ci_low = ci_high = None
    if learner in _WITH_INTERVAL:
        low, high = est.ate_interval(x, alpha=alpha)
        ci_low, ci_high = float(np.squeeze(low)), float(np.squeeze(high))

    result = EffectEstimate(
        method=learner,
        ate=float(cate.mean()),
        ci_low=ci_low,
        ci_high=ci_high,
        cate=cate,
        n=len(data),
    )
    logger.info("%s (%s): ATE %.4f on %d rows", learner, base_model, result.ate, result.n)
    return result


def fit_learners(
    frame: pd.DataFrame,
    treatment: str,
    outcome: str,
    covariates: Sequence[str],
    learners: Sequence[str] | None = None,
    base_model: str = "forest",
    seed: int | None = 42,
) -> dict[str, EffectEstimate]:
    """Fit several learners on the same data, keyed by learner name."""
    return {
        name: estimate_effects(
            frame, treatment, outcome, covariates, learner=name, base_model=base_model, seed=seed
        )
        for name in learners or available_learners()
    }


def summarize_estimates(
    estimates: Mapping[str, EffectEstimate],
    true_ate: float | None = None,
    true_cate: np.ndarray | None = None,
) -> pd.DataFrame:
    """One row per learner; with simulated truth, also ATE bias and CATE RMSE."""
    rows = []
    for est in estimates.values():
        row = est.to_dict()
        if true_ate is not None:
            row["bias"] = est.ate - true_ate
        if true_cate is not None and est.cate is not None:
            truth = np.asarray(true_cate, dtype=float)
            if len(truth) == len(est.cate):
                row["cate_rmse"] = float(np.sqrt(np.mean((est.cate - truth) ** 2)))
        rows.append(row)
    return pd.DataFrame(rows)


def compare_learners(
    frame: pd.DataFrame,
    treatment: str,
    outcome: str,
    covariates: Sequence[str],
    learners: Sequence[str] | None = None,
    base_model: str = "forest",
    seed: int | None = 42,
    true_ate: float | None = None,
    true_cate: np.ndarray | None = None,
) -> pd.DataFrame:
    """Run several learners and tabulate their estimates."""
    estimates = fit_learners(frame, treatment, outcome, covariates, learners, base_model, seed)
    return summarize_estimates(estimates, true_ate=true_ate, true_cate=true_cate)
