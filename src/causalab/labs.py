"""Course labs: registered sequences of simulate -> library call -> report.

Each lab is a function ``(LabContext) -> LabReport`` registered with
``@lab(name, title, summary)``. A lab simulates its canonical dataset
unless the context carries user data, in which case the columns the lab
needs are validated first and simulation ground truth is not reported.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd

from causalab.causal.backend import RegressionCausalBackend
from causalab.causal.dispatch import CausalDispatcher
from causalab.causal.refutation import DAGRefuter
from causalab.config import LabConfig, get_config
from causalab.data import require_columns
from causalab.errors import DataError, UnknownNameError
from causalab.report import LabReport
from causalab.simulate import SimulatedData, simulate
from causalab.types import CausalQuery, QueryType

logger = logging.getLogger(__name__)


@dataclass
class LabContext:
    """Everything a lab needs besides its own logic.

    Unset fields fall back to the configuration.
    """

    config: LabConfig = field(default_factory=get_config)
    data: pd.DataFrame | None = None
    seed: int | None = None
    n_samples: int | None = None
    output_dir: Path | None = None
    save_figures: bool | None = None

    def __post_init__(self) -> None:
        if self.seed is None:
            self.seed = self.config.seed
        if self.n_samples is None:
            self.n_samples = self.config.n_samples
        if self.output_dir is None:
            self.output_dir = self.config.output_path
        if self.save_figures is None:
            self.save_figures = self.config.save_figures

    @property
    def simulated(self) -> bool:
        return self.data is None

    def dataset(self, name: str, columns: Iterable[str] | None = None, **kwargs: Any) -> SimulatedData:
        """The lab's canonical dataset, or the user's data checked against ``columns``."""
        if self.data is None:
            return simulate(name, n=self.n_samples, seed=self.seed, **kwargs)
        # The design (DAG) is the same at any size; only the user's rows are used.
        design = simulate(name, n=10, seed=self.seed, **kwargs)
        require_columns(self.data, columns if columns is not None else design.frame.columns)
        return SimulatedData(
            name=name,
            frame=self.data,
            dag=design.dag,
            description=f"user data analysed with the {name} design",
        )

    def figure(self, report: LabReport, fig: Any, name: str) -> None:
        """Save ``fig`` under ``<output_dir>/<lab>/`` or discard it."""
        import matplotlib.pyplot as plt

        from causalab.plotting import save_figure

        if not self.save_figures:
            plt.close(fig)
            return
        path = save_figure(fig, Path(self.output_dir) / report.lab / f"{name}.png")
        report.figures.append(path)


@dataclass(frozen=True)
class Lab:
    name: str
    title: str
    summary: str
    run: Callable[[LabContext], LabReport]


_LABS: dict[str, Lab] = {}


def lab(name: str, title: str, summary: str) -> Callable:
    """Register a lab function under ``name``."""

    def decorator(fn: Callable[[LabContext], LabReport]) -> Callable[[LabContext], LabReport]:
        _LABS[name] = Lab(name=name, title=title, summary=summary, run=fn)
        return fn

    return decorator


def get_lab(name: str) -> Lab:
    if name not in _LABS:
        raise UnknownNameError("lab", name, _LABS)
    return _LABS[name]


def available_labs() -> list[Lab]:
    return list(_LABS.values())


def run_lab(name: str, context: LabContext | None = None) -> LabReport:
    entry = get_lab(name)
    ctx = context or LabContext()
    logger.info("Running lab %s (seed=%s, n=%s)", name, ctx.seed, ctx.n_samples)
    return entry.run(ctx)


def _truth(ctx: LabContext, sim: SimulatedData, report: LabReport, key: str, metric: str) -> None:
    if ctx.simulated and key in sim.truth:
        report.metrics[metric] = sim.truth[key]


# =============================================================================
# Labs
# =============================================================================


@lab(
    "confounding",
    "Confounding and back-door adjustment",
    "Naive vs back-door adjusted OLS estimate of X -> Y with confounder Z.",
)
def confounding_lab(ctx: LabContext) -> LabReport:
    sim = ctx.dataset("confounding", ["X", "Y", "Z"])
    report = LabReport(lab="confounding", title="Confounding and back-door adjustment")
    report.add("Design", f"{sim.description}\n{sim.dag}")

    backend = RegressionCausalBackend(dag=sim.dag, data=sim.frame)
    adjustment = backend.engine.adjustment_set("X", "Y")
    naive = backend.estimate_effect("X", "Y")
    adjusted = backend.estimate_effect("X", "Y", adjustment)

    roles = sim.dag.roles("X", "Y")
    report.add(
        "Roles",
        "\n".join(f"{k}: {', '.join(v) or '-'}" for k, v in roles.items()),
    )
    report.add(
        "Estimates",
        f"Adjustment set: {{{', '.join(sorted(adjustment or ()))}}}",
        pd.DataFrame([naive.to_dict(), adjusted.to_dict()]),
    )

    report.metrics["naive_effect"] = naive.ate
    report.metrics["adjusted_effect"] = adjusted.ate
    _truth(ctx, sim, report, "effect_X_on_Y", "true_effect")

    from causalab.plotting import draw_dag

    ctx.figure(report, draw_dag(sim.dag, highlight=adjustment or ()), "dag")
    return report


@lab(
    "collider",
    "Collider bias",
    "Conditioning on a common effect C creates an X-Y association that is not causal.",
)
def collider_lab(ctx: LabContext) -> LabReport:
    sim = ctx.dataset("collider", ["X", "Y", "C"])
    report = LabReport(lab="collider", title="Collider bias")
    report.add("Design", f"{sim.description}\n{sim.dag}")

    backend = RegressionCausalBackend(dag=sim.dag, data=sim.frame)
    marginal = backend.estimate_effect("X", "Y")
    conditioned = backend.estimate_effect("X", "Y", frozenset({"C"}))
    marginal.method = "Y ~ X"
    conditioned.method = "Y ~ X + C"
    report.add("Regressions", "", pd.DataFrame([marginal.to_dict(), conditioned.to_dict()]))

    refuter = DAGRefuter(significance_level=ctx.config.alpha)
    claims = [
        backend.is_d_separated(frozenset({"X"}), frozenset({"Y"}), frozenset()),
        backend.is_d_separated(frozenset({"X"}), frozenset({"Y"}), frozenset({"C"})),
    ]
    tests = [refuter.test_independence(c, sim.frame) for c in claims]
    report.add(
        "d-separation vs data",
        "The graph says X and Y are independent, but not given C.",
        DAGRefuter.to_frame(tests),
    )

    report.metrics["marginal_slope"] = marginal.ate
    report.metrics["conditioned_slope"] = conditioned.ate
    report.metrics["tests_consistent"] = sum(t.consistent for t in tests)
    _truth(ctx, sim, report, "effect_X_on_Y", "true_effect")

    from causalab.plotting import draw_dag

    ctx.figure(report, draw_dag(sim.dag, highlight=["C"]), "dag")
    return report


@lab(
    "dag",
    "Reading a DAG",
    "Implied independences, adjustment sets and local tests of a DAG against data.",
)
def dag_lab(ctx: LabContext) -> LabReport:
    sim = ctx.dataset("discovery")
    report = LabReport(lab="dag", title="Reading a DAG")
    report.add("DAG", sim.dag.to_dagitty())

    backend = RegressionCausalBackend(dag=sim.dag, data=sim.frame)
    implied = backend.engine.implied_independences()
    report.add("Implied independences", "\n".join(str(a) for a in implied))

    rows = []
    for u, v in sim.dag.edge_list():
        z = backend.engine.adjustment_set(u, v)
        rows.append(
            {
                "treatment": u,
                "outcome": v,
                "adjustment_set": ", ".join(sorted(z)) if z is not None else "none",
            }
        )
    report.add("Minimal adjustment sets per edge", "", pd.DataFrame(rows))

    tests = backend.local_tests(significance_level=ctx.config.alpha)
    report.add("Local tests", "", DAGRefuter.to_frame(tests))

    report.metrics["implied_independences"] = len(implied)
    report.metrics["tests_consistent"] = sum(t.consistent for t in tests)
    report.metrics["tests_run"] = len(tests)

    from causalab.plotting import draw_dag

    ctx.figure(report, draw_dag(sim.dag), "dag")
    return report


@lab(
    "discovery",
    "Causal discovery",
    "PC and GES (and LiNGAM on non-Gaussian noise) recover structure from data.",
)
def discovery_lab(ctx: LabContext) -> LabReport:
    from causalab.discovery import compare, discover
    from causalab.plotting import draw_discovery

    sim = ctx.dataset("discovery")
    report = LabReport(lab="discovery", title="Causal discovery")
    report.add("True DAG" if ctx.simulated else "Design DAG", str(sim.dag))

    runs = [
        ("pc", sim.frame, {"alpha": ctx.config.alpha}),
        ("ges", sim.frame, {}),
    ]
    # LiNGAM needs non-Gaussian noise to orient edges
    lingam_frame = (
        ctx.dataset("discovery", noise="uniform").frame if ctx.simulated else sim.frame
    )
    runs.append(("lingam", lingam_frame, {"seed": ctx.seed}))

    scores = []
    for algorithm, frame, params in runs:
        result = discover(frame, algorithm=algorithm, **params)
        report.add(f"{algorithm} edges", "", result.to_frame())
        row: dict[str, Any] = {"algorithm": algorithm, "edges": len(result.edges)}
        if ctx.simulated:
            row.update(compare(result, sim.dag))
        scores.append(row)
        ctx.figure(report, draw_discovery(result), algorithm)

    table = pd.DataFrame(scores)
    report.add("Comparison", "", table)
    if ctx.simulated:
        for row in scores:
            report.metrics[f"{row['algorithm']}_shd"] = row["shd"]
    return report


@lab(
    "bayesnet",
    "Bayesian networks",
    "Fit the sprinkler network with pgmpy, then compare conditioning and do().",
)
def bayesnet_lab(ctx: LabContext) -> LabReport:
    sim = ctx.dataset("sprinkler", ["Cloudy", "Sprinkler", "Rain", "WetGrass"])
    report = LabReport(lab="bayesnet", title="Bayesian networks")
    report.add("Design", f"{sim.description}\n{sim.dag}")

    dispatcher = CausalDispatcher.auto_detect(sim.dag, data=sim.frame)
    if dispatcher.backend_name != "pgmpy":
        raise DataError("The bayesnet lab needs discrete (integer or categorical) columns")
    network = dispatcher.backend.network  # type: ignore[attr-defined]

    report.add("P(WetGrass | Sprinkler, Rain)", "", network.cpd_table("WetGrass"))
    report.add(
        "P(Rain | WetGrass=1)",
        "Posterior by variable elimination.",
        network.query(["Rain"], evidence={"WetGrass": 1}),
    )

    seen = network.probability("WetGrass", 1, evidence={"Sprinkler": 1})
    done = dispatcher.query(
        CausalQuery(
            query_type=QueryType.INTERVENTIONAL,
            target_nodes=frozenset({"WetGrass"}),
            intervention_nodes=frozenset({"Sprinkler"}),
            intervention_values={"Sprinkler": 1},
        )
    )
    report.add(
        "P(WetGrass | do(Sprinkler=1))",
        f"Answered by the {dispatcher.backend_name} backend. Compare with "
        f"P(WetGrass=1 | Sprinkler=1) = {seen:.4f}.",
        done.distribution,
    )

    report.metrics["p_wet_given_sprinkler"] = seen
    report.metrics["p_wet_do_sprinkler"] = done.causal_effect
    _truth(ctx, sim, report, "P(WetGrass=1|do(Sprinkler=1))", "true_p_wet_do_sprinkler")

    from causalab.plotting import draw_dag

    ctx.figure(report, draw_dag(sim.dag, highlight=["Sprinkler"]), "dag")
    return report


@lab(
    "sem",
    "Structural equation models",
    "Mediation model fitted with semopy: direct, indirect and total effect.",
)
def sem_lab(ctx: LabContext) -> LabReport:
    from causalab.sem import describe_dag, fit_sem

    sim = ctx.dataset("mediation", ["X", "M", "Y"])
    report = LabReport(lab="sem", title="Structural equation models")

    description = describe_dag(sim.dag)
    report.add("Model", description)
    fit = fit_sem(description, sim.frame)
    report.add(
        "Estimates",
        "",
        fit.estimates[["lval", "op", "rval", "Estimate", "Std. Err", "p-value"]],
    )
    report.add("Fit indices", "\n".join(f"{k}: {v:.4f}" for k, v in fit.fit_indices.items()))

    report.metrics["direct_effect"] = fit.path_coefficient("Y", "X")
    report.metrics["indirect_effect"] = fit.indirect_effect(["X", "M", "Y"])
    report.metrics["total_effect"] = fit.total_effect("X", "Y")
    _truth(ctx, sim, report, "direct", "true_direct")
    _truth(ctx, sim, report, "indirect", "true_indirect")
    _truth(ctx, sim, report, "total", "true_total")

    from causalab.plotting import draw_dag

    ctx.figure(report, draw_dag(sim.dag, highlight=["M"]), "dag")
    return report


@lab(
    "metalearners",
    "Meta-learners and causal forests",
    "S/T/X/R learners and a causal forest estimate a heterogeneous treatment effect.",
)
def metalearners_lab(ctx: LabContext) -> LabReport:
    from causalab.metalearners import fit_learners, summarize_estimates
    from causalab.plotting import plot_cate, plot_effect_comparison

    covariates = ["X1", "X2", "X3"]
    sim = ctx.dataset("heterogeneous_effect", ["T", "Y", *covariates])
    report = LabReport(lab="metalearners", title="Meta-learners and causal forests")
    report.add("Design", sim.description)

    estimates = fit_learners(sim.frame, "T", "Y", covariates, seed=ctx.seed)
    true_ate = sim.truth.get("ate") if ctx.simulated else None
    true_cate = sim.extras.get("cate") if ctx.simulated else None
    table = summarize_estimates(estimates, true_ate=true_ate, true_cate=true_cate)
    report.add("Average treatment effects", "", table)

    for name, est in estimates.items():
        report.metrics[f"{name}_ate"] = est.ate
    if true_ate is not None:
        report.metrics["true_ate"] = true_ate

    ctx.figure(report, plot_effect_comparison(table, truth=true_ate), "ate_comparison")
    ctx.figure(report, plot_cate(estimates["causal_forest"], truth=true_ate), "cate_causal_forest")
    return report


__all__ = [
    "Lab",
    "LabContext",
    "available_labs",
    "get_lab",
    "lab",
    "run_lab",
]
