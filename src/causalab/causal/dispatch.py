"""CausalDispatcher: pick a backend for a DAG and (optionally) data.

Selection order:
    no data                          -> networkx (d-separation only)
    discrete data + pgmpy installed  -> pgmpy (posteriors, do-queries)
    otherwise + statsmodels present  -> statsmodels (back-door OLS)
    otherwise                        -> networkx
"""

from __future__ import annotations

import importlib.util
import logging
from dataclasses import dataclass

import pandas as pd

from causalab.data import is_discrete, require_columns
from causalab.types import CausalCapability, CausalQuery, CausalResult

from .backend import (
    CausalBackend,
    NetworkXCausalBackend,
    PgmpyCausalBackend,
    RegressionCausalBackend,
)
from .dag import CausalDAG

logger = logging.getLogger(__name__)


@dataclass
class CausalDispatcher:
    """Routes causal queries to the best available backend.

    Usage::

        dag = CausalDAG.from_dagitty("dag { Z -> X; Z -> Y; X -> Y }")
        dispatcher = CausalDispatcher.auto_detect(dag, data=frame)
        result = dispatcher.query(some_query)
    """

    _backend: CausalBackend | None = None
    _backend_name: str = ""

    @classmethod
    def auto_detect(cls, dag: CausalDAG, data: pd.DataFrame | None = None) -> CausalDispatcher:
        """Probe installed libraries and the data to select a backend."""
        dispatcher = cls()

        if data is not None:
            require_columns(data, dag.observed)

            if is_discrete(data[sorted(dag.observed)]) and _is_importable("pgmpy"):
                dispatcher._backend = PgmpyCausalBackend(dag=dag, data=data)
                dispatcher._backend_name = "pgmpy"
            elif _is_importable("statsmodels"):
                dispatcher._backend = RegressionCausalBackend(dag=dag, data=data)
                dispatcher._backend_name = "statsmodels"
            else:
                logger.warning("Neither pgmpy nor statsmodels importable; data ignored")

        if dispatcher._backend is None:
            dispatcher._backend = NetworkXCausalBackend(dag=dag)
            dispatcher._backend_name = "networkx"

        logger.info("Using %s causal backend", dispatcher._backend_name)
        return dispatcher

    @property
    def backend_name(self) -> str:
        return self._backend_name

    @property
    def backend(self) -> CausalBackend:
        if self._backend is None:
            raise RuntimeError("No causal backend selected. Use CausalDispatcher.auto_detect()")
        return self._backend

    def capabilities(self) -> frozenset[CausalCapability]:
        return self.backend.capabilities()

    def has_capability(self, cap: CausalCapability) -> bool:
        return self.backend.has_capability(cap)

    def query(self, cq: CausalQuery) -> CausalResult:
        """Route a query to the active backend."""
        return self.backend.query(cq)


def _is_importable(module_name: str) -> bool:
    """Check if a module can be imported without actually importing it."""
    try:
        return importlib.util.find_spec(module_name) is not None
    except (ModuleNotFoundError, ValueError):
        return False
