"""Causal graph layer for causalab.

DAG construction and editing, d-separation, back-door adjustment,
local tests against data, and backends that answer causal queries.

Backend chain:
    pgmpy (discrete BN: posteriors + do-queries)
    -> statsmodels (back-door adjusted OLS)
    -> networkx d-separation (structure only)
"""

from .dag import CausalDAG
from .dsep import DSeparationEngine

__all__ = ["CausalDAG", "DSeparationEngine"]
