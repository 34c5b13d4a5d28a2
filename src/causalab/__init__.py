"""causalab: course labs for causal inference.

Simulate small datasets, read and test DAGs, run causal discovery, fit
Bayesian networks and SEMs, and estimate heterogeneous effects. The
algorithms are networkx, causal-learn, pgmpy, semopy, statsmodels and
econml; causalab sequences their calls and reports the results.
"""

from causalab.causal.dag import CausalDAG
from causalab.config import LabConfig, get_config
from causalab.errors import CausalabError

__version__ = "0.1.0"

__all__ = ["CausalDAG", "CausalabError", "LabConfig", "get_config", "__version__"]
