"""Tests for CausalDispatcher."""

import pandas as pd
import pytest

from causalab.causal.backend import NetworkXCausalBackend, RegressionCausalBackend
from causalab.causal.dispatch import CausalDispatcher
from causalab.errors import ColumnMismatchError
from causalab.types import CausalCapability, CausalQuery, QueryType


class TestAutoDetect:
    def test_detects_networkx_without_data(self, chain_dag):
        dispatcher = CausalDispatcher.auto_detect(chain_dag)
        assert dispatcher.backend_name == "networkx"
        assert isinstance(dispatcher.backend, NetworkXCausalBackend)

    def test_has_d_separation_capability(self, chain_dag):
        dispatcher = CausalDispatcher.auto_detect(chain_dag)
        assert dispatcher.has_capability(CausalCapability.D_SEPARATION)
        assert not dispatcher.has_capability(CausalCapability.INTERVENTION)

    def test_continuous_data_selects_statsmodels(self, confounding_data):
        dispatcher = CausalDispatcher.auto_detect(confounding_data.dag, data=confounding_data.frame)
        assert dispatcher.backend_name == "statsmodels"
        assert isinstance(dispatcher.backend, RegressionCausalBackend)

    def test_discrete_data_selects_pgmpy(self, sprinkler_data):
        pytest.importorskip("pgmpy")
        dispatcher = CausalDispatcher.auto_detect(sprinkler_data.dag, data=sprinkler_data.frame)
        assert dispatcher.backend_name == "pgmpy"
        assert dispatcher.has_capability(CausalCapability.PROBABILISTIC_INFERENCE)

    def test_data_must_cover_observed_nodes(self, smoking_dag):
        frame = pd.DataFrame({"Smoking": [0, 1], "Cancer": [1, 0]})
        with pytest.raises(ColumnMismatchError, match="Tar"):
            CausalDispatcher.auto_detect(smoking_dag, data=frame)

    def test_latent_nodes_need_no_column(self, smoking_dag):
        frame = pd.DataFrame({"Smoking": [0.1, 0.2], "Tar": [0.3, 0.1], "Cancer": [1.0, 0.0]})
        dispatcher = CausalDispatcher.auto_detect(smoking_dag, data=frame)
        assert dispatcher.backend_name == "statsmodels"


class TestQuery:
    def test_observational_query(self, chain_dag):
        dispatcher = CausalDispatcher.auto_detect(chain_dag)
        cq = CausalQuery(
            query_type=QueryType.OBSERVATIONAL,
            target_nodes=frozenset({"A"}),
            conditioning_nodes=frozenset({"C"}),
        )
        result = dispatcher.query(cq)
        assert result.backend_used == "networkx"

    def test_interventional_raises_without_data(self, chain_dag):
        dispatcher = CausalDispatcher.auto_detect(chain_dag)
        cq = CausalQuery(
            query_type=QueryType.INTERVENTIONAL,
            target_nodes=frozenset({"A"}),
        )
        with pytest.raises(NotImplementedError):
            dispatcher.query(cq)


class TestNoBackend:
    def test_no_backend_raises_on_query(self):
        dispatcher = CausalDispatcher()
        cq = CausalQuery(
            query_type=QueryType.OBSERVATIONAL,
            target_nodes=frozenset({"A"}),
        )
        with pytest.raises(RuntimeError, match="No causal backend"):
            dispatcher.query(cq)
