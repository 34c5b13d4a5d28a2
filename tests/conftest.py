"""Shared fixtures: isolated configuration and small simulated frames."""

from __future__ import annotations

import pytest

from causalab.config import reset_config
from causalab.observability import reset_logging


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point config at a missing YAML file and tmp dirs; clear CAUSALAB_* vars."""
    import os

    for key in list(os.environ):
        if key.startswith("CAUSALAB_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("CAUSALAB_CONFIG", str(tmp_path / "absent.yaml"))
    monkeypatch.setenv("CAUSALAB_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("CAUSALAB_OUTPUT_DIR", str(tmp_path / "output"))
    reset_config()
    yield
    reset_config()
    # CLI invocations attach a handler bound to CliRunner's stderr
    reset_logging()


@pytest.fixture
def confounding_data():
    from causalab.simulate import simulate

    return simulate("confounding", n=2000, seed=7)


@pytest.fixture
def sprinkler_data():
    from causalab.simulate import simulate

    return simulate("sprinkler", n=3000, seed=7)
