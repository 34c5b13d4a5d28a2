"""Logging setup for causalab."""

from causalab.observability.config import ObservabilityConfig
from causalab.observability.logging import reset_logging, setup_logging

__all__ = ["ObservabilityConfig", "reset_logging", "setup_logging"]
