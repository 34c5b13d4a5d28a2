"""Observability configuration, env-var driven.

Logging architecture:
    a formatter (how records are structured) and a destination (where they go)

    Formatter: CAUSALAB_LOG_FORMATTER=structlog (default) | stdlib
    Destination: CAUSALAB_LOG_DESTINATION=stderr (default) | jsonl
    Renderer: CAUSALAB_LOG_FORMAT=console (default) | json
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass
class ObservabilityConfig:
    """Observability configuration, env-var driven."""

    log_formatter: str = field(
        default_factory=lambda: os.environ.get("CAUSALAB_LOG_FORMATTER", "structlog")
    )  # "structlog" | "stdlib"

    log_destination: str = field(
        default_factory=lambda: os.environ.get("CAUSALAB_LOG_DESTINATION", "stderr")
    )  # "stderr" | "jsonl"

    log_level: str = field(
        default_factory=lambda: os.environ.get("CAUSALAB_LOG_LEVEL", "WARNING")
    )

    log_format: str = field(
        default_factory=lambda: os.environ.get("CAUSALAB_LOG_FORMAT", "console")
    )  # "json" | "console"

    # JSONL file destination
    jsonl_path: str | None = field(
        default_factory=lambda: os.environ.get("CAUSALAB_LOG_PATH")
    )
