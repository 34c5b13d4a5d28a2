"""Logging setup: a formatter and a destination picked by name from config.

``setup_logging`` builds a ``logging.Formatter`` (structlog's stdlib bridge
by default, plain JSON otherwise), wraps it in a handler for the chosen
destination and attaches that handler to the root logger. Modules keep
logging through ``logging.getLogger(__name__)``; records from numpy,
statsmodels and the other libraries go through the same handler.

    CAUSALAB_LOG_FORMATTER=structlog | stdlib
    CAUSALAB_LOG_DESTINATION=stderr | jsonl
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from causalab.observability.config import ObservabilityConfig

DEFAULT_JSONL_PATH = "output/causalab.jsonl"

# marks the one root handler causalab owns; pytest caplog and friends are left alone
_MANAGED = "_causalab_managed"


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def _structlog_formatter(config: ObservabilityConfig) -> logging.Formatter:
    import structlog

    pre_chain: list = [
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]
    if config.log_format == "console":
        renderer: Any = structlog.dev.ConsoleRenderer(colors=False)
    else:
        renderer = structlog.processors.JSONRenderer()

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )


def _stdlib_formatter(config: ObservabilityConfig) -> logging.Formatter:
    if config.log_format == "console":
        return logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    return JsonLineFormatter()


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record, with the same keys structlog emits."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


# ---------------------------------------------------------------------------
# Destinations
# ---------------------------------------------------------------------------


def _stderr_handler(config: ObservabilityConfig) -> logging.Handler:
    return logging.StreamHandler(sys.stderr)


def _jsonl_handler(config: ObservabilityConfig) -> logging.Handler:
    path = Path(config.jsonl_path or DEFAULT_JSONL_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, mode="a", encoding="utf-8")


_FORMATTERS: dict[str, Callable[[ObservabilityConfig], logging.Formatter]] = {
    "structlog": _structlog_formatter,
    "stdlib": _stdlib_formatter,
}

_DESTINATIONS: dict[str, Callable[[ObservabilityConfig], logging.Handler]] = {
    "stderr": _stderr_handler,
    "jsonl": _jsonl_handler,
}


def _lookup(table: dict[str, Any], kind: str, name: str) -> Any:
    if name not in table:
        raise ValueError(f"Unknown log {kind}: {name!r}. Available: {list(table)}.")
    return table[name]


# ---------------------------------------------------------------------------
# Root logger wiring
# ---------------------------------------------------------------------------

_previous_level: int | None = None


def setup_logging(config: ObservabilityConfig) -> logging.Handler:
    """Attach causalab's handler to the root logger, replacing an earlier one."""
    global _previous_level

    make_formatter = _lookup(_FORMATTERS, "formatter", config.log_formatter)
    make_handler = _lookup(_DESTINATIONS, "destination", config.log_destination)

    handler = make_handler(config)
    handler.setFormatter(make_formatter(config))
    setattr(handler, _MANAGED, True)

    root = logging.getLogger()
    if _previous_level is None:
        _previous_level = root.level
    _detach(root)
    root.addHandler(handler)
    root.setLevel(getattr(logging, config.log_level.upper(), logging.WARNING))
    return handler


def reset_logging() -> None:
    """Close causalab's handler and restore the root level from before setup."""
    global _previous_level

    root = logging.getLogger()
    _detach(root)
    if _previous_level is not None:
        root.setLevel(_previous_level)
        _previous_level = None


def _detach(root: logging.Logger) -> None:
    for handler in [h for h in root.handlers if getattr(h, _MANAGED, False)]:
        root.removeHandler(handler)
        handler.close()
