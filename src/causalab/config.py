"""Lab configuration: YAML file + env var overrides.

Priority: env var > YAML file > default.
Env vars use the CAUSALAB_{FIELD} convention (e.g. CAUSALAB_SEED=7).
YAML file default: ~/.causalab/config.yaml, or the path in CAUSALAB_CONFIG.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

_TRUTHY = {"1", "true", "on", "yes"}
_FALSY = {"0", "false", "off", "no"}
_DEFAULT_PATH = Path("~/.causalab/config.yaml").expanduser()


def _coerce(name: str, raw: Any, kind: type, source: str) -> Any:
    """Convert a raw YAML/env value to the field's type.

    A malformed number is a user error: print it and exit instead of
    raising a traceback from deep inside a lab.
    """
    if kind is bool:
        if isinstance(raw, bool):
            return raw
        val = str(raw).lower()
        if val in _TRUTHY:
            return True
        if val in _FALSY:
            return False
        print(f"Error: {source}={raw!r} is not a valid boolean", file=sys.stderr)
        raise SystemExit(1)
    if kind in (int, float):
        try:
            return kind(raw)
        except (TypeError, ValueError) as err:
            print(f"Error: {source}={raw!r} is not a valid {kind.__name__}", file=sys.stderr)
            raise SystemExit(1) from err
    return str(raw)


@dataclass
class LabConfig:
    # Where bare dataset names are resolved ("sprinkler" -> data/sprinkler.csv)
    data_dir: str = "data"
    # Figures and rendered reports
    output_dir: str = "output"
    seed: int = 42
    n_samples: int = 2000
    # Significance level for CI tests and discovery
    alpha: float = 0.05
    save_figures: bool = True

    @classmethod
    def load(cls, path: Path | None = None) -> LabConfig:
        """Load config from YAML file, then override with env vars."""
        env_path = os.environ.get("CAUSALAB_CONFIG")
        file_path = path or (Path(env_path).expanduser() if env_path else _DEFAULT_PATH)
        file_values: dict[str, Any] = {}

        if file_path.exists():
            raw = yaml.safe_load(file_path.read_text()) or {}
            if isinstance(raw, dict):
                file_values = raw

        types = {"data_dir": str, "output_dir": str, "seed": int,
                 "n_samples": int, "alpha": float, "save_figures": bool}

        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            name = f.name
            env_key = f"CAUSALAB_{name.upper()}"
            if env_key in os.environ:
                kwargs[name] = _coerce(name, os.environ[env_key], types[name], env_key)
            elif name in file_values:
                kwargs[name] = _coerce(name, file_values[name], types[name], f"{file_path}:{name}")
            # else: use dataclass default

        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir).expanduser()


# Singleton
_config: LabConfig | None = None


def get_config(path: Path | None = None) -> LabConfig:
    """Get the singleton LabConfig instance."""
    global _config
    if _config is None:
        _config = LabConfig.load(path)
    return _config


def reset_config() -> None:
    """Reset for testing."""
    global _config
    _config = None
