"""Dataset loading and the one invariant causalab enforces itself.

Column names must match the variable names a model references (formula
string, DAG nodes, SEM description); everything else is left to the
libraries that consume the frame.
"""

from __future__ import annotations

import keyword
import logging
import re
from collections.abc import Iterable, Mapping
from pathlib import Path

import pandas as pd

from causalab.config import get_config
from causalab.errors import ColumnMismatchError

logger = logging.getLogger(__name__)

_QUOTED_RE = re.compile(r"""Q\(\s*["']([^"']+)["']\s*\)""")
_NAME_RE = re.compile(r"(?<![\w.])([A-Za-z_][A-Za-z0-9_.]*)(?![\w.]|\s*\()")
# Names that can appear in a patsy formula without being columns
_FORMULA_RESERVED = {"C", "I", "Q", "np", "center", "standardize", "scale", "poly"}


def resolve_path(name_or_path: str | Path, data_dir: str | Path | None = None) -> Path:
    """Resolve a bare dataset name against the data directory.

    ``"sprinkler"`` -> ``<data_dir>/sprinkler.csv``. Existing paths and
    names that contain a directory separator are used as given.
    """
    path = Path(name_or_path).expanduser()
    if path.exists() or path.parent != Path("."):
        return path
    base = Path(data_dir).expanduser() if data_dir is not None else get_config().data_path
    if not path.suffix:
        path = path.with_suffix(".csv")
    return base / path


def load_csv(name_or_path: str | Path, data_dir: str | Path | None = None, **read_kwargs) -> pd.DataFrame:
    """Read a CSV from the data directory (or an explicit path)."""
    path = resolve_path(name_or_path, data_dir)
    if not path.exists():
        raise FileNotFoundError(f"Dataset not found: {path}")
    frame = pd.read_csv(path, **read_kwargs)
    frame.columns = frame.columns.str.strip()
    logger.info("Loaded %s (%d rows, %d columns)", path, len(frame), frame.shape[1])
    return frame


def save_csv(frame: pd.DataFrame, path: str | Path) -> Path:
    out = Path(path).expanduser()
    out.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(out, index=False)
    logger.info("Wrote %s (%d rows)", out, len(frame))
    return out


def require_columns(frame: pd.DataFrame, names: Iterable[str]) -> None:
    """Raise ColumnMismatchError listing every name that is not a column."""
    missing = set(names) - set(frame.columns)
    if missing:
        raise ColumnMismatchError(missing, available=[str(c) for c in frame.columns])


def formula_variables(formula: str) -> frozenset[str]:
    """Variable names referenced by a statsmodels/patsy formula.

    Function names (``np.log(x)``), the ``C``/``I``/``Q`` helpers and
    numeric literals are not variables; ``Q("odd name")`` is.
    """
    names = set(_QUOTED_RE.findall(formula))
    stripped = _QUOTED_RE.sub(" ", formula)
    for name in _NAME_RE.findall(stripped):
        if name in _FORMULA_RESERVED or keyword.iskeyword(name):
            continue
        names.add(name)
    return frozenset(names)


def check_formula(frame: pd.DataFrame, formula: str) -> frozenset[str]:
    """Validate a formula against the frame; returns the referenced names."""
    names = formula_variables(formula)
    require_columns(frame, names)
    return names


def prepare(
    frame: pd.DataFrame,
    rename: Mapping[str, str] | None = None,
    drop: Iterable[str] | None = None,
) -> pd.DataFrame:
    """Rename and drop columns; the only reshaping the labs do by hand."""
    out = frame.copy()
    if rename:
        require_columns(out, rename.keys())
        out = out.rename(columns=dict(rename))
    if drop:
        drop = list(drop)
        require_columns(out, drop)
        out = out.drop(columns=drop)
    return out


def is_discrete(frame: pd.DataFrame, max_levels: int = 10) -> bool:
    """True if every column is categorical-like (non-float or few integer levels)."""
    for col in frame.columns:
        s = frame[col]
        if pd.api.types.is_float_dtype(s):
            return False
        if pd.api.types.is_integer_dtype(s) and s.nunique() > max_levels:
            return False
    return True
