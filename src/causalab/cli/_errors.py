"""CLI error handling and decorators."""

from __future__ import annotations

import functools
from typing import Any, Callable

import typer

from causalab.errors import CausalabError


def handle_error(msg: str) -> None:
    """Print an error message and exit."""
    typer.echo(f"Error: {msg}", err=True)
    raise typer.Exit(1)


def reports_errors(f: Callable) -> Callable:
    """Decorator that turns user-facing failures into ``Error: ...`` and exit 1.

    Covers causalab's own errors, missing files and missing optional
    libraries; anything else is a bug and keeps its traceback.
    """

    @functools.wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return f(*args, **kwargs)
        except (CausalabError, FileNotFoundError) as e:
            handle_error(str(e))
        except ImportError as e:
            handle_error(f"{e}. Install the missing library, e.g. pip install 'causalab[all]'")

    return wrapper
