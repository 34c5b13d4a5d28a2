"""Exception hierarchy for causalab.

Each error also subclasses the builtin it specialises, so callers that
catch ``ValueError`` / ``KeyError`` keep working.
"""

from __future__ import annotations

from collections.abc import Iterable


class CausalabError(Exception):
    """Base class for errors raised by causalab itself."""


class ColumnMismatchError(CausalabError, ValueError):
    """A model references variables that are not columns of the dataset."""

    def __init__(self, missing: Iterable[str], available: Iterable[str] = ()) -> None:
        self.missing = sorted(missing)
        self.available = sorted(available)
        msg = f"Missing columns: {', '.join(self.missing)}"
        if self.available:
            msg += f" (available: {', '.join(self.available)})"
        super().__init__(msg)


class CyclicGraphError(CausalabError, ValueError):
    """An edge list that was required to be acyclic contains a cycle."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__(f"Graph is not acyclic: {' -> '.join(cycle)}")


class DagSyntaxError(CausalabError, ValueError):
    """A textual DAG description could not be parsed."""


class UnknownNameError(CausalabError, KeyError):
    """A registry lookup (lab, algorithm, learner, dataset) failed."""

    def __init__(self, kind: str, name: str, available: Iterable[str]) -> None:
        self.kind = kind
        self.name = name
        self.available = sorted(available)
        super().__init__(f"Unknown {kind}: {name!r}. Available: {self.available}")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0])


class DataError(CausalabError, ValueError):
    """The dataset cannot support the requested analysis (too few rows, wrong types)."""


class QueryError(CausalabError, ValueError):
    """A causal query is malformed or not identifiable from the DAG."""
