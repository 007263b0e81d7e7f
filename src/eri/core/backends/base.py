"""Query executor protocol and shared types.

The evaluator never talks to a database itself. It forwards each SQL cohort
definition, together with a validated binding, to an executor implementing
the QueryExecutor protocol and expects a set of patient ids back.
"""

import threading
from collections.abc import Callable, Mapping
from typing import Any, Protocol, runtime_checkable

from eri.core.definitions import SqlCohortDefinition
from eri.core.exceptions import EvaluationCancelledError, ExternalQueryError
from eri.core.parameters import Location, ParameterBinding

__all__ = [
    "ExternalQueryError",
    "InMemoryExecutor",
    "QueryExecutor",
    "to_query_parameters",
]


@runtime_checkable
class QueryExecutor(Protocol):
    """Interface for anything that can run a SQL cohort definition.

    Executors able to stop a running query may also define
    `interrupt(cancel_event)`. The evaluator sets the event it passed to
    execute() and then calls interrupt() with it; only queries started with
    that event should be stopped.

    Attributes:
        name: Short executor name used in logs and error messages
    """

    name: str

    def execute(
        self,
        definition: SqlCohortDefinition,
        binding: ParameterBinding,
        cancel_event: threading.Event | None = None,
    ) -> set[int]:
        """Run the definition's query and return the matching patient ids."""
        ...


def to_query_parameters(binding: ParameterBinding) -> dict[str, Any]:
    """Convert binding values to plain values a database driver accepts.

    Locations become their integer ids; dates and integers pass through.
    """
    params: dict[str, Any] = {}
    for name, value in binding.items():
        if isinstance(value, Location):
            params[name] = value.location_id
        else:
            params[name] = value
    return params


class InMemoryExecutor:
    """Executor backed by precomputed results, keyed by definition name.

    Values may be fixed id collections or callables taking the query
    parameters dict. Useful for tests and dry runs without a database.
    """

    name = "memory"

    def __init__(
        self, results: Mapping[str, Any | Callable[[dict[str, Any]], Any]]
    ):
        self._results = dict(results)

    def execute(
        self,
        definition: SqlCohortDefinition,
        binding: ParameterBinding,
        cancel_event: threading.Event | None = None,
    ) -> set[int]:
        if cancel_event is not None and cancel_event.is_set():
            raise EvaluationCancelledError(f"Query for '{definition.name}' cancelled")
        if definition.name not in self._results:
            raise ExternalQueryError(
                f"No result registered for '{definition.name}'",
                definition_name=definition.name,
            )
        result = self._results[definition.name]
        if callable(result):
            result = result(to_query_parameters(binding))
        return set(result)
