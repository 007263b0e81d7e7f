"""Cohort evaluation.

The CohortEvaluator turns a cohort definition plus a parameter binding into a
set of patient ids in three phases:

1. Plan: walk the definition tree, propagate bindings through each search's
   parameter mapping, validate every definition's parameters, and collect the
   distinct (SQL definition, binding) pairs. A query referenced from several
   branches is planned once.
2. Execute: run the collected queries on a bounded thread pool. The first
   failure or a cancellation request stops the evaluation; no partial result
   is ever returned.
3. Compose: evaluate compositions bottom up, each with its own fresh
   evaluation context.

Nothing is cached across evaluate() calls.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import Any

from eri.core.backends.base import QueryExecutor
from eri.core.definitions import (
    CohortDefinition,
    CohortKind,
    CompositionCohortDefinition,
    Mapped,
    SqlCohortDefinition,
)
from eri.core.exceptions import (
    ERIError,
    EvaluationCancelledError,
    ExternalQueryError,
    MissingParameterError,
    TypeMismatchError,
    UnknownLocationError,
)
from eri.core.parameters import Location, ParameterBinding

logger = logging.getLogger(__name__)

# Seconds between cancellation checks while waiting on sub-queries
_POLL_INTERVAL = 0.05

QueryKey = tuple[SqlCohortDefinition, ParameterBinding]


def child_binding(mapped: Mapped, binding: ParameterBinding) -> ParameterBinding:
    """Derive a child search's binding from its parent's binding."""
    resolved = binding.resolve(mapped.rename_map)
    if mapped.fixed:
        resolved = resolved.with_values(mapped.fixed)
    return resolved


class CohortEvaluator:
    """Evaluates cohort definitions against an injected query executor.

    Args:
        executor: Runs SQL cohort definitions
        max_workers: Upper bound on concurrently running sub-queries. If None,
            uses ERI_MAX_WORKERS or the config file, defaulting to 4.
        known_locations: If given, location parameters must be one of these ids

    Example:
        evaluator = CohortEvaluator(DuckDBExecutor("eri.duckdb"), max_workers=4)
        patients = evaluator.evaluate(children_cohort, binding)
    """

    def __init__(
        self,
        executor: QueryExecutor,
        max_workers: int | None = None,
        known_locations: frozenset[int] | set[int] | None = None,
    ):
        if max_workers is None:
            # Import here to avoid circular dependency
            from eri.config import get_max_workers

            max_workers = get_max_workers()
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")

        self.executor = executor
        self.max_workers = max_workers
        self.known_locations = (
            frozenset(known_locations) if known_locations is not None else None
        )

    def evaluate(
        self,
        definition: CohortDefinition,
        binding: ParameterBinding,
        cancel_event: threading.Event | None = None,
    ) -> frozenset[int]:
        """Evaluate a cohort definition.

        Args:
            definition: Root cohort definition
            binding: Parameters for the root definition
            cancel_event: Set it from another thread to cancel the evaluation

        Returns:
            Patient ids in the cohort

        Raises:
            ParameterError: On missing or mistyped parameters
            CompositionError: On invalid compositions
            ExternalQueryError: If any sub-query fails
            EvaluationCancelledError: If cancel_event was set before completion
        """
        started = time.monotonic()
        planned: dict[QueryKey, None] = {}
        self._plan(definition, binding, planned)
        logger.debug(f"Planned {len(planned)} distinct queries for '{definition.name}'")

        results = self._execute(list(planned), cancel_event)
        cohort = self._compose(definition, binding, results, {})

        logger.info(
            f"Evaluated '{definition.name}': {len(cohort)} patients from "
            f"{len(planned)} queries in {time.monotonic() - started:.2f}s"
        )
        return cohort

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def _validate(self, definition: CohortDefinition, binding: ParameterBinding) -> None:
        for parameter in definition.parameters:
            if parameter.name not in binding:
                raise MissingParameterError(parameter.name, definition.name)
            value = binding.get(parameter.name)
            if not parameter.type.accepts(value):
                raise TypeMismatchError(
                    parameter.name, parameter.type.value, type(value).__name__
                )
            if (
                isinstance(value, Location)
                and self.known_locations is not None
                and value.location_id not in self.known_locations
            ):
                raise UnknownLocationError(value.location_id, parameter.name)

    def _plan(
        self,
        definition: CohortDefinition,
        binding: ParameterBinding,
        planned: dict[QueryKey, None],
    ) -> None:
        self._validate(definition, binding)
        if definition.kind is CohortKind.SQL:
            planned.setdefault(
                (definition, binding.restrict(definition.parameter_names)), None
            )
            return
        for mapped in definition.searches.values():
            self._plan(mapped.definition, child_binding(mapped, binding), planned)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _run_query(
        self,
        key: QueryKey,
        cancel_event: threading.Event | None,
        abort: threading.Event | None,
    ) -> frozenset[int]:
        for event in (cancel_event, abort):
            if event is not None and event.is_set():
                raise EvaluationCancelledError("Evaluation cancelled")
        definition, binding = key
        logger.debug(f"Executing '{definition.name}' on {self.executor.name}")
        try:
            return frozenset(
                self.executor.execute(definition, binding, cancel_event=abort)
            )
        except ERIError:
            raise
        except Exception as e:
            raise ExternalQueryError(
                f"Query for '{definition.name}' failed: {e}",
                definition_name=definition.name,
            ) from e

    def _execute(
        self, keys: list[QueryKey], cancel_event: threading.Event | None
    ) -> dict[QueryKey, frozenset[int]]:
        if self.max_workers == 1 or len(keys) <= 1:
            return {
                key: self._run_query(key, cancel_event, cancel_event) for key in keys
            }

        # Set once the evaluation is abandoned; queries still running see it
        abort = threading.Event()
        pending: set[Future] = set()
        pool = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(keys)),
            thread_name_prefix="eri-query",
        )
        try:
            futures: dict[Future, QueryKey] = {
                pool.submit(self._run_query, key, cancel_event, abort): key
                for key in keys
            }
            pending = set(futures)
            while pending:
                done, pending = wait(
                    pending, timeout=_POLL_INTERVAL, return_when=FIRST_EXCEPTION
                )
                for future in done:
                    exc = future.exception()
                    if exc is not None:
                        raise exc
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Evaluation cancelled; dropping pending queries")
                    raise EvaluationCancelledError("Evaluation cancelled")
            return {key: future.result() for future, key in futures.items()}
        finally:
            abort.set()
            if pending:
                self._interrupt(abort, len(pending))
            pool.shutdown(wait=False, cancel_futures=True)

    def _interrupt(self, abort: threading.Event, running: int) -> None:
        interrupt = getattr(self.executor, "interrupt", None)
        if interrupt is None:
            return
        logger.debug(
            f"Interrupting {running} unfinished queries on {self.executor.name}"
        )
        interrupt(abort)

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    def _compose(
        self,
        definition: CohortDefinition,
        binding: ParameterBinding,
        results: dict[QueryKey, frozenset[int]],
        memo: dict[tuple[int, ParameterBinding], frozenset[int]],
    ) -> frozenset[int]:
        if definition.kind is CohortKind.SQL:
            return results[(definition, binding.restrict(definition.parameter_names))]

        memo_key = (id(definition), binding)
        if memo_key in memo:
            return memo[memo_key]

        context = {
            name: self._compose(
                mapped.definition, child_binding(mapped, binding), results, memo
            )
            for name, mapped in definition.searches.items()
        }
        memo[memo_key] = _evaluate_composition(definition, context)
        return memo[memo_key]


def _evaluate_composition(
    definition: CompositionCohortDefinition, context: dict[str, frozenset[int]]
) -> frozenset[int]:
    universe = context[definition.universe] if definition.universe else None
    return definition.expression.evaluate(context, universe)


def evaluate_cohort(
    definition: CohortDefinition,
    binding: ParameterBinding,
    executor: QueryExecutor,
    **kwargs: Any,
) -> frozenset[int]:
    """Evaluate a definition with a one-off CohortEvaluator."""
    return CohortEvaluator(executor, **kwargs).evaluate(definition, binding)
