"""DuckDB query executor.

Runs SQL cohort definitions against a local DuckDB database. Query bodies use
DuckDB named parameters ($startDate, $endDate, $location, ...); the first
column of every result row is taken as the patient id.
"""

import logging
import re
import threading
from pathlib import Path

import duckdb

from eri.core.backends.base import to_query_parameters
from eri.core.definitions import SqlCohortDefinition
from eri.core.exceptions import EvaluationCancelledError, ExternalQueryError
from eri.core.parameters import ParameterBinding

logger = logging.getLogger(__name__)

_NAMED_PARAMETER = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)")


class DuckDBExecutor:
    """Executor for a local DuckDB database file.

    Each call opens its own read-only connection, so the executor can be
    shared by evaluator worker threads. Running queries are tracked by the
    cancel event they were started with so interrupt() stops only those.
    """

    name = "duckdb"

    def __init__(self, db_path: Path | str | None = None):
        self._db_path = Path(db_path) if db_path is not None else None
        self._running_lock = threading.Lock()
        # id(connection) -> (connection, cancel event) for queries in flight
        self._running: dict[
            int, tuple[duckdb.DuckDBPyConnection, threading.Event | None]
        ] = {}

    @property
    def db_path(self) -> Path:
        if self._db_path is None:
            # Import here to avoid circular dependency
            from eri.config import get_database_path

            self._db_path = get_database_path()
        return self._db_path

    def _connect(self) -> duckdb.DuckDBPyConnection:
        path = self.db_path
        if not path.exists():
            raise ExternalQueryError(
                f"DuckDB database not found: {path}", recoverable=False
            )
        return duckdb.connect(str(path), read_only=True)

    def interrupt(self, cancel_event: threading.Event) -> None:
        """Interrupt running queries that were started with cancel_event."""
        with self._running_lock:
            for con, event in self._running.values():
                if event is cancel_event:
                    con.interrupt()

    def execute(
        self,
        definition: SqlCohortDefinition,
        binding: ParameterBinding,
        cancel_event: threading.Event | None = None,
    ) -> set[int]:
        used = set(_NAMED_PARAMETER.findall(definition.query))
        params = {
            k: v for k, v in to_query_parameters(binding).items() if k in used
        }
        logger.debug(f"Running '{definition.name}' with {sorted(params)}")

        try:
            con = self._connect()
        except duckdb.Error as e:
            raise ExternalQueryError(
                f"Cannot open DuckDB database {self.db_path}: {e}",
                definition_name=definition.name,
                recoverable=True,
            ) from e

        with self._running_lock:
            self._running[id(con)] = (con, cancel_event)
        try:
            if cancel_event is not None and cancel_event.is_set():
                raise EvaluationCancelledError(
                    f"Query for '{definition.name}' cancelled"
                )
            if params:
                rows = con.execute(definition.query, params).fetchall()
            else:
                rows = con.execute(definition.query).fetchall()
        except duckdb.Error as e:
            if cancel_event is not None and cancel_event.is_set():
                raise EvaluationCancelledError(
                    f"Query for '{definition.name}' interrupted"
                ) from e
            raise ExternalQueryError(
                f"Query for '{definition.name}' failed: {e}",
                definition_name=definition.name,
            ) from e
        finally:
            with self._running_lock:
                del self._running[id(con)]
            con.close()

        return {int(row[0]) for row in rows if row[0] is not None}
