"""ERI Core Backends - Query executor implementations.

This package provides the executor abstraction layer for ERI:
- QueryExecutor protocol: Interface for all executors
- DuckDBExecutor: Local DuckDB database queries
- InMemoryExecutor: Precomputed results for tests and dry runs
- get_executor(): Factory function for executor selection
"""

import threading
from pathlib import Path

from eri.config import get_active_backend
from eri.core.backends.base import (
    ExternalQueryError,
    InMemoryExecutor,
    QueryExecutor,
    to_query_parameters,
)
from eri.core.backends.duckdb import DuckDBExecutor
from eri.core.exceptions import BackendError

# Cache for executor instances with thread safety
_executor_lock = threading.Lock()
_executor_cache: dict[tuple[str, str | None], QueryExecutor] = {}


def get_executor(
    backend_type: str | None = None, db_path: Path | str | None = None
) -> QueryExecutor:
    """Get an executor instance based on type.

    Args:
        backend_type: Type of executor ('duckdb').
                     If None, uses ERI_BACKEND environment variable,
                     then config file, defaulting to 'duckdb'.
        db_path: Database path override; uses the configured path if None.

    Returns:
        QueryExecutor instance

    Raises:
        BackendError: If an unsupported backend type is requested
    """
    if backend_type is None:
        backend_type = get_active_backend()

    backend_type = backend_type.lower()
    key = (backend_type, str(db_path) if db_path is not None else None)

    with _executor_lock:
        if key in _executor_cache:
            return _executor_cache[key]

        if backend_type == "duckdb":
            executor = DuckDBExecutor(db_path)
        else:
            raise BackendError(
                f"Unsupported backend: {backend_type}. Supported backends: duckdb"
            )

        _executor_cache[key] = executor
        return executor


def reset_executor_cache() -> None:
    """Clear the executor cache."""
    with _executor_lock:
        _executor_cache.clear()


__all__ = [
    "BackendError",
    "DuckDBExecutor",
    "ExternalQueryError",
    "InMemoryExecutor",
    "QueryExecutor",
    "get_executor",
    "reset_executor_cache",
    "to_query_parameters",
]
