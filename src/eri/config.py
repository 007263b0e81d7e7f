"""Configuration for ERI.

Settings are resolved in this order:
1. Environment variables (ERI_BACKEND, ERI_DB_PATH, ERI_MAX_WORKERS, ERI_QUERY_DIR)
2. Runtime config file (<project>/eri_data/config.json)
3. Built-in defaults

The project root is found by walking up from the current directory looking
for an `eri_data/` directory that contains `databases/`; if none is found the
current directory is used.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

APP_NAME = "eri"

# Package logger; the CLI adjusts its level with --verbose
logger = logging.getLogger(APP_NAME)
if not logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    logger.addHandler(_handler)
    logger.setLevel(logging.WARNING)

VALID_BACKENDS = ("duckdb",)
DEFAULT_BACKEND = "duckdb"
DEFAULT_MAX_WORKERS = 4
DEFAULT_DATABASE_FILENAME = "eri.duckdb"


def _find_project_root_from_cwd() -> Path:
    """Return the nearest ancestor holding a valid eri_data/ directory."""
    cwd = Path.cwd()
    for candidate in (cwd, *cwd.parents):
        data_dir = candidate / "eri_data"
        if data_dir.is_dir() and (data_dir / "databases").is_dir():
            return candidate
    return cwd


_PROJECT_ROOT = _find_project_root_from_cwd()
_PROJECT_DATA_DIR = _PROJECT_ROOT / "eri_data"
_DEFAULT_DATABASES_DIR = _PROJECT_DATA_DIR / "databases"
_RUNTIME_CONFIG_PATH = _PROJECT_DATA_DIR / "config.json"


# ----------------------------------------------------------------
# Runtime config file
# ----------------------------------------------------------------


def load_runtime_config() -> dict[str, Any]:
    """Load the runtime config file, returning {} if absent or unreadable."""
    if not _RUNTIME_CONFIG_PATH.exists():
        return {}
    try:
        data = json.loads(_RUNTIME_CONFIG_PATH.read_text())
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read config file {_RUNTIME_CONFIG_PATH}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {_RUNTIME_CONFIG_PATH}: not an object")
        return {}
    return data


def save_runtime_config(cfg: dict[str, Any]) -> None:
    """Write the runtime config file, creating its directory if needed."""
    _RUNTIME_CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    _RUNTIME_CONFIG_PATH.write_text(json.dumps(cfg, indent=2, sort_keys=True))


def _update_runtime_config(key: str, value: Any) -> None:
    cfg = load_runtime_config()
    cfg[key] = value
    save_runtime_config(cfg)


# ----------------------------------------------------------------
# Backend
# ----------------------------------------------------------------


def get_active_backend() -> str:
    """Get the active backend name (env var, then config file, then default)."""
    env_backend = os.getenv("ERI_BACKEND")
    if env_backend:
        return env_backend.lower()
    return str(load_runtime_config().get("backend", DEFAULT_BACKEND)).lower()


def set_active_backend(choice: str) -> None:
    choice = choice.lower()
    if choice not in VALID_BACKENDS:
        raise ValueError(f"backend must be one of {VALID_BACKENDS}")
    _update_runtime_config("backend", choice)


# ----------------------------------------------------------------
# Database path
# ----------------------------------------------------------------


def get_default_database_path() -> Path:
    _DEFAULT_DATABASES_DIR.mkdir(parents=True, exist_ok=True)
    return _DEFAULT_DATABASES_DIR / DEFAULT_DATABASE_FILENAME


def get_database_path() -> Path:
    """Get the DuckDB database path (env var, then config file, then default)."""
    env_path = os.getenv("ERI_DB_PATH")
    if env_path:
        return Path(env_path).expanduser().resolve()
    cfg_path = load_runtime_config().get("db_path")
    if cfg_path:
        return Path(cfg_path).expanduser().resolve()
    return get_default_database_path()


def set_database_path(path: Path | str) -> None:
    _update_runtime_config("db_path", str(Path(path).expanduser().resolve()))


# ----------------------------------------------------------------
# Evaluation settings
# ----------------------------------------------------------------


def _parse_max_workers(value: Any, source: str) -> int:
    try:
        workers = int(value)
    except (TypeError, ValueError):
        raise ValueError(
            f"{source}: max_workers must be an integer, got {value!r}"
        ) from None
    if workers < 1:
        raise ValueError(f"{source}: max_workers must be at least 1, got {workers}")
    return workers


def get_max_workers() -> int:
    """Get the sub-query worker pool size."""
    env_workers = os.getenv("ERI_MAX_WORKERS")
    if env_workers:
        return _parse_max_workers(env_workers, "ERI_MAX_WORKERS")
    cfg_workers = load_runtime_config().get("max_workers")
    if cfg_workers is not None:
        return _parse_max_workers(cfg_workers, str(_RUNTIME_CONFIG_PATH))
    return DEFAULT_MAX_WORKERS


def set_max_workers(workers: int) -> None:
    _update_runtime_config("max_workers", _parse_max_workers(workers, "max_workers"))


def get_query_dir() -> Path | None:
    """Get the directory overriding shipped SQL query bodies, if any."""
    env_dir = os.getenv("ERI_QUERY_DIR")
    if env_dir:
        return Path(env_dir).expanduser()
    cfg_dir = load_runtime_config().get("query_dir")
    return Path(cfg_dir).expanduser() if cfg_dir else None


def get_known_locations() -> frozenset[int] | None:
    """Get the configured facility ids, or None if any location is accepted."""
    locations = load_runtime_config().get("known_locations")
    if locations is None:
        return None
    return frozenset(int(loc) for loc in locations)


def get_metadata_overrides() -> dict[str, int]:
    """Get metadata code overrides from the config file."""
    overrides = load_runtime_config().get("metadata", {})
    if not isinstance(overrides, dict):
        logger.warning("Ignoring 'metadata' in config file: not an object")
        return {}
    return {str(k): int(v) for k, v in overrides.items()}
