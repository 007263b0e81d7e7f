import pytest

from eri.core.backends import reset_executor_cache


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Isolate config file access and ERI_* environment variables per test."""
    import eri.config as cfg_mod

    data_dir = tmp_path / "eri_data"
    data_dir.mkdir()

    monkeypatch.setattr(cfg_mod, "_PROJECT_DATA_DIR", data_dir)
    monkeypatch.setattr(cfg_mod, "_DEFAULT_DATABASES_DIR", data_dir / "databases")
    monkeypatch.setattr(cfg_mod, "_RUNTIME_CONFIG_PATH", data_dir / "config.json")
    for var in ("ERI_BACKEND", "ERI_DB_PATH", "ERI_MAX_WORKERS", "ERI_QUERY_DIR"):
        monkeypatch.delenv(var, raising=False)

    reset_executor_cache()
    yield data_dir / "config.json"
    reset_executor_cache()
