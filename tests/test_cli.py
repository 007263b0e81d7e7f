import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from eri.cli import app
from eri.core.backends import InMemoryExecutor

runner = CliRunner()

PERIOD_ARGS = ["--start-date", "2019-01-21", "--end-date", "2019-02-20", "--location", "103"]


@pytest.fixture(autouse=True)
def inject_version(monkeypatch):
    # Patch __version__ where print_logo imports it
    monkeypatch.setattr("eri.__version__", "0.0.1")


@pytest.fixture
def memory_executor():
    executor = InMemoryExecutor(
        {
            "patientsRetentionFor3MonthsOnART": {1, 2, 3, 4, 5},
            "pregnantEnrolledOnART": {2, 4},
            "breastfeeding": {4, 5},
            "patientsBetweenAgeBrackets": lambda p: {1, 2}
            if p["maxAge"] <= 14
            else {3, 4, 5},
        }
    )
    with patch("eri.cli.get_executor", return_value=executor):
        yield executor


def test_help_shows_app_name():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "ERI CLI" in result.stdout


def test_version_option_exits_zero_and_shows_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "v0.0.1" in result.stdout


def test_unknown_command_reports_error():
    result = runner.invoke(app, ["not-a-cmd"])
    assert result.exit_code != 0
    error_message = "No such command 'not-a-cmd'"
    assert (
        error_message in result.stdout
        or (hasattr(result, "stderr") and error_message in result.stderr)
        or error_message in result.output
    )


def test_indicators_lists_all():
    result = runner.invoke(app, ["indicators"])
    assert result.exit_code == 0
    for name in ("all", "pregnant", "breastfeeding", "children", "adults"):
        assert name in result.stdout


def test_show_prints_composition():
    result = runner.invoke(app, ["show", "children"])
    assert result.exit_code == 0
    assert "NOT(pregnant OR breastfeeding)" in result.stdout
    assert "patientsRetentionFor3MonthsOnART" in result.stdout


def test_show_unknown_indicator():
    result = runner.invoke(app, ["show", "elderly"])
    assert result.exit_code == 1
    assert "Indicator Not Found" in result.stdout


def test_evaluate_prints_count(memory_executor):
    result = runner.invoke(app, ["evaluate", "adults", *PERIOD_ARGS])
    assert result.exit_code == 0
    assert "adults: 1 patients" in result.stdout


def test_evaluate_prints_ids(memory_executor):
    result = runner.invoke(app, ["evaluate", "all", *PERIOD_ARGS, "--ids"])
    assert result.exit_code == 0
    for patient_id in range(1, 6):
        assert str(patient_id) in result.stdout


def test_evaluate_reports_errors():
    executor = InMemoryExecutor({})
    with patch("eri.cli.get_executor", return_value=executor):
        result = runner.invoke(app, ["evaluate", "all", *PERIOD_ARGS])
    assert result.exit_code == 1
    assert "ExternalQueryError" in result.stdout


def test_evaluate_rejects_reversed_period(memory_executor):
    result = runner.invoke(
        app,
        ["evaluate", "all", "-s", "2019-02-20", "-e", "2019-01-21", "-l", "103"],
    )
    assert result.exit_code == 1
    assert "Invalid Period" in result.stdout


def test_evaluate_rejects_bad_date():
    result = runner.invoke(
        app, ["evaluate", "all", "-s", "21/01/2019", "-e", "2019-02-20", "-l", "103"]
    )
    assert result.exit_code != 0


def test_report_prints_table(memory_executor):
    result = runner.invoke(app, ["report", *PERIOD_ARGS])
    assert result.exit_code == 0
    assert "children" in result.stdout
    assert "Patients" in result.stdout


def test_evaluate_passes_db_path(tmp_path, memory_executor):
    with patch("eri.cli.get_executor", return_value=memory_executor) as mock_get:
        result = runner.invoke(
            app,
            ["evaluate", "all", *PERIOD_ARGS, "--db-path", str(tmp_path / "x.duckdb")],
        )
    assert result.exit_code == 0
    mock_get.assert_called_once_with(db_path=(tmp_path / "x.duckdb").resolve())


def test_config_shows_settings():
    result = runner.invoke(app, ["config"])
    assert result.exit_code == 0
    assert "Max workers" in result.stdout
    assert "duckdb" in result.stdout


def test_config_shows_any_location_when_unset():
    result = runner.invoke(app, ["config"])
    assert "Known locations: any" in result.stdout


def test_config_shows_no_location_for_empty_list(isolated_config):
    isolated_config.write_text('{"known_locations": []}')
    result = runner.invoke(app, ["config"])
    assert result.exit_code == 0
    assert "Known locations: none" in result.stdout


def test_config_shows_known_locations(isolated_config):
    isolated_config.write_text('{"known_locations": [104, 103]}')
    result = runner.invoke(app, ["config"])
    assert "Known locations: 103, 104" in result.stdout


def test_config_updates(isolated_config, tmp_path):
    result = runner.invoke(
        app, ["config", "--db-path", str(tmp_path / "site.duckdb"), "--max-workers", "2"]
    )
    assert result.exit_code == 0

    saved = json.loads(isolated_config.read_text())
    assert saved["max_workers"] == 2
    assert saved["db_path"].endswith("site.duckdb")


def test_config_rejects_invalid_workers():
    result = runner.invoke(app, ["config", "--max-workers", "0"])
    assert result.exit_code == 1
