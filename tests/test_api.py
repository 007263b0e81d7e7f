"""Tests for ERI Python API.

Tests cover the public API functions exposed at the package level. The query
executor is replaced by an in-memory executor keyed by definition name.
"""

import json
from datetime import date

import pandas as pd
import pytest

from eri.api import (
    ERIError,
    IndicatorError,
    ParameterError,
    evaluate_indicator,
    evaluate_report,
    get_definition,
    list_indicators,
)
from eri.core.backends import InMemoryExecutor
from eri.core.definitions import CohortKind
from eri.core.exceptions import UnknownLocationError
from eri.core.parameters import Location

START = date(2019, 1, 21)
END = date(2019, 2, 20)


@pytest.fixture
def executor():
    return InMemoryExecutor(
        {
            "patientsRetentionFor3MonthsOnART": {1, 2, 3, 4, 5},
            "pregnantEnrolledOnART": {2, 4},
            "breastfeeding": {4, 5},
            "patientsBetweenAgeBrackets": lambda p: {1, 2}
            if p["maxAge"] <= 14
            else {3, 4, 5},
        }
    )


class TestIndicators:
    def test_list_indicators(self):
        assert list_indicators() == [
            "all",
            "pregnant",
            "breastfeeding",
            "children",
            "adults",
        ]

    def test_get_definition(self):
        cd = get_definition("children")
        assert cd.kind is CohortKind.COMPOSITION

    def test_get_definition_unknown(self):
        with pytest.raises(IndicatorError):
            get_definition("elderly")

    def test_metadata_overrides_from_config(self, isolated_config):
        isolated_config.write_text(json.dumps({"metadata": {"art_program": 42}}))
        cd = get_definition("all")
        assert "program_id = 42" in cd.query


class TestEvaluateIndicator:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("all", {1, 2, 3, 4, 5}),
            ("pregnant", {2, 4}),
            ("breastfeeding", {4, 5}),
            ("children", {1}),
            ("adults", {3}),
        ],
    )
    def test_indicators(self, executor, name, expected):
        assert evaluate_indicator(name, START, END, 103, executor) == expected

    def test_accepts_location(self, executor):
        result = evaluate_indicator("adults", START, END, Location(103, "CS"), executor)
        assert result == {3}

    def test_unknown_location_from_config(self, executor, isolated_config):
        isolated_config.write_text(json.dumps({"known_locations": [1, 2]}))
        with pytest.raises(UnknownLocationError):
            evaluate_indicator("all", START, END, 103, executor)

    def test_errors_share_base_class(self, executor):
        with pytest.raises(ERIError):
            evaluate_indicator("elderly", START, END, 103, executor)
        with pytest.raises(ParameterError):
            evaluate_indicator("all", "2019-01-21", END, 103, executor)


class TestEvaluateReport:
    def test_returns_dataframe(self, executor):
        report = evaluate_report(START, END, 103, executor)

        assert isinstance(report, pd.DataFrame)
        assert list(report.columns) == ["indicator", "description", "patient_count"]
        assert report.set_index("indicator")["patient_count"].to_dict() == {
            "all": 5,
            "pregnant": 2,
            "breastfeeding": 2,
            "children": 1,
            "adults": 1,
        }
