"""ERI: Early Retention Indicators.

ERI evaluates HIV treatment-retention cohorts for a reporting period and
facility by composing boolean set operations over SQL-backed sub-queries.

Quick Start:
    from datetime import date
    from eri import evaluate_indicator, list_indicators

    print(list_indicators())
    patients = evaluate_indicator("children", date(2019, 1, 21), date(2019, 2, 20), 103)

For command-line usage, run: eri --help
"""

__version__ = "0.1.0"

# Expose API functions at package level for easy imports
from eri.api import (
    # Exceptions
    ERIError,
    ExternalQueryError,
    IndicatorError,
    ParameterError,
    # Evaluation
    evaluate_indicator,
    evaluate_report,
    # Indicators
    get_definition,
    list_indicators,
)

__all__ = [
    "ERIError",
    "ExternalQueryError",
    "IndicatorError",
    "ParameterError",
    "__version__",
    "evaluate_indicator",
    "evaluate_report",
    "get_definition",
    "list_indicators",
]
