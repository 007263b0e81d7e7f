"""ERI Python API for evaluating report indicators.

Functions build the report library from the current configuration, evaluate
indicators with a fresh CohortEvaluator per call and return native Python
types:
- evaluate_indicator() returns a frozenset of patient ids
- evaluate_report() returns a pd.DataFrame with one row per indicator

Example:
    from datetime import date
    from eri import evaluate_report

    df = evaluate_report(date(2019, 1, 21), date(2019, 2, 20), 103)
    print(df)
"""

from datetime import date

import pandas as pd

from eri.config import (
    get_known_locations,
    get_metadata_overrides,
    get_query_dir,
)
from eri.core.backends import QueryExecutor, get_executor
from eri.core.definitions import CohortDefinition
from eri.core.evaluator import CohortEvaluator
from eri.core.exceptions import (
    ERIError,
    ExternalQueryError,
    IndicatorError,
    ParameterError,
)
from eri.core.parameters import Location, ParameterBinding
from eri.library import (
    Eri3MonthsCohortQueries,
    HivMetadata,
    IndicatorRegistry,
    QueryCatalog,
)

__all__ = [
    "ERIError",
    "ExternalQueryError",
    "IndicatorError",
    "ParameterError",
    "evaluate_indicator",
    "evaluate_report",
    "get_definition",
    "list_indicators",
]


def _cohort_queries() -> Eri3MonthsCohortQueries:
    metadata = HivMetadata().with_overrides(**get_metadata_overrides())
    return Eri3MonthsCohortQueries(QueryCatalog(metadata, get_query_dir()))


def _binding(
    start_date: date, end_date: date, location: Location | int
) -> ParameterBinding:
    if not isinstance(location, Location):
        location = Location(location)
    return ParameterBinding.for_period(
        start_date, end_date, location, known_locations=get_known_locations()
    )


def list_indicators() -> list[str]:
    """List all report indicator names.

    Example:
        >>> list_indicators()
        ['all', 'pregnant', 'breastfeeding', 'children', 'adults']
    """
    return [indicator.name for indicator in IndicatorRegistry.list_all()]


def get_definition(name: str) -> CohortDefinition:
    """Build the cohort definition for an indicator.

    Raises:
        IndicatorError: If the indicator doesn't exist.
    """
    indicator = IndicatorRegistry.get(name)
    return indicator.build(_cohort_queries())


def evaluate_indicator(
    name: str,
    start_date: date,
    end_date: date,
    location: Location | int,
    executor: QueryExecutor | None = None,
) -> frozenset[int]:
    """Evaluate one indicator for a reporting period and facility.

    Args:
        name: Indicator name (see list_indicators())
        start_date: First day of the cohort period
        end_date: Last day of the cohort period
        location: Facility as a Location or a location id
        executor: Query executor; uses the configured backend if None

    Returns:
        Patient ids in the indicator's cohort.

    Raises:
        IndicatorError: If the indicator doesn't exist.
        ParameterError: If the parameters are invalid.
        ExternalQueryError: If a query fails.
    """
    definition = get_definition(name)
    evaluator = CohortEvaluator(
        executor or get_executor(), known_locations=get_known_locations()
    )
    return evaluator.evaluate(definition, _binding(start_date, end_date, location))


def evaluate_report(
    start_date: date,
    end_date: date,
    location: Location | int,
    executor: QueryExecutor | None = None,
) -> pd.DataFrame:
    """Evaluate every indicator and tabulate the patient counts.

    Returns:
        pd.DataFrame with columns indicator, description, patient_count.
    """
    queries = _cohort_queries()
    binding = _binding(start_date, end_date, location)
    evaluator = CohortEvaluator(
        executor or get_executor(), known_locations=get_known_locations()
    )

    rows = []
    for indicator in IndicatorRegistry.list_all():
        patients = evaluator.evaluate(indicator.build(queries), binding)
        rows.append(
            {
                "indicator": indicator.name,
                "description": indicator.description,
                "patient_count": len(patients),
            }
        )
    return pd.DataFrame(rows, columns=["indicator", "description", "patient_count"])
