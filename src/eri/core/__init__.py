"""ERI Core - cohort set-algebra engine.

This package contains the core abstractions for ERI, including:
- Parameter declarations and immutable bindings
- Composition expressions and their string grammar
- Cohort definitions (SQL and composition variants)
- The cohort evaluator and query executor backends

The core knows nothing about any particular report; report definitions live
in eri.library.
"""

from eri.core.definitions import (
    CohortDefinition,
    CohortKind,
    CompositionCohortDefinition,
    Mapped,
    SqlCohortDefinition,
    map_search,
)
from eri.core.evaluator import CohortEvaluator, evaluate_cohort
from eri.core.expressions import And, Leaf, Not, Or, parse_composition
from eri.core.parameters import (
    Location,
    Parameter,
    ParameterBinding,
    ParameterType,
    parse_mappings,
)

__all__ = [
    "And",
    "CohortDefinition",
    "CohortEvaluator",
    "CohortKind",
    "CompositionCohortDefinition",
    "Leaf",
    "Location",
    "Mapped",
    "Not",
    "Or",
    "Parameter",
    "ParameterBinding",
    "ParameterType",
    "SqlCohortDefinition",
    "evaluate_cohort",
    "map_search",
    "parse_composition",
    "parse_mappings",
]
