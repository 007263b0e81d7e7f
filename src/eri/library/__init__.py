"""ERI report library.

This package provides:
- HivMetadata: Codes rendered into query bodies
- QueryCatalog: Shipped and overridden SQL query bodies
- Eri3MonthsCohortQueries: Cohort definitions for the 3-month indicator
- IndicatorRegistry: Report indicators by name
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import ClassVar

from eri.core.definitions import CohortDefinition
from eri.core.exceptions import IndicatorError
from eri.library.eri3months import Eri3MonthsCohortQueries
from eri.library.metadata import HivMetadata
from eri.library.queries import QueryCatalog


@dataclass(frozen=True)
class Indicator:
    """A named report indicator.

    Attributes:
        name: Unique identifier used by the CLI and API
        description: Human-readable description
        build: Builds the indicator's cohort definition
    """

    name: str
    description: str
    build: Callable[[Eri3MonthsCohortQueries], CohortDefinition]


class IndicatorRegistry:
    """Registry of report indicators."""

    _registry: ClassVar[dict[str, Indicator]] = {}

    @classmethod
    def register(cls, indicator: Indicator):
        cls._registry[indicator.name.lower()] = indicator

    @classmethod
    def get(cls, name: str) -> Indicator:
        """Get an indicator by name (case-insensitive).

        Raises:
            IndicatorError: If the indicator is not registered
        """
        indicator = cls._registry.get(name.lower())
        if indicator is None:
            available = ", ".join(i.name for i in cls.list_all())
            raise IndicatorError(
                f"Unknown indicator '{name}'. Available indicators: {available}",
                indicator=name,
            )
        return indicator

    @classmethod
    def list_all(cls) -> list[Indicator]:
        return list(cls._registry.values())

    @classmethod
    def reset(cls):
        """Clear registry and re-register built-in indicators."""
        cls._registry.clear()
        cls._register_builtins()

    @classmethod
    def _register_builtins(cls):
        for indicator in (
            Indicator(
                "all",
                "All patients retained on ART 3 months after initiation",
                Eri3MonthsCohortQueries.retained_on_art,
            ),
            Indicator(
                "pregnant",
                "Pregnant women retained on ART 3 months after initiation",
                Eri3MonthsCohortQueries.pregnant_retained_on_art,
            ),
            Indicator(
                "breastfeeding",
                "Breastfeeding women retained on ART 3 months after initiation",
                Eri3MonthsCohortQueries.breastfeeding_retained_on_art,
            ),
            Indicator(
                "children",
                "Children (0-14) retained, excluding pregnant and breastfeeding",
                Eri3MonthsCohortQueries.children_retained_on_art,
            ),
            Indicator(
                "adults",
                "Adults (15+) retained, excluding pregnant and breastfeeding",
                Eri3MonthsCohortQueries.adults_retained_on_art,
            ),
        ):
            cls.register(indicator)


# Initialize registry
IndicatorRegistry._register_builtins()

__all__ = [
    "Eri3MonthsCohortQueries",
    "HivMetadata",
    "Indicator",
    "IndicatorRegistry",
    "QueryCatalog",
]
