"""Cohort definitions.

A cohort definition is a tagged variant:
- SqlCohortDefinition (kind=SQL): a parameterized query body run by the
  injected query executor
- CompositionCohortDefinition (kind=COMPOSITION): named child searches combined
  by a composition expression

Definitions are frozen and fully specified at construction; the evaluator
dispatches on `kind` in a single recursive function.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Union

from eri.core.exceptions import UndefinedUniverseError, UnresolvedReferenceError
from eri.core.expressions import Expression, parse_composition
from eri.core.parameters import REPORT_PARAMETERS, Parameter, parse_mappings

# Search name used as the base population when none is declared
DEFAULT_UNIVERSE = "all"


class CohortKind(Enum):
    SQL = "sql"
    COMPOSITION = "composition"


@dataclass(frozen=True)
class SqlCohortDefinition:
    """A cohort produced by a single parameterized query.

    Attributes:
        name: Unique, human-readable name
        query: Query body with named placeholders ($startDate, $location, ...)
        parameters: Declared parameters the query requires
        description: Optional longer description
    """

    name: str
    query: str
    parameters: tuple[Parameter, ...] = REPORT_PARAMETERS
    description: str = ""
    kind: CohortKind = field(default=CohortKind.SQL, init=False)

    @property
    def parameter_names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.parameters)


@dataclass(frozen=True)
class Mapped:
    """A child definition with its parameter mapping from the parent.

    Attributes:
        definition: The child cohort definition
        rename_map: parent key -> child key
        fixed: child key -> literal value
    """

    definition: "CohortDefinition"
    rename_map: Mapping[str, str] = field(default_factory=dict)
    fixed: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "rename_map", MappingProxyType(dict(self.rename_map)))
        object.__setattr__(self, "fixed", MappingProxyType(dict(self.fixed)))


def map_search(definition: "CohortDefinition", mappings: str = "") -> Mapped:
    """Attach a parameter mapping string to a child definition.

    Example:
        map_search(breastfeeding, "onOrAfter=${startDate},onOrBefore=${endDate},"
                                  "location=${location}")
    """
    parsed = parse_mappings(mappings)
    return Mapped(definition, parsed.rename_map, parsed.fixed)


@dataclass(frozen=True)
class CompositionCohortDefinition:
    """A cohort combining named child searches with a boolean expression.

    Attributes:
        name: Unique, human-readable name
        searches: search name -> mapped child definition
        expression: Expression tree, or a composition string to parse
        parameters: Declared parameters the composition requires
        universe: Search used as the base population for NOT; defaults to
            'all' when such a search exists
        description: Optional longer description

    Raises:
        CompositionSyntaxError: If a composition string cannot be parsed
        UnresolvedReferenceError: If the expression or universe names an
            undefined search
        UndefinedUniverseError: If the expression uses NOT and no universe
            is declared or defaulted
    """

    name: str
    searches: Mapping[str, Mapped]
    expression: Expression | str
    parameters: tuple[Parameter, ...] = REPORT_PARAMETERS
    universe: str | None = None
    description: str = ""
    kind: CohortKind = field(default=CohortKind.COMPOSITION, init=False)

    def __post_init__(self):
        object.__setattr__(self, "searches", MappingProxyType(dict(self.searches)))
        if isinstance(self.expression, str):
            object.__setattr__(self, "expression", parse_composition(self.expression))

        for reference in sorted(self.expression.references()):
            if reference not in self.searches:
                raise UnresolvedReferenceError(reference, list(self.searches))

        if self.universe is None:
            if DEFAULT_UNIVERSE in self.searches:
                object.__setattr__(self, "universe", DEFAULT_UNIVERSE)
        elif self.universe not in self.searches:
            raise UnresolvedReferenceError(self.universe, list(self.searches))

        if self.universe is None and self.expression.uses_complement():
            raise UndefinedUniverseError(
                f"Composition '{self.name}' uses NOT but has no universe; declare "
                f"one or add a '{DEFAULT_UNIVERSE}' search"
            )

    @property
    def parameter_names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.parameters)

    @property
    def composition_string(self) -> str:
        return str(self.expression)


CohortDefinition = Union[SqlCohortDefinition, CompositionCohortDefinition]


def walk(
    definition: CohortDefinition, depth: int = 0, search_name: str | None = None
) -> Iterator[tuple[int, str | None, CohortDefinition]]:
    """Yield (depth, search name, definition) for a definition and its children."""
    yield depth, search_name, definition
    if definition.kind is CohortKind.COMPOSITION:
        for name, mapped in definition.searches.items():
            yield from walk(mapped.definition, depth + 1, name)
