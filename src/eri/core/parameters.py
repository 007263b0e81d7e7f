"""Parameter declarations and immutable parameter bindings.

This module provides:
- ParameterType: The value types a cohort definition can declare
- Parameter: A declared parameter (name, label, type)
- Location: Reference to a health facility
- ParameterBinding: Immutable name -> value mapping passed down the cohort tree
- parse_mappings(): Parser for "onOrAfter=${startDate},minAge=15" strings
"""

import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Any, NamedTuple

from eri.core.exceptions import (
    MappingSyntaxError,
    MissingParameterError,
    TypeMismatchError,
    UnknownLocationError,
)

# Parameter names that always carry calendar dates, beyond the "*Date" suffix
DATE_PARAMETER_NAMES = frozenset({"onOrAfter", "onOrBefore"})

LOCATION_PARAMETER = "location"

# "name=${parent}" or "name=literal"
_MAPPING_ENTRY = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.+?)\s*$")
_REFERENCE = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$")
_INTEGER = re.compile(r"^-?\d+$")


@dataclass(frozen=True)
class Location:
    """Reference to a health facility.

    Equality and hashing use the location id only, so two references to the
    same facility with different display names are interchangeable.
    """

    location_id: int
    name: str = field(default="", compare=False)

    def __str__(self) -> str:
        return self.name or str(self.location_id)


class ParameterType(Enum):
    """Value types a cohort definition may declare."""

    DATE = "date"
    LOCATION = "location"
    INTEGER = "integer"

    def accepts(self, value: Any) -> bool:
        """Check a value against this type without any coercion."""
        if self is ParameterType.DATE:
            return isinstance(value, date)
        if self is ParameterType.LOCATION:
            return isinstance(value, Location)
        # bool is an int subclass but never a valid integer parameter
        return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class Parameter:
    """A parameter declared by a cohort definition.

    Attributes:
        name: Parameter key, e.g. 'startDate'
        label: Human-readable label, e.g. 'Start Date'
        type: Expected value type
    """

    name: str
    label: str
    type: ParameterType


# Standard report parameters shared by every indicator
START_DATE = Parameter("startDate", "Start Date", ParameterType.DATE)
END_DATE = Parameter("endDate", "End Date", ParameterType.DATE)
LOCATION = Parameter(LOCATION_PARAMETER, "Location", ParameterType.LOCATION)
REPORT_PARAMETERS = (START_DATE, END_DATE, LOCATION)


def is_date_parameter(name: str) -> bool:
    """Return True if a parameter name conventionally holds a date."""
    return name.endswith("Date") or name in DATE_PARAMETER_NAMES


def _type_name(value: Any) -> str:
    return type(value).__name__


def _validate_value(
    name: str, value: Any, known_locations: frozenset[int] | None
) -> None:
    if is_date_parameter(name) and not isinstance(value, date):
        raise TypeMismatchError(name, "date", _type_name(value))

    if name == LOCATION_PARAMETER:
        if not isinstance(value, Location):
            raise TypeMismatchError(name, "Location", _type_name(value))
        if known_locations is not None and value.location_id not in known_locations:
            raise UnknownLocationError(value.location_id, name)


class ParameterBinding:
    """Immutable mapping from parameter names to values.

    Bindings are validated on construction and never mutated afterwards;
    resolve() and with_values() return new bindings. Bindings are hashable so
    that identical sub-queries can be collapsed within one evaluation.

    Example:
        binding = ParameterBinding(
            {"startDate": date(2019, 1, 21), "endDate": date(2019, 2, 20),
             "location": Location(103, "CS Namacurra")}
        )
        child = binding.resolve({"startDate": "onOrAfter", "endDate": "onOrBefore"})
    """

    __slots__ = ("_known_locations", "_values")

    def __init__(
        self,
        values: Mapping[str, Any] | None = None,
        known_locations: Iterable[int] | None = None,
    ):
        merged = dict(values or {})
        known = frozenset(known_locations) if known_locations is not None else None
        for name, value in merged.items():
            _validate_value(name, value, known)
        self._values = MappingProxyType(merged)
        self._known_locations = known

    @classmethod
    def for_period(
        cls,
        start_date: date,
        end_date: date,
        location: Location,
        known_locations: Iterable[int] | None = None,
    ) -> "ParameterBinding":
        """Build the standard startDate/endDate/location binding."""
        return cls(
            {"startDate": start_date, "endDate": end_date, "location": location},
            known_locations=known_locations,
        )

    def get(self, name: str) -> Any:
        """Get a parameter value.

        Raises:
            MissingParameterError: If the parameter is not bound
        """
        try:
            return self._values[name]
        except KeyError:
            raise MissingParameterError(name) from None

    def resolve(self, rename_map: Mapping[str, str]) -> "ParameterBinding":
        """Return a new binding with keys renamed per rename_map.

        Args:
            rename_map: source key -> target key. Keys not named in the map
                pass through unchanged; a renamed source key is replaced by
                its target.

        Raises:
            MissingParameterError: If a source key is not bound
        """
        resolved = {k: v for k, v in self._values.items() if k not in rename_map}
        for source, target in rename_map.items():
            resolved[target] = self.get(source)
        return ParameterBinding(resolved, known_locations=self._known_locations)

    def with_values(self, values: Mapping[str, Any]) -> "ParameterBinding":
        """Return a new binding with the given values added or replaced."""
        merged = dict(self._values)
        merged.update(values)
        return ParameterBinding(merged, known_locations=self._known_locations)

    def restrict(self, names: Iterable[str]) -> "ParameterBinding":
        """Return a new binding holding only the named parameters."""
        wanted = set(names)
        return ParameterBinding(
            {k: v for k, v in self._values.items() if k in wanted},
            known_locations=self._known_locations,
        )

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def keys(self):
        return self._values.keys()

    def items(self):
        return self._values.items()

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParameterBinding):
            return NotImplemented
        return dict(self._values) == dict(other._values)

    def __hash__(self) -> int:
        return hash(frozenset(self._values.items()))

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v!r}" for k, v in sorted(self._values.items()))
        return f"ParameterBinding({inner})"


class ParameterMapping(NamedTuple):
    """Parsed parameter mapping for a child search.

    Attributes:
        rename_map: parent key -> child key
        fixed: child key -> literal value
    """

    rename_map: dict[str, str]
    fixed: dict[str, Any]


def _parse_literal(text: str) -> Any:
    if _INTEGER.match(text):
        return int(text)
    try:
        return date.fromisoformat(text)
    except ValueError:
        return text


def parse_mappings(text: str) -> ParameterMapping:
    """Parse a mapping string such as 'onOrAfter=${startDate},minAge=15'.

    Each entry names a child parameter on the left. A `${parent}` reference on
    the right renames the parent's parameter; anything else is a literal
    (integers and ISO dates are recognised).

    Raises:
        MappingSyntaxError: On malformed entries, duplicate targets, or a
            parent parameter mapped to more than one child parameter
    """
    rename_map: dict[str, str] = {}
    fixed: dict[str, Any] = {}
    if not text.strip():
        return ParameterMapping(rename_map, fixed)

    for entry in text.split(","):
        match = _MAPPING_ENTRY.match(entry)
        if not match:
            raise MappingSyntaxError(f"Malformed mapping entry '{entry.strip()}'", text)
        target, source = match.groups()
        if target in fixed or target in rename_map.values():
            raise MappingSyntaxError(f"Parameter '{target}' mapped twice", text)

        reference = _REFERENCE.match(source)
        if reference:
            parent = reference.group(1)
            if parent in rename_map:
                raise MappingSyntaxError(
                    f"Parameter '{parent}' mapped to more than one target", text
                )
            rename_map[parent] = target
        elif "${" in source:
            raise MappingSyntaxError(f"Malformed reference '{source}'", text)
        else:
            fixed[target] = _parse_literal(source)

    return ParameterMapping(rename_map, fixed)
