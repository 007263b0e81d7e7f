"""Exception hierarchy for ERI.

This module defines all ERI exceptions in a single location. Core components
raise these exceptions directly; the CLI and Python API catch and format them
for users. Nothing in the core swallows an error or turns it into an empty
cohort.

Exception Hierarchy:
    ERIError (base)
    |-- ParameterError - Parameter binding problems
    |   |-- MissingParameterError - Required parameter absent
    |   |-- TypeMismatchError - Value has the wrong type
    |   |-- UnknownLocationError - Location not in the known set
    |   +-- MappingSyntaxError - Malformed parameter mapping string
    |-- CompositionError - Composition expression problems
    |   |-- UnresolvedReferenceError - Name not defined as a search
    |   |-- EmptyCompositionError - AND/OR without operands
    |   |-- UndefinedUniverseError - NOT without a base population
    |   +-- CompositionSyntaxError - Unparseable composition string
    |-- BackendError - Executor backend cannot be selected
    |-- ExternalQueryError - Query executor failures
    |-- EvaluationCancelledError - Evaluation cancelled by the caller
    +-- IndicatorError - Unknown report indicator
"""


class ERIError(Exception):
    """Base exception for all ERI errors.

    Example:
        try:
            patients = evaluator.evaluate(definition, binding)
        except ERIError as e:
            error(f"Evaluation failed: {e}")
    """

    pass


class ParameterError(ERIError):
    """Base class for parameter binding errors.

    Attributes:
        parameter: Name of the offending parameter (optional)
    """

    def __init__(self, message: str, parameter: str | None = None):
        self.parameter = parameter
        super().__init__(message)


class MissingParameterError(ParameterError):
    """Raised when a required parameter is absent from a binding."""

    def __init__(self, parameter: str, definition_name: str | None = None):
        self.definition_name = definition_name
        if definition_name:
            message = (
                f"Missing parameter '{parameter}' required by '{definition_name}'"
            )
        else:
            message = f"Missing parameter '{parameter}'"
        super().__init__(message, parameter)


class TypeMismatchError(ParameterError):
    """Raised when a parameter value does not match its declared type.

    Attributes:
        expected: Name of the expected type
        actual: Name of the type that was supplied
    """

    def __init__(self, parameter: str, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Parameter '{parameter}' expects {expected}, got {actual}", parameter
        )


class UnknownLocationError(ParameterError):
    """Raised when a location is not one of the known facilities."""

    def __init__(self, location_id: int, parameter: str = "location"):
        self.location_id = location_id
        super().__init__(f"Unknown location id: {location_id}", parameter)


class MappingSyntaxError(ParameterError):
    """Raised when a parameter mapping string cannot be parsed."""

    def __init__(self, message: str, mapping: str | None = None):
        self.mapping = mapping
        super().__init__(message)


class CompositionError(ERIError):
    """Base class for composition expression errors."""

    pass


class UnresolvedReferenceError(CompositionError):
    """Raised when an expression names a search that is not defined."""

    def __init__(self, name: str, available: list[str] | None = None):
        self.name = name
        self.available = sorted(available or [])
        message = f"Unresolved reference '{name}'"
        if self.available:
            message += f". Available: {', '.join(self.available)}"
        super().__init__(message)


class EmptyCompositionError(CompositionError):
    """Raised when an AND or OR node has no operands."""

    pass


class UndefinedUniverseError(CompositionError):
    """Raised when NOT is evaluated without a base population."""

    pass


class CompositionSyntaxError(CompositionError):
    """Raised when a composition string is malformed.

    Attributes:
        text: The composition string
        position: Character offset where parsing failed (optional)
    """

    def __init__(self, message: str, text: str, position: int | None = None):
        self.text = text
        self.position = position
        if position is not None:
            message = f"{message} at position {position} in '{text}'"
        super().__init__(message)


class BackendError(ERIError):
    """Raised when no query executor can be created for the configured backend."""

    pass


class ExternalQueryError(ERIError):
    """Raised when the query executor fails for a SQL cohort definition.

    Attributes:
        definition_name: Name of the definition whose query failed
        recoverable: Whether the error might be resolved by retrying
    """

    def __init__(
        self, message: str, definition_name: str | None = None, recoverable: bool = False
    ):
        self.definition_name = definition_name
        self.recoverable = recoverable
        super().__init__(message)


class EvaluationCancelledError(ERIError):
    """Raised when an evaluation is cancelled before it completes."""

    pass


class IndicatorError(ERIError):
    """Raised when a report indicator is not registered."""

    def __init__(self, message: str, indicator: str | None = None):
        self.indicator = indicator
        super().__init__(message)
