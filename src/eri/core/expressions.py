"""Boolean composition expressions over named cohort results.

A composition expression is a tree of Leaf, And, Or and Not nodes. Leaves name
searches of the enclosing composition; evaluation looks each name up in an
EvaluationContext and combines the patient-id sets with set algebra.

Grammar accepted by parse_composition():

    expr := term (("AND" | "OR") term)*
    term := "NOT" term | NAME | "(" expr ")"

Keywords are case-insensitive. AND and OR have equal precedence and associate
left to right, so parentheses are the only way to group differently:

    "a AND b OR c"   == "(a AND b) OR c"
    "a AND (b OR c)" groups the OR first
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass

from eri.core.exceptions import (
    CompositionSyntaxError,
    EmptyCompositionError,
    UndefinedUniverseError,
    UnresolvedReferenceError,
)

# Result name -> memoized patient ids, scoped to one composition evaluation
EvaluationContext = Mapping[str, frozenset[int]]

KEYWORDS = frozenset({"AND", "OR", "NOT"})

_TOKEN = re.compile(r"\s*(?:(\()|(\))|([A-Za-z_][A-Za-z0-9_]*))")


class Expression:
    """Base class for composition expression nodes."""

    def evaluate(
        self, context: EvaluationContext, universe: frozenset[int] | None = None
    ) -> frozenset[int]:
        raise NotImplementedError

    def references(self) -> frozenset[str]:
        """Return every search name referenced in this expression."""
        raise NotImplementedError

    def uses_complement(self) -> bool:
        """Return True if evaluating this expression needs a universe."""
        raise NotImplementedError


@dataclass(frozen=True)
class Leaf(Expression):
    name: str

    def evaluate(self, context, universe=None):
        try:
            return context[self.name]
        except KeyError:
            raise UnresolvedReferenceError(self.name, list(context)) from None

    def references(self):
        return frozenset({self.name})

    def uses_complement(self):
        return False

    def __str__(self) -> str:
        return self.name


def _evaluate_all(children, context, universe) -> list[frozenset[int]]:
    # Every operand is evaluated before combining; no short circuit
    return [child.evaluate(context, universe) for child in children]


def _render_operand(child: Expression) -> str:
    if isinstance(child, (And, Or)):
        return f"({child})"
    return str(child)


@dataclass(frozen=True)
class And(Expression):
    children: tuple[Expression, ...]

    def evaluate(self, context, universe=None):
        if not self.children:
            raise EmptyCompositionError("AND requires at least one operand")
        results = _evaluate_all(self.children, context, universe)
        return frozenset.intersection(*results)

    def references(self):
        return frozenset().union(*(c.references() for c in self.children))

    def uses_complement(self):
        return any(c.uses_complement() for c in self.children)

    def __str__(self) -> str:
        return " AND ".join(_render_operand(c) for c in self.children)


@dataclass(frozen=True)
class Or(Expression):
    children: tuple[Expression, ...]

    def evaluate(self, context, universe=None):
        if not self.children:
            raise EmptyCompositionError("OR requires at least one operand")
        results = _evaluate_all(self.children, context, universe)
        return frozenset.union(*results)

    def references(self):
        return frozenset().union(*(c.references() for c in self.children))

    def uses_complement(self):
        return any(c.uses_complement() for c in self.children)

    def __str__(self) -> str:
        return " OR ".join(_render_operand(c) for c in self.children)


@dataclass(frozen=True)
class Not(Expression):
    """Complement of the operand relative to the evaluation universe."""

    operand: Expression

    def evaluate(self, context, universe=None):
        if universe is None:
            raise UndefinedUniverseError(
                f"NOT({self.operand}) needs a base population to complement against"
            )
        return universe - self.operand.evaluate(context, universe)

    def references(self):
        return self.operand.references()

    def uses_complement(self):
        return True

    def __str__(self) -> str:
        return f"NOT({self.operand})"


def _tokenize(text: str) -> list[tuple[str, str, int]]:
    """Split a composition string into (kind, value, position) tokens."""
    tokens = []
    pos = 0
    stripped_end = len(text.rstrip())
    while pos < stripped_end:
        match = _TOKEN.match(text, pos)
        if not match:
            offending = text[pos:].lstrip()
            position = len(text) - len(offending)
            raise CompositionSyntaxError(
                f"Unexpected character '{offending[0]}'", text, position
            )
        lparen, rparen, word = match.groups()
        start = match.start(match.lastindex)
        if lparen:
            tokens.append(("(", lparen, start))
        elif rparen:
            tokens.append((")", rparen, start))
        elif word.upper() in KEYWORDS:
            tokens.append((word.upper(), word, start))
        else:
            tokens.append(("NAME", word, start))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.index = 0

    def _peek(self) -> tuple[str, str, int] | None:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def _fail(self, message: str) -> CompositionSyntaxError:
        token = self._peek()
        position = token[2] if token else len(self.text)
        return CompositionSyntaxError(message, self.text, position)

    def parse(self) -> Expression:
        if not self.tokens:
            raise CompositionSyntaxError("Empty composition", self.text)
        expr = self._expr()
        if self._peek() is not None:
            raise self._fail(f"Unexpected '{self._peek()[1]}'")
        return expr

    def _expr(self) -> Expression:
        node = self._term()
        while (token := self._peek()) is not None and token[0] in ("AND", "OR"):
            self.index += 1
            node = _combine(token[0], node, self._term())
        return node

    def _term(self) -> Expression:
        token = self._peek()
        if token is None:
            raise self._fail("Expected a name, NOT or '('")
        kind = token[0]
        self.index += 1
        if kind == "NOT":
            return Not(self._term())
        if kind == "NAME":
            return Leaf(token[1])
        if kind == "(":
            inner = self._expr()
            closing = self._peek()
            if closing is None or closing[0] != ")":
                raise self._fail("Expected ')'")
            self.index += 1
            return inner
        self.index -= 1
        raise self._fail(f"Unexpected '{token[1]}'")


def _combine(operator: str, left: Expression, right: Expression) -> Expression:
    node_type = And if operator == "AND" else Or
    if isinstance(left, node_type):
        return node_type(left.children + (right,))
    return node_type((left, right))


def parse_composition(text: str) -> Expression:
    """Parse a composition string into an expression tree.

    Example:
        >>> str(parse_composition("all AND children AND NOT(pregnant OR breastfeeding)"))
        'all AND children AND NOT(pregnant OR breastfeeding)'

    Raises:
        CompositionSyntaxError: If the string does not follow the grammar
    """
    return _Parser(text).parse()
