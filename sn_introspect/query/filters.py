"""
Encoded-query builder for the ServiceNow Table API.

Criteria are rendered as ``field<OP>value`` clauses joined with ``^`` (AND);
an ``AnyOf`` group joins its clauses with ``^OR`` and counts as a single
criterion.

Values are interpolated literally. The encoded-query dialect has no escape
for its own separators, so a value containing ``^`` changes the meaning of
the query instead of matching the literal text. Such values are logged and
passed through unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple, Union

from sn_introspect.shared.observability import get_logger

logger = get_logger(__name__)

AND = "^"
OR = "^OR"
SEPARATOR_TOKEN = "^"


class Operator(str, Enum):
    EQUALS = "="
    LIKE = "LIKE"
    IS_NOT_EMPTY = "ISNOTEMPTY"
    STARTS_WITH = "STARTSWITH"


def _literal(field: str, value: Union[str, bool, int]) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    if not text:
        raise ValueError(f"Filter value for '{field}' must not be empty")
    if SEPARATOR_TOKEN in text:
        logger.warning(
            "Filter value contains a query separator and is interpolated literally",
            field=field,
            value=text,
        )
    return text


@dataclass(frozen=True)
class Clause:
    """A single ``field<OP>value`` condition."""

    field: str
    operator: Operator
    value: Optional[str] = None

    def render(self) -> str:
        if self.operator is Operator.IS_NOT_EMPTY:
            return f"{self.field}{self.operator.value}"
        return f"{self.field}{self.operator.value}{self.value}"


@dataclass(frozen=True)
class AnyOf:
    """Alternatives joined with ``^OR``; one criterion from the caller's view."""

    clauses: Tuple[Clause, ...]

    def render(self) -> str:
        return OR.join(clause.render() for clause in self.clauses)


Criterion = Union[Clause, AnyOf]


def equals(field: str, value: Union[str, int]) -> Clause:
    return Clause(field, Operator.EQUALS, _literal(field, value))


def like(field: str, value: str) -> Clause:
    return Clause(field, Operator.LIKE, _literal(field, value))


def starts_with(field: str, value: str) -> Clause:
    return Clause(field, Operator.STARTS_WITH, _literal(field, value))


def is_not_empty(field: str) -> Clause:
    return Clause(field, Operator.IS_NOT_EMPTY)


def is_true(field: str, flag: bool = True) -> Clause:
    return Clause(field, Operator.EQUALS, _literal(field, flag))


def any_of(*clauses: Clause) -> AnyOf:
    if not clauses:
        raise ValueError("any_of() needs at least one clause")
    return AnyOf(tuple(clauses))


class FilterBuilder:
    """Accumulates criteria in order and renders them AND-joined.

    ``build()`` returns None when no criteria were added. Callers treat that
    as "no query" and return an empty result without calling the API.
    """

    def __init__(self, criteria: Optional[Iterable[Criterion]] = None):
        self._criteria: List[Criterion] = list(criteria or [])

    def add(self, criterion: Criterion) -> "FilterBuilder":
        self._criteria.append(criterion)
        return self

    def __bool__(self) -> bool:
        return bool(self._criteria)

    def build(self) -> Optional[str]:
        if not self._criteria:
            return None
        return AND.join(criterion.render() for criterion in self._criteria)


class CriteriaTrail:
    """Readable record of the criteria that actually shaped a query.

    A criterion that was requested but dropped (for example a scope that
    could not be resolved) is never added, so the trail does not claim it.
    """

    def __init__(self) -> None:
        self._parts: List[Tuple[str, str]] = []

    def add(self, label: str, value: str) -> None:
        self._parts.append((label, value))

    @property
    def labels(self) -> List[str]:
        return [label for label, _ in self._parts]

    def __bool__(self) -> bool:
        return bool(self._parts)

    def render(self) -> str:
        joined = ", ".join(f"{label}='{value}'" for label, value in self._parts)
        return f"Matched criteria: {joined}"
