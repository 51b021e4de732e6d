"""
Collapse Table API cells into plain typed values.

A cell arrives in one of three shapes depending on sysparm_display_value and
on whether the column is dot-walked:

* raw scalar: ``"incident"``
* value/display pair: ``{"value": "true", "display_value": "Yes"}``
* nested reference object: ``{"sys_scope": {"scope": ...}}``

Each tool declares, once per output field, a ``FieldRule`` naming the source
columns in priority order, which representation to prefer, the field's kind
and its default. ``normalize_record`` applies the rules uniformly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

VALUE = "value"
DISPLAY_VALUE = "display_value"


class FieldKind(str, Enum):
    TEXT = "text"
    FLAG = "flag"
    NUMBER = "number"


def lookup(record: Mapping[str, Any], column: str) -> Any:
    """Return the raw cell for ``column``.

    Dot-walked columns are looked up as a flat key first (how the Table API
    returns them) and then by walking nested objects.
    """
    if column in record:
        return record[column]
    head, _, rest = column.partition(".")
    if rest:
        nested = record.get(head)
        if isinstance(nested, Mapping):
            return lookup(nested, rest)
    return None


def _representations(cell: Any, prefer: Tuple[str, ...]) -> Iterator[Any]:
    if isinstance(cell, Mapping):
        for key in prefer:
            yield cell.get(key)
    else:
        yield cell


def parse_int(raw: Any) -> Optional[int]:
    """Parse ``"1,024"`` style integers. Unparseable input gives None."""
    if raw is None:
        return None
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    text = str(raw).replace(",", "").strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        return None


def parse_flag(raw: Any) -> bool:
    """Only the string ``"true"`` is true."""
    return raw == "true"


@dataclass(frozen=True)
class FieldRule:
    sources: Tuple[str, ...]
    kind: FieldKind = FieldKind.TEXT
    prefer: Tuple[str, ...] = (VALUE,)
    default: Any = None

    def candidates(self, record: Mapping[str, Any]) -> Iterator[Any]:
        for column in self.sources:
            cell = lookup(record, column)
            if cell is None:
                continue
            for value in _representations(cell, self.prefer):
                if value is None or value == "":
                    continue
                yield value

    def extract(self, record: Mapping[str, Any]) -> Any:
        first = next(self.candidates(record), None)
        if self.kind is FieldKind.FLAG:
            return parse_flag(first)
        if self.kind is FieldKind.NUMBER:
            parsed = parse_int(first)
            return self.default if parsed is None else parsed
        if first is None:
            return self.default
        return first if isinstance(first, str) else str(first)


def text(*sources: str, default: Any = None) -> FieldRule:
    """Plain string column; value first, then display value."""
    return FieldRule(sources, FieldKind.TEXT, (VALUE, DISPLAY_VALUE), default)


def display(*sources: str, default: Any = None) -> FieldRule:
    """Column whose label matters more than its stored value (references, labels)."""
    return FieldRule(sources, FieldKind.TEXT, (DISPLAY_VALUE, VALUE), default)


def flag(source: str) -> FieldRule:
    """Boolean stored as the string "true"/"false"; value only."""
    return FieldRule((source,), FieldKind.FLAG, (VALUE,), False)


def number(source: str, default: Optional[int] = None) -> FieldRule:
    """Integer stored as a possibly comma-grouped string; value only."""
    return FieldRule((source,), FieldKind.NUMBER, (VALUE,), default)


SCOPE = display("sys_scope.scope", "sys_scope.name", default="Global")


def normalize_record(
    record: Mapping[str, Any], rules: Mapping[str, FieldRule]
) -> Dict[str, Any]:
    return {name: rule.extract(record) for name, rule in rules.items()}
