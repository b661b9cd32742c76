"""Row/record filtering on a single field condition."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from operator import ge, gt, le, lt
from typing import ClassVar, Mapping, Optional, Pattern

from ..errors import InvalidParameterError, InvalidPatternError
from ..models import Cell, LogsResult, PipeResult, TableResult
from .base import pass_through, stringify

ORDERING_OPERATORS = {">": gt, ">=": ge, "<": lt, "<=": le}
REGEX_OPERATORS = frozenset({"regex", "match", "!regex", "notmatch"})
OPERATORS = frozenset(
    {"=", "==", "!=", ">", ">=", "<", "<=", "contains", "startswith", "endswith"}
) | REGEX_OPERATORS


def _as_number(text: str) -> Optional[float]:
    if "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _compare(left: str, right: str) -> Optional[int]:
    """Numeric ordering when both sides are numbers, string ordering otherwise.

    NaN is unordered: ``None`` is returned and no ordering operator matches.
    """
    a, b = _as_number(left), _as_number(right)
    if a is None or b is None:
        return (left > right) - (left < right)
    if math.isnan(a) or math.isnan(b):
        return None
    return (a > b) - (a < b)


def _cell(row: Mapping[str, Cell], field: str) -> Optional[str]:
    value = row.get(field)
    return None if value is None else stringify(value)


@dataclass(frozen=True)
class FilterStage:
    """``filter <field> <operator> <value>``

    Records or rows without the field never match.
    """

    field: str
    operator: str
    value: str
    pattern: Optional[Pattern[str]] = None

    name: ClassVar[str] = "filter"

    @classmethod
    def create(cls, field: str, operator: str, value: str) -> "FilterStage":
        operator = operator.lower()
        if operator not in OPERATORS:
            raise InvalidParameterError(
                f"Unsupported filter operator: {operator}", stage=cls.name, parameter="operator"
            )
        pattern = None
        if operator in REGEX_OPERATORS:
            try:
                pattern = re.compile(value)
            except re.error as exc:
                raise InvalidPatternError(cls.name, value, str(exc)) from exc
        return cls(field=field, operator=operator, value=value, pattern=pattern)

    def matches(self, actual: Optional[str]) -> bool:
        if actual is None:
            return False
        op, expected = self.operator, self.value
        if op in ("=", "=="):
            return actual == expected
        if op == "!=":
            return actual != expected
        if op in ORDERING_OPERATORS:
            order = _compare(actual, expected)
            return order is not None and ORDERING_OPERATORS[op](order, 0)
        if op == "contains":
            return expected in actual
        if op == "startswith":
            return actual.startswith(expected)
        if op == "endswith":
            return actual.endswith(expected)
        found = self.pattern.search(actual) is not None
        return found if op in ("regex", "match") else not found

    def execute(self, result: PipeResult) -> PipeResult:
        match result:
            case LogsResult(records=records):
                return LogsResult([r for r in records if self.matches(r.get(self.field))])
            case TableResult(columns=columns, rows=rows, source_hits=hits):
                kept = [row for row in rows if self.matches(_cell(row, self.field))]
                return TableResult(list(columns), kept, hits)
            case _:
                return pass_through(self.name, result)
