"""Streaming aggregation (``stats``) over log records."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import ClassVar, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..errors import InvalidParameterError
from ..models import Cell, LogsResult, PipeResult, Record, TableResult
from .base import is_number, parse_number, pass_through

FIELD_FUNCTIONS = frozenset({"avg", "sum", "min", "max", "dc"})
GROUP_KEY_SEPARATOR = "|"

_CALL = re.compile(r"^(\w+)\((.+)\)$")


@dataclass(frozen=True)
class Aggregation:
    expression: str
    function: str
    field: Optional[str] = None

    @classmethod
    def parse(cls, expression: str) -> "Aggregation":
        if expression.lower() == "count":
            return cls(expression, "count")
        call = _CALL.match(expression)
        if call is None or call.group(1).lower() not in FIELD_FUNCTIONS:
            raise InvalidParameterError(
                f"Unsupported aggregation: {expression}", stage="stats", parameter=expression
            )
        return cls(expression, call.group(1).lower(), call.group(2).strip())


class _Accumulator:
    """Running state for one aggregation over one group."""

    def __init__(self, aggregation: Aggregation) -> None:
        self.aggregation = aggregation
        self.count = 0
        self.numeric_count = 0
        self.total = 0.0
        self.minimum: Optional[float] = None
        self.maximum: Optional[float] = None
        self.distinct: Set[str] = set()

    def add(self, record: Record) -> None:
        self.count += 1
        agg = self.aggregation
        if agg.field is None:
            return
        raw = record.get(agg.field)
        if raw is None:
            return
        if agg.function == "dc":
            self.distinct.add(raw)
            return
        number = parse_number(raw)
        if number is None:
            return
        self.numeric_count += 1
        self.total += number
        self.minimum = number if self.minimum is None else min(self.minimum, number)
        self.maximum = number if self.maximum is None else max(self.maximum, number)

    def value(self) -> Cell:
        function = self.aggregation.function
        if function == "count":
            return self.count
        if function == "dc":
            return len(self.distinct)
        if function == "sum":
            return self.total
        # avg/min/max over no numeric values report 0.0 by convention
        if self.numeric_count == 0:
            return 0.0
        if function == "avg":
            return self.total / self.numeric_count
        return self.minimum if function == "min" else self.maximum


@dataclass(frozen=True)
class StatsStage:
    aggregations: Tuple[Aggregation, ...]
    group_by: Tuple[str, ...] = ()

    name: ClassVar[str] = "stats"

    @classmethod
    def create(cls, expressions: Sequence[str], group_by: Sequence[str] = ()) -> "StatsStage":
        unique = dict.fromkeys(expressions)
        return cls(tuple(Aggregation.parse(expr) for expr in unique), tuple(dict.fromkeys(group_by)))

    @property
    def columns(self) -> List[str]:
        return list(self.group_by) + [agg.expression for agg in self.aggregations]

    def _new_accumulators(self) -> List[_Accumulator]:
        return [_Accumulator(agg) for agg in self.aggregations]

    def aggregate(self, records: Iterable[Record]) -> TableResult:
        if not self.group_by:
            accumulators = self._new_accumulators()
            hits = 0
            for record in records:
                hits += 1
                for acc in accumulators:
                    acc.add(record)
            row = {acc.aggregation.expression: acc.value() for acc in accumulators}
            return TableResult(self.columns, [row], hits)

        # Keys are joined values; tuples that join to the same string share a group.
        groups: Dict[str, Tuple[Tuple[str, ...], List[_Accumulator]]] = {}
        hits = 0
        for record in records:
            hits += 1
            values = tuple(record.fields.get(name, "") for name in self.group_by)
            key = GROUP_KEY_SEPARATOR.join(values)
            if key not in groups:
                groups[key] = (values, self._new_accumulators())
            for acc in groups[key][1]:
                acc.add(record)

        rows: List[Dict[str, Cell]] = []
        for values, accumulators in groups.values():
            row: Dict[str, Cell] = dict(zip(self.group_by, values))
            for acc in accumulators:
                row[acc.aggregation.expression] = acc.value()
            rows.append(row)

        sort_column = self.aggregations[0].expression
        rows.sort(
            key=lambda r: r[sort_column] if is_number(r[sort_column]) else float("-inf"),
            reverse=True,
        )
        return TableResult(self.columns, rows, hits)

    def execute(self, result: PipeResult) -> PipeResult:
        match result:
            case LogsResult(records=records):
                return self.aggregate(records)
            case _:
                return pass_through(self.name, result)
