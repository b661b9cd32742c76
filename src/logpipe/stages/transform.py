"""Field rewrites: rename, extract, replace, merge, eval and remove."""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, ClassVar, Dict, List, Mapping, Optional, Pattern, Tuple, Union

from ..errors import InvalidPatternError
from ..models import Cell, LogsResult, PipeResult, Record, TableResult
from .base import pass_through, stringify

_ARITHMETIC: Dict[str, Callable[[float, float], float]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
}


class TransformOp(str, Enum):
    RENAME = "rename"
    EXTRACT = "extract"
    REPLACE = "replace"
    MERGE = "merge"
    EVAL = "eval"
    REMOVE = "remove"


def evaluate_expression(expression: str, values: Mapping[str, str]) -> Union[float, str]:
    """Substitute field values into ``expression`` and evaluate one operator.

    Substitution is a plain substring replace of every field name, in field
    order, so a field name that also occurs inside another name or a literal
    gets replaced there too. Only an expression left with exactly one of
    ``+ - * /`` is computed; anything else is returned as the substituted
    string.
    """
    substituted = expression
    for name, value in values.items():
        if name:
            substituted = substituted.replace(name, value)

    positions = [idx for idx, ch in enumerate(substituted) if ch in _ARITHMETIC]
    if len(positions) != 1:
        return substituted
    idx = positions[0]
    try:
        left = float(substituted[:idx].strip())
        right = float(substituted[idx + 1 :].strip())
        return _ARITHMETIC[substituted[idx]](left, right)
    except (ValueError, ZeroDivisionError):
        return substituted


def _compile(pattern: str) -> Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise InvalidPatternError(TransformStage.name, pattern, str(exc)) from exc


@dataclass(frozen=True)
class TransformStage:
    operation: TransformOp
    field: Optional[str] = None
    target: Optional[str] = None
    pattern: Optional[Pattern[str]] = None
    replacement: str = ""
    expression: str = ""
    sources: Tuple[str, ...] = ()
    separator: str = ""

    name: ClassVar[str] = "transform"

    @classmethod
    def rename(cls, field: str, new_name: str) -> "TransformStage":
        return cls(TransformOp.RENAME, field=field, target=new_name)

    @classmethod
    def extract(cls, field: str, pattern: str, target: str) -> "TransformStage":
        return cls(TransformOp.EXTRACT, field=field, target=target, pattern=_compile(pattern))

    @classmethod
    def replace(cls, field: str, pattern: str, replacement: str) -> "TransformStage":
        return cls(
            TransformOp.REPLACE, field=field, pattern=_compile(pattern), replacement=replacement
        )

    @classmethod
    def merge(cls, sources: List[str], target: str, separator: str = "") -> "TransformStage":
        return cls(TransformOp.MERGE, target=target, sources=tuple(sources), separator=separator)

    @classmethod
    def eval(cls, target: str, expression: str) -> "TransformStage":
        return cls(TransformOp.EVAL, target=target, expression=expression)

    @classmethod
    def remove(cls, field: str) -> "TransformStage":
        return cls(TransformOp.REMOVE, field=field)

    def apply(self, values: Mapping[str, Cell], typed: bool = False) -> Dict[str, Cell]:
        """Return a rewritten copy of ``values``.

        With ``typed`` (table rows) eval results stay numeric; record fields
        are always strings.
        """
        out: Dict[str, Cell] = dict(values)
        op = self.operation
        if op is TransformOp.RENAME:
            if self.field in out:
                out[self.target] = out.pop(self.field)
        elif op is TransformOp.EXTRACT:
            current = out.get(self.field)
            if current is not None:
                found = self.pattern.search(stringify(current))
                extracted = None
                if found:
                    extracted = found.group(1) if found.re.groups else found.group(0)
                if extracted is not None:
                    out[self.target] = extracted
        elif op is TransformOp.REPLACE:
            current = out.get(self.field)
            if current is not None:
                out[self.field] = self.pattern.sub(lambda _: self.replacement, stringify(current))
        elif op is TransformOp.MERGE:
            parts = [stringify(out[name]) for name in self.sources if out.get(name) is not None]
            out[self.target] = self.separator.join(parts)
        elif op is TransformOp.EVAL:
            as_text = {key: stringify(value) for key, value in out.items() if value is not None}
            evaluated = evaluate_expression(self.expression, as_text)
            out[self.target] = evaluated if typed else stringify(evaluated)
        elif op is TransformOp.REMOVE:
            out.pop(self.field, None)
        return out

    def _columns(self, columns: List[str]) -> List[str]:
        updated = list(columns)
        op = self.operation
        if op is TransformOp.RENAME and self.field in updated:
            if self.target in updated:
                updated.remove(self.field)
            else:
                updated[updated.index(self.field)] = self.target
        elif op is TransformOp.REMOVE and self.field in updated:
            updated.remove(self.field)
        elif op in (TransformOp.EXTRACT, TransformOp.MERGE, TransformOp.EVAL):
            if self.target not in updated:
                updated.append(self.target)
        return updated

    def _record(self, record: Record) -> Record:
        return record.with_fields(self.apply(record.fields))

    def execute(self, result: PipeResult) -> PipeResult:
        match result:
            case LogsResult(records=records):
                return LogsResult([self._record(record) for record in records])
            case TableResult(columns=columns, rows=rows, source_hits=hits):
                return TableResult(
                    self._columns(columns), [self.apply(row, typed=True) for row in rows], hits
                )
            case _:
                return pass_through(self.name, result)
