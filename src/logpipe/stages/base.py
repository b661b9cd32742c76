"""Helpers shared by the pipe stages."""

from __future__ import annotations

import re
from typing import Any, List, Optional, Sequence, Tuple

from ..logging_utils import get_logger
from ..models import Cell, PipeResult

_NON_NUMERIC = re.compile(r"[^0-9.]")

logger = get_logger("Stages")


def parse_number(value: Optional[str]) -> Optional[float]:
    """Lenient numeric parse used by aggregations: ``"120ms"`` -> ``120.0``."""
    if value is None:
        return None
    cleaned = _NON_NUMERIC.sub("", value)
    try:
        return float(cleaned)
    except ValueError:
        return None


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def stringify(value: Cell) -> str:
    return value if isinstance(value, str) else str(value)


def strip_quotes(value: str) -> str:
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return value[1:-1]
    return value


def split_aggregations(
    args: Sequence[str], single_split: bool = False
) -> Tuple[List[str], List[str]]:
    """Split positional args on the ``by`` keyword.

    Everything before ``by`` is an aggregation expression (``count`` when
    none is given); everything after is a group-by field. With
    ``single_split`` only the first field after ``by`` is kept.
    """
    aggregations: List[str] = []
    group_by: List[str] = []
    parsing_by = False
    for arg in args:
        if arg.lower() == "by":
            parsing_by = True
        elif parsing_by:
            group_by.append(arg)
            if single_split:
                break
        else:
            aggregations.append(arg)
    if not aggregations:
        aggregations.append("count")
    return aggregations, group_by


def pass_through(stage: str, result: PipeResult) -> PipeResult:
    logger.warning(
        "%s does not apply to %s results; passing them through unchanged",
        stage,
        result.result_type.value,
    )
    return result
