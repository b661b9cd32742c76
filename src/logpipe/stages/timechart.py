"""Time-bucketed event counts (``timechart``)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..errors import InvalidParameterError
from ..logging_utils import get_logger
from ..models import LogsResult, PipeResult, Record, TimeChartResult
from .base import pass_through

SECOND = 1000
UNIT_MILLIS = {"s": SECOND, "m": 60 * SECOND, "h": 3600 * SECOND, "d": 86400 * SECOND}
DEFAULT_SPAN = "1h"
DEFAULT_SPAN_MILLIS = UNIT_MILLIS["h"]
DEFAULT_SERIES = "count"
LABEL_FORMAT = "%Y-%m-%d %H:%M"

_SPAN = re.compile(r"^(\d+)(\D*)$")

logger = get_logger("TimeChartStage")


def parse_span(span: Optional[str]) -> int:
    """Bucket width in milliseconds for spans such as ``30s``, ``5m``, ``1d``.

    An unknown unit falls back to one hour.
    """
    if not span:
        return DEFAULT_SPAN_MILLIS
    match = _SPAN.match(span.strip())
    if match is None:
        raise InvalidParameterError(
            f"Invalid span {span!r}; expected <integer><unit>", stage="timechart", parameter="span"
        )
    amount, unit = int(match.group(1)), match.group(2)
    if amount == 0:
        raise InvalidParameterError("Span must be positive", stage="timechart", parameter="span")
    if unit not in UNIT_MILLIS:
        logger.warning("Unknown span unit %r in %r, using %s", unit, span, DEFAULT_SPAN)
        return DEFAULT_SPAN_MILLIS
    return amount * UNIT_MILLIS[unit]


@dataclass(frozen=True)
class TimeChartStage:
    """Counts per time bucket, optionally split into one series per field value.

    Only counting is supported: any other aggregation requested is reported
    and counted instead.
    """

    span_millis: int = DEFAULT_SPAN_MILLIS
    split_by: Optional[str] = None
    timezone: str = "UTC"
    aggregations: Tuple[str, ...] = ("count",)

    name: ClassVar[str] = "timechart"

    @classmethod
    def create(
        cls,
        span: Optional[str] = DEFAULT_SPAN,
        aggregations: Iterable[str] = ("count",),
        split_by: Optional[str] = None,
        timezone: str = "UTC",
    ) -> "TimeChartStage":
        try:
            ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
            raise InvalidParameterError(
                f"Unknown timezone: {timezone!r}", stage="timechart", parameter="timezone"
            ) from exc
        aggregations = tuple(aggregations)
        unsupported = [agg for agg in aggregations if agg.lower() != "count"]
        if unsupported:
            logger.warning("timechart only counts events; ignoring %s", ", ".join(unsupported))
        return cls(parse_span(span), split_by, timezone, aggregations)

    def bucket(self, records: Iterable[Record]) -> TimeChartResult:
        span = self.span_millis
        series_counts: Dict[str, Dict[int, int]] = {}
        low: Optional[int] = None
        high: Optional[int] = None
        hits = 0
        for record in records:
            hits += 1
            millis = record.timestamp_millis
            if millis is None:
                continue
            low = millis if low is None else min(low, millis)
            high = millis if high is None else max(high, millis)
            name = DEFAULT_SERIES
            if self.split_by is not None and record.get(self.split_by) is not None:
                name = record.get(self.split_by)
            counts = series_counts.setdefault(name, {})
            start = (millis // span) * span
            counts[start] = counts.get(start, 0) + 1

        if low is None:
            return TimeChartResult([], {}, hits)

        buckets = list(range((low // span) * span, (high // span) * span + 1, span))
        zone = ZoneInfo(self.timezone)
        labels: List[str] = [
            datetime.fromtimestamp(start / 1000, tz=zone).strftime(LABEL_FORMAT) for start in buckets
        ]
        series = {
            name: [counts.get(start, 0) for start in buckets]
            for name, counts in series_counts.items()
        }
        return TimeChartResult(labels, series, hits)

    def execute(self, result: PipeResult) -> PipeResult:
        match result:
            case LogsResult(records=records):
                return self.bucket(records)
            case _:
                return pass_through(self.name, result)
