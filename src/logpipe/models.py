"""Records and the result variants passed between pipe stages."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Union

import pandas as pd

if TYPE_CHECKING:
    from .sink import ExportSummary, Sink


@dataclass(frozen=True)
class Record:
    """One structured log entry as returned by a source reader.

    Records are never mutated once handed to a stage; transforms build a new
    record through :meth:`with_fields`.
    """

    raw_text: str
    timestamp: Optional[datetime] = None
    source: Optional[str] = None
    collection: Optional[str] = None
    score: float = 0.0
    fields: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.timestamp is not None and self.timestamp.tzinfo is None:
            object.__setattr__(self, "timestamp", self.timestamp.replace(tzinfo=timezone.utc))

    @property
    def timestamp_millis(self) -> Optional[int]:
        if self.timestamp is None:
            return None
        return int(self.timestamp.timestamp() * 1000)

    def get(self, name: str) -> Optional[str]:
        return self.fields.get(name)

    def with_fields(self, fields: Mapping[str, str]) -> "Record":
        return replace(self, fields=dict(fields))

    def with_hit(self, score: float, collection: str) -> "Record":
        return replace(self, score=score, collection=collection)


class ResultType(str, Enum):
    LOGS = "logs"
    TABLE = "table"
    CHART = "chart"
    TIMECHART = "timechart"
    EXPORT = "export"


TERMINAL_TYPES = frozenset({ResultType.CHART, ResultType.TIMECHART, ResultType.EXPORT})

Cell = Union[str, int, float]


@dataclass
class LogsResult:
    records: List[Record]

    @property
    def result_type(self) -> ResultType:
        return ResultType.LOGS


@dataclass
class TableResult:
    columns: List[str]
    rows: List[Dict[str, Cell]]
    source_hits: int = 0

    @property
    def result_type(self) -> ResultType:
        return ResultType.TABLE

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.rows, columns=self.columns)


@dataclass
class ChartResult:
    chart_type: str
    labels: List[str]
    series: Dict[str, List[float]]
    source_hits: int = 0

    @property
    def result_type(self) -> ResultType:
        return ResultType.CHART


@dataclass
class TimeChartResult:
    labels: List[str]
    series: Dict[str, List[int]]
    source_hits: int = 0

    @property
    def result_type(self) -> ResultType:
        return ResultType.TIMECHART


@dataclass
class ExportResult:
    """Records packaged for a sink; nothing is written until :meth:`deliver`."""

    records: List[Record]
    target: str
    fields: Optional[List[str]] = None
    sample_size: Optional[int] = None
    append: bool = True
    total_results: int = 0

    @property
    def result_type(self) -> ResultType:
        return ResultType.EXPORT

    @property
    def exported_results(self) -> int:
        return len(self.records)

    @property
    def metadata(self) -> Dict[str, Any]:
        return {
            "table_name": self.target,
            "fields": self.fields,
            "sample_size": self.sample_size,
            "append": self.append,
            "total_results": self.total_results,
            "exported_results": self.exported_results,
        }

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for record in self.records:
            row: Dict[str, Any] = {
                "timestamp": record.timestamp,
                "source": record.source,
                "raw_text": record.raw_text,
            }
            row.update(record.fields)
            rows.append(row)
        frame = pd.DataFrame(rows)
        if self.fields:
            frame = frame.reindex(columns=self.fields)
        return frame

    def deliver(self, sink: "Sink") -> "ExportSummary":
        return sink.export(self.target, self.records, self.fields, self.sample_size, self.append)


PipeResult = Union[LogsResult, TableResult, ChartResult, TimeChartResult, ExportResult]
