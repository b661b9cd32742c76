"""Bar/pie/line chart data built from stats output."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Dict, List

from ..models import ChartResult, LogsResult, PipeResult, TableResult
from .base import is_number, pass_through
from .stats import StatsStage


@dataclass(frozen=True)
class ChartStage:
    stats: StatsStage
    chart_type: str = "bar"

    name: ClassVar[str] = "chart"

    def reshape(self, table: TableResult) -> ChartResult:
        """Turn a stats table into labels plus one series per aggregation."""
        if self.stats.group_by:
            label_column = self.stats.group_by[0]
        else:
            label_column = table.columns[0] if table.columns else None

        labels: List[str] = []
        series: Dict[str, List[float]] = {agg.expression: [] for agg in self.stats.aggregations}
        for row in table.rows:
            label = row.get(label_column) if label_column is not None else None
            labels.append("" if label is None else str(label))
            for expression, values in series.items():
                value = row.get(expression)
                values.append(value if is_number(value) else 0)
        return ChartResult(self.chart_type, labels, series, table.source_hits)

    def execute(self, result: PipeResult) -> PipeResult:
        match result:
            case LogsResult(records=records):
                return self.reshape(self.stats.aggregate(records))
            case TableResult():
                return self.reshape(result)
            case _:
                return pass_through(self.name, result)
