"""Packages records with export metadata for a downstream sink."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import islice
from typing import ClassVar, List, Optional, Tuple

from ..models import ExportResult, LogsResult, PipeResult, Record, TableResult
from .base import pass_through, stringify


def rows_to_records(table: TableResult) -> List[Record]:
    records = []
    for row in table.rows:
        fields = {
            column: stringify(row[column])
            for column in table.columns
            if row.get(column) is not None
        }
        raw = " ".join(f"{key}={value}" for key, value in fields.items())
        records.append(Record(raw_text=raw, source="table", fields=fields))
    return records


@dataclass(frozen=True)
class ExportStage:
    target: str
    fields: Optional[Tuple[str, ...]] = None
    sample_size: Optional[int] = None
    append: bool = True

    name: ClassVar[str] = "export"

    def package(self, records: List[Record]) -> ExportResult:
        limit = self.sample_size if self.sample_size and self.sample_size > 0 else None
        exported = list(islice(records, limit))
        return ExportResult(
            records=exported,
            target=self.target,
            fields=list(self.fields) if self.fields else None,
            sample_size=self.sample_size,
            append=self.append,
            total_results=len(records),
        )

    def execute(self, result: PipeResult) -> PipeResult:
        match result:
            case LogsResult(records=records):
                return self.package(records)
            case TableResult():
                return self.package(rows_to_records(result))
            case _:
                return pass_through(self.name, result)
