"""Export sinks: the collaborators that materialize export results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence

import pandas as pd

from .logging_utils import get_logger
from .models import ExportResult, Record


@dataclass
class ExportSummary:
    target: str
    rows_written: int
    total_rows: int
    columns: List[str]
    appended: bool


class Sink(Protocol):
    def export(
        self,
        target: str,
        records: Sequence[Record],
        fields: Optional[List[str]],
        sample_size: Optional[int],
        append: bool,
    ) -> ExportSummary:
        ...


class FrameSink:
    """Keeps exported tables as pandas frames in memory, keyed by target name."""

    def __init__(self) -> None:
        self.tables: Dict[str, pd.DataFrame] = {}
        self.logger = get_logger("FrameSink")

    def export(
        self,
        target: str,
        records: Sequence[Record],
        fields: Optional[List[str]],
        sample_size: Optional[int],
        append: bool,
    ) -> ExportSummary:
        packaged = ExportResult(
            records=list(records), target=target, fields=fields, sample_size=sample_size
        )
        frame = packaged.to_frame()
        existing = self.tables.get(target)
        appended = append and existing is not None
        if appended:
            frame = pd.concat([existing, frame], ignore_index=True)
        self.tables[target] = frame
        self.logger.info(
            "Exported %s rows to %s (%s)", len(records), target, "append" if appended else "replace"
        )
        return ExportSummary(
            target=target,
            rows_written=len(records),
            total_rows=len(frame),
            columns=[str(column) for column in frame.columns],
            appended=appended,
        )
