"""Timing helpers for comparing queries against the same sources."""

from __future__ import annotations

from dataclasses import dataclass, field
from statistics import mean
from time import perf_counter
from typing import Iterable, List, Optional

import pandas as pd

from .search import SearchRequest, SearchService


@dataclass
class QueryTiming:
    query: str
    result_type: str
    total_hits: int
    rows: int
    runs: List[float] = field(default_factory=list)

    @property
    def mean_seconds(self) -> float:
        return mean(self.runs) if self.runs else 0.0

    @property
    def best_seconds(self) -> float:
        return min(self.runs) if self.runs else 0.0


def _result_rows(response) -> int:
    pipe_result = response.pipe_result
    if pipe_result is None:
        return len(response.results)
    for attribute in ("rows", "records", "labels"):
        values = getattr(pipe_result, attribute, None)
        if values is not None:
            return len(values)
    return 0


def time_query(
    service: SearchService,
    query: str,
    repeat: int = 3,
    sources: Optional[List[str]] = None,
) -> QueryTiming:
    if repeat <= 0:
        raise ValueError(f"repeat must be positive, got {repeat}")
    timing: Optional[QueryTiming] = None
    for _ in range(repeat):
        request = SearchRequest(sources=list(sources or []), query=query, include_facets=False)
        start = perf_counter()
        response = service.search(request)
        elapsed = perf_counter() - start
        if timing is None:
            timing = QueryTiming(
                query=query,
                result_type=response.result_type.value,
                total_hits=response.total_hits,
                rows=_result_rows(response),
            )
        timing.runs.append(elapsed)
    return timing


def benchmark_queries(
    service: SearchService,
    queries: Iterable[str],
    repeat: int = 3,
    sources: Optional[List[str]] = None,
) -> List[QueryTiming]:
    return [time_query(service, query, repeat, sources) for query in queries]


def results_to_frame(results: List[QueryTiming]) -> pd.DataFrame:
    rows = []
    for result in results:
        rows.append(
            {
                "query": result.query,
                "result": result.result_type,
                "hits": result.total_hits,
                "rows": result.rows,
                "runs": len(result.runs),
                "mean_ms": round(result.mean_seconds * 1000, 3),
                "best_ms": round(result.best_seconds * 1000, 3),
            }
        )
    return pd.DataFrame(rows)
