"""Search orchestration: paginated faceted search and pipe-query execution."""

from __future__ import annotations

import math
import re
from contextlib import ExitStack
from dataclasses import dataclass, field
from functools import cmp_to_key
from itertools import islice
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Union

from .config import SearchConfig
from .errors import LogpipeError, PipelineExecutionError, RetrievalError
from .logging_utils import get_logger, timed
from .models import TERMINAL_TYPES, LogsResult, PipeResult, Record, ResultType
from .parser import parse
from .retrieval import SCORE_SORT, TIMESTAMP_SORT, ReaderCache, RetrievalAdapter, SortSpec, TimeRange
from .stages import Stage, build_stages
from .streaming import (
    BatchedSourceIterator,
    Comparator,
    MultiSourceIterator,
    by_field,
    by_score_desc,
    by_timestamp,
    comparator_for,
)

_NON_NUMERIC = re.compile(r"[^0-9.\-]")

Facets = Dict[str, Dict[str, int]]


@dataclass
class SearchRequest:
    sources: List[str] = field(default_factory=list)
    query: str = "*"
    page: int = 0
    page_size: Optional[int] = None
    sort_field: str = SCORE_SORT
    sort_descending: bool = True
    include_facets: bool = True
    facet_fields: List[str] = field(default_factory=list)
    time_range: Optional[TimeRange] = None
    # field -> numeric range boundaries, e.g. {"duration": [0, 100, 500]}
    facet_buckets: Dict[str, List[float]] = field(default_factory=dict)


@dataclass
class SearchResponse:
    results: List[Record]
    total_hits: int
    filtered_hits: int
    page: int = 0
    page_size: int = 0
    facets: Facets = field(default_factory=dict)
    result_type: ResultType = ResultType.LOGS
    pipe_result: Optional[PipeResult] = None
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 1
        return max(1, math.ceil(self.total_hits / self.page_size))


def _format_bound(value: float) -> str:
    return f"{value:g}"


def bucket_value(value: str, ranges: Sequence[float]) -> str:
    """Label a numeric facet value with the range it falls in.

    Non-numeric values and an empty range list keep the original label.
    """
    if not ranges:
        return value
    try:
        number = float(_NON_NUMERIC.sub("", value))
    except ValueError:
        return value
    bounds = sorted(ranges)
    for idx, lower in enumerate(bounds):
        if idx == len(bounds) - 1:
            if number >= lower:
                return f"{_format_bound(lower)}+"
        elif lower <= number < bounds[idx + 1]:
            return f"{_format_bound(lower)}-{_format_bound(bounds[idx + 1])}"
    return f"<{_format_bound(bounds[0])}"


def merge_facets(target: Facets, source: Mapping[str, Mapping[str, int]]) -> Facets:
    for name, counts in source.items():
        merged = target.setdefault(name, {})
        for value, count in counts.items():
            merged[value] = merged.get(value, 0) + count
    return target


def _bucketed(facets: Mapping[str, Mapping[str, int]], buckets: Mapping[str, Sequence[float]]) -> Facets:
    out: Facets = {}
    for name, counts in facets.items():
        if name not in buckets:
            out[name] = dict(counts)
            continue
        labelled: Dict[str, int] = {}
        for value, count in counts.items():
            label = bucket_value(value, buckets[name])
            labelled[label] = labelled.get(label, 0) + count
        out[name] = labelled
    return out


def run_stages(stages: Sequence[Stage], result: PipeResult) -> PipeResult:
    """Thread ``result`` through ``stages`` in order.

    Once a terminal result (chart, timechart or export) is produced the
    remaining stages leave it untouched.
    """
    logger = get_logger("SearchService")
    for stage in stages:
        if result.result_type in TERMINAL_TYPES:
            logger.warning(
                "Skipping %s: %s results are terminal", stage.name, result.result_type.value
            )
            continue
        try:
            result = stage.execute(result)
        except LogpipeError:
            raise
        except Exception as exc:
            logger.error("Error executing pipe command: %s", stage.name)
            raise PipelineExecutionError(stage.name, str(exc)) from exc
    return result


class SearchService:
    def __init__(
        self,
        retrieval: Union[RetrievalAdapter, ReaderCache],
        config: Optional[SearchConfig] = None,
    ) -> None:
        self.config = config or SearchConfig()
        self.readers = retrieval if isinstance(retrieval, ReaderCache) else ReaderCache(retrieval)
        self.logger = get_logger("SearchService")

    def _sources(self, request: SearchRequest) -> List[str]:
        return list(request.sources or self.config.sources)

    def search(self, request: SearchRequest) -> SearchResponse:
        parsed = parse(request.query)
        if parsed.has_stages:
            # build every stage before touching a source
            stages = build_stages(parsed, self.config.pipe.timezone)
            return self._search_with_stages(request, parsed.base_filter, stages)
        return self._search_page(request, parsed.base_filter)

    def _search_page(self, request: SearchRequest, base_filter: str) -> SearchResponse:
        page_size = request.page_size or self.config.search.page_size
        sort = SortSpec(request.sort_field or SCORE_SORT, request.sort_descending)
        facet_fields = request.facet_fields or self.config.search.facet_fields
        if sort.pushable:
            window = (request.page + 1) * page_size
        else:
            window = self.config.search.sort_cap

        total_hits = 0
        facets: Facets = {}
        timings: Dict[str, float] = {}
        with timed(self.logger, "retrieval", timings), ExitStack() as leases:
            iterators: List[Iterator[Record]] = []
            for source in self._sources(request):
                reader = leases.enter_context(self.readers.lease(source))
                if reader is None:
                    self.logger.warning("Source does not exist: %s", source)
                    continue
                try:
                    hits_in_source = reader.count(base_filter, request.time_range)
                    if hits_in_source == 0:
                        self.logger.debug("Skipping source %s with 0 hits", source)
                        continue
                    total_hits += hits_in_source
                    if request.include_facets:
                        merge_facets(
                            facets, reader.facet_counts(base_filter, request.time_range, facet_fields)
                        )
                    hits = reader.search(
                        base_filter,
                        request.time_range,
                        limit=min(window, hits_in_source),
                        sort=sort if sort.pushable else None,
                    )
                except LogpipeError:
                    raise
                except Exception as exc:
                    raise RetrievalError(source, str(exc)) from exc
                iterators.append(
                    BatchedSourceIterator(reader, hits, source, self.config.stream.batch_size)
                )

            start = request.page * page_size
            if sort.pushable:
                stream = MultiSourceIterator(iterators, _merge_comparator(sort))
                page_results = list(islice(stream, start, start + page_size))
            else:
                collected = list(MultiSourceIterator(iterators))
                collected.sort(key=cmp_to_key(by_field(sort.field, sort.descending)))
                page_results = collected[start : start + page_size]

        if request.facet_buckets:
            facets = _bucketed(facets, request.facet_buckets)
        self.logger.info(
            "Search %r matched %s hits; returning page %s (%s results)",
            base_filter,
            total_hits,
            request.page,
            len(page_results),
        )
        return SearchResponse(
            results=page_results,
            total_hits=total_hits,
            filtered_hits=total_hits,
            page=request.page,
            page_size=page_size,
            facets=facets,
            timings=timings,
        )

    def _search_with_stages(
        self, request: SearchRequest, base_filter: str, stages: Sequence[Stage]
    ) -> SearchResponse:
        cap = self.config.pipe.result_cap
        merge_order = self.config.stream.merge_order
        comparator = comparator_for(merge_order)
        # per-source hits must already be in merge order for the k-way merge
        sort = None
        if merge_order == "score":
            sort = SortSpec(SCORE_SORT, True)
        elif merge_order in ("timestamp_asc", "timestamp_desc"):
            sort = SortSpec(TIMESTAMP_SORT, merge_order == "timestamp_desc")

        total_hits = 0
        timings: Dict[str, float] = {}
        with timed(self.logger, "retrieval", timings), ExitStack() as leases:
            iterators: List[Iterator[Record]] = []
            for source in self._sources(request):
                reader = leases.enter_context(self.readers.lease(source))
                if reader is None:
                    self.logger.warning("Source does not exist: %s", source)
                    continue
                try:
                    hits = reader.search(base_filter, request.time_range, limit=cap, sort=sort)
                except LogpipeError:
                    raise
                except Exception as exc:
                    raise RetrievalError(source, str(exc)) from exc
                total_hits += len(hits)
                iterators.append(
                    BatchedSourceIterator(reader, hits, source, self.config.stream.batch_size)
                )
            records = list(MultiSourceIterator(iterators, comparator))

        self.logger.debug(
            "Running %s stages over %s records from %s sources",
            len(stages),
            len(records),
            len(iterators),
        )
        with timed(self.logger, "pipeline", timings):
            result = run_stages(stages, LogsResult(records))

        results = result.records if isinstance(result, LogsResult) else []
        return SearchResponse(
            results=results,
            total_hits=total_hits,
            filtered_hits=len(results) if isinstance(result, LogsResult) else total_hits,
            page=0,
            page_size=len(results),
            result_type=result.result_type,
            pipe_result=result,
            timings=timings,
        )

    def close(self) -> None:
        self.readers.close()


def _merge_comparator(sort: SortSpec) -> Comparator:
    if sort.field == TIMESTAMP_SORT:
        return by_timestamp(sort.descending)
    if sort.descending:
        return by_score_desc
    return lambda a, b: by_score_desc(b, a)
