"""In-memory retrieval adapter used by the CLI and the test suite."""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .logging_utils import get_logger
from .models import Record
from .parser import MATCH_ALL
from .retrieval import SCORE_SORT, TIMESTAMP_SORT, Hit, SortSpec, TimeRange

logger = get_logger("MemoryIndex")


@dataclass(frozen=True)
class _Term:
    field: Optional[str]
    value: str


def parse_filter(query: Optional[str]) -> List[_Term]:
    """Split a base filter into ANDed terms.

    ``field:value`` matches a field with shell-style wildcards; any other term
    is a substring of the raw text. Both are case-insensitive.
    """
    if query is None or query.strip() in ("", MATCH_ALL):
        return []
    terms: List[_Term] = []
    for token in query.split():
        token = token.strip('"')
        if not token or token == MATCH_ALL:
            continue
        name, sep, value = token.partition(":")
        if sep and name:
            terms.append(_Term(name, value.lower()))
        else:
            terms.append(_Term(None, token.lower()))
    return terms


def _score(record: Record, terms: Sequence[_Term]) -> Optional[float]:
    text = record.raw_text.lower()
    score = 1.0
    for term in terms:
        if term.field is None:
            occurrences = text.count(term.value)
            if occurrences == 0:
                return None
            score += occurrences
            continue
        candidate = record.get(term.field)
        if candidate is None and term.field == "source":
            candidate = record.source
        if candidate is None or not fnmatchcase(candidate.lower(), term.value):
            return None
    return score


class MemoryReader:
    """Immutable snapshot of one source at a given generation."""

    def __init__(self, source: str, records: Tuple[Record, ...], generation: int) -> None:
        self.source = source
        self.records = records
        self.generation = generation
        self.closed = False

    def _matches(self, query: str, time_range: Optional[TimeRange]) -> List[Hit]:
        terms = parse_filter(query)
        hits: List[Hit] = []
        for doc_id, record in enumerate(self.records):
            if time_range is not None and not time_range.contains(record.timestamp_millis):
                continue
            score = _score(record, terms)
            if score is not None:
                hits.append(Hit(doc_id, score))
        return hits

    def search(
        self,
        query: str,
        time_range: Optional[TimeRange] = None,
        limit: Optional[int] = None,
        sort: Optional[SortSpec] = None,
    ) -> List[Hit]:
        hits = self._matches(query, time_range)
        if sort is not None and sort.field == SCORE_SORT:
            hits.sort(key=lambda hit: hit.score, reverse=sort.descending)
        elif sort is not None and sort.field == TIMESTAMP_SORT:
            present = [h for h in hits if self.records[h.doc_id].timestamp is not None]
            missing = [h for h in hits if self.records[h.doc_id].timestamp is None]
            present.sort(
                key=lambda hit: self.records[hit.doc_id].timestamp_millis, reverse=sort.descending
            )
            hits = present + missing
        if limit is not None:
            hits = hits[:limit]
        return hits

    def count(self, query: str, time_range: Optional[TimeRange] = None) -> int:
        return len(self._matches(query, time_range))

    def fetch(self, doc_ids: Sequence[int]) -> List[Record]:
        if self.closed:
            raise RuntimeError(f"Reader for {self.source} is closed")
        return [self.records[doc_id] for doc_id in doc_ids]

    def facet_counts(
        self, query: str, time_range: Optional[TimeRange], fields: Sequence[str]
    ) -> Dict[str, Dict[str, int]]:
        hits = self._matches(query, time_range)
        if not fields:
            # every extracted field is a facet dimension
            fields = sorted({name for hit in hits for name in self.records[hit.doc_id].fields})
        facets: Dict[str, Dict[str, int]] = {}
        for name in fields:
            counter: Counter = Counter()
            for hit in hits:
                value = self.records[hit.doc_id].get(name)
                if value is not None:
                    counter[value] += 1
            facets[name] = dict(counter)
        return facets

    def close(self) -> None:
        self.closed = True


class MemoryIndex:
    """Per-source record lists; every write bumps the source generation."""

    def __init__(self, sources: Optional[Mapping[str, Iterable[Record]]] = None) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, List[Record]] = {}
        self._generations: Dict[str, int] = {}
        for name, records in (sources or {}).items():
            self.add(name, records)

    @property
    def sources(self) -> List[str]:
        with self._lock:
            return sorted(self._records)

    def add(self, source: str, records: Iterable[Record]) -> int:
        batch = list(records)
        with self._lock:
            self._records.setdefault(source, []).extend(batch)
            self._generations[source] = self._generations.get(source, 0) + 1
        logger.debug("Indexed %s records into %s", len(batch), source)
        return len(batch)

    def open_reader(self, source: str) -> Optional[MemoryReader]:
        with self._lock:
            if source not in self._records:
                return None
            return MemoryReader(source, tuple(self._records[source]), self._generations[source])

    def is_current(self, source: str, reader: MemoryReader) -> bool:
        with self._lock:
            return self._generations.get(source) == reader.generation
