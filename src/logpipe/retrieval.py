"""Boundary between the query engine and whatever stores the records."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Optional, Protocol, Sequence

from .logging_utils import get_logger
from .models import Record

logger = get_logger("Retrieval")

SCORE_SORT = "score"
TIMESTAMP_SORT = "timestamp"
PUSHABLE_SORTS = frozenset({SCORE_SORT, TIMESTAMP_SORT})


@dataclass(frozen=True)
class Hit:
    doc_id: int
    score: float = 0.0


@dataclass(frozen=True)
class TimeRange:
    """Inclusive epoch-millisecond bounds; either side may be open."""

    start: Optional[int] = None
    end: Optional[int] = None

    def contains(self, millis: Optional[int]) -> bool:
        if millis is None:
            return self.start is None and self.end is None
        if self.start is not None and millis < self.start:
            return False
        if self.end is not None and millis > self.end:
            return False
        return True


@dataclass(frozen=True)
class SortSpec:
    field: str = SCORE_SORT
    descending: bool = True

    @property
    def pushable(self) -> bool:
        return self.field in PUSHABLE_SORTS


class SourceReader(Protocol):
    def search(
        self,
        query: str,
        time_range: Optional[TimeRange] = None,
        limit: Optional[int] = None,
        sort: Optional[SortSpec] = None,
    ) -> List[Hit]:
        ...

    def count(self, query: str, time_range: Optional[TimeRange] = None) -> int:
        ...

    def fetch(self, doc_ids: Sequence[int]) -> List[Record]:
        ...

    def facet_counts(
        self, query: str, time_range: Optional[TimeRange], fields: Sequence[str]
    ) -> Mapping[str, Mapping[str, int]]:
        ...

    def close(self) -> None:
        ...


class RetrievalAdapter(Protocol):
    def open_reader(self, source: str) -> Optional[SourceReader]:
        ...

    def is_current(self, source: str, reader: SourceReader) -> bool:
        ...


class _Entry:
    def __init__(self, reader: SourceReader) -> None:
        self.reader = reader
        self.leases = 0
        self.retired = False


class ReaderCache:
    """Shares one reader per source between concurrent queries.

    A reader is reopened when the adapter reports it stale. Queries already
    holding the old reader keep it until their lease ends, after which it is
    closed.
    """

    def __init__(self, adapter: RetrievalAdapter) -> None:
        self.adapter = adapter
        self._lock = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    def _acquire(self, source: str) -> Optional[_Entry]:
        with self._lock:
            entry = self._entries.get(source)
            if entry is not None and not self.adapter.is_current(source, entry.reader):
                logger.debug("Refreshing stale reader for %s", source)
                entry.retired = True
                if entry.leases == 0:
                    entry.reader.close()
                del self._entries[source]
                entry = None
            if entry is None:
                reader = self.adapter.open_reader(source)
                if reader is None:
                    return None
                entry = _Entry(reader)
                self._entries[source] = entry
            entry.leases += 1
            return entry

    def _release(self, entry: _Entry) -> None:
        with self._lock:
            entry.leases -= 1
            if entry.retired and entry.leases == 0:
                entry.reader.close()

    @contextmanager
    def lease(self, source: str) -> Iterator[Optional[SourceReader]]:
        """Yield the current reader for ``source``, or None if it is unknown."""
        entry = self._acquire(source)
        if entry is None:
            yield None
            return
        try:
            yield entry.reader
        finally:
            self._release(entry)

    def cached_sources(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    def close(self) -> None:
        with self._lock:
            for entry in self._entries.values():
                entry.retired = True
                if entry.leases == 0:
                    entry.reader.close()
            self._entries.clear()
