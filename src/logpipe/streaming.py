"""Lazy record streams over one or many sources.

``BatchedSourceIterator`` materializes one source's ranked hits in fixed
size batches; ``MultiSourceIterator`` chains or k-way merges several of
them. Neither is safe to share between threads or queries.
"""

from __future__ import annotations

import heapq
from functools import cmp_to_key
from itertools import chain
from typing import Callable, Iterator, List, Optional, Sequence

from .errors import RetrievalError
from .logging_utils import get_logger
from .models import Record
from .retrieval import Hit, SourceReader

DEFAULT_BATCH_SIZE = 1000

Comparator = Callable[[Record, Record], int]

logger = get_logger("Streaming")


def by_score_desc(a: Record, b: Record) -> int:
    return (a.score < b.score) - (a.score > b.score)


def by_timestamp(descending: bool = False) -> Comparator:
    """Order by timestamp; records without one sort last either way."""

    def _compare(a: Record, b: Record) -> int:
        ta, tb = a.timestamp_millis, b.timestamp_millis
        if ta is None or tb is None:
            return (ta is None) - (tb is None)
        cmp = (ta > tb) - (ta < tb)
        return -cmp if descending else cmp

    return _compare


def by_field(name: str, descending: bool = False) -> Comparator:
    """Order by a field as text; missing values sort first ascending, last descending."""

    def _compare(a: Record, b: Record) -> int:
        va, vb = a.get(name), b.get(name)
        if va is None or vb is None:
            missing_first = (vb is None) - (va is None)
            return -missing_first if descending else missing_first
        cmp = (va > vb) - (va < vb)
        return -cmp if descending else cmp

    return _compare


class BatchedSourceIterator(Iterator[Record]):
    def __init__(
        self,
        reader: SourceReader,
        hits: Sequence[Hit],
        collection: str,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.reader = reader
        self.hits = hits
        self.collection = collection
        self.batch_size = batch_size
        self._position = 0
        self._batch: List[Record] = []
        self._batch_start = 0
        self.batches_fetched = 0

    def has_next(self) -> bool:
        return self._position < len(self.hits)

    def _fetch_batch(self) -> None:
        start = self._position
        window = self.hits[start : start + self.batch_size]
        try:
            records = self.reader.fetch([hit.doc_id for hit in window])
        except Exception as exc:
            logger.error("Error fetching %s results at offset %s", self.collection, start)
            raise RetrievalError(self.collection, str(exc)) from exc
        if len(records) != len(window):
            raise RetrievalError(
                self.collection, f"reader returned {len(records)} records for {len(window)} hits"
            )
        self._batch = [
            record.with_hit(hit.score, self.collection) for hit, record in zip(window, records)
        ]
        self._batch_start = start
        self.batches_fetched += 1

    def __iter__(self) -> "BatchedSourceIterator":
        return self

    def __next__(self) -> Record:
        if not self.has_next():
            raise StopIteration
        if self._position >= self._batch_start + len(self._batch):
            self._fetch_batch()
        record = self._batch[self._position - self._batch_start]
        self._position += 1
        return record


class MultiSourceIterator(Iterator[Record]):
    """One logical stream over several per-source iterators.

    Without a comparator sources are drained one after another. With one,
    the sources are assumed to be individually ordered by it and are merged
    lazily, holding at most one pending record per source; ties go to the
    earlier source.
    """

    def __init__(
        self, iterators: Sequence[Iterator[Record]], comparator: Optional[Comparator] = None
    ) -> None:
        self.comparator = comparator
        if comparator is None:
            self._stream: Iterator[Record] = chain.from_iterable(iterators)
        else:
            self._stream = heapq.merge(*iterators, key=cmp_to_key(comparator))
        self._pending: Optional[Record] = None
        self._has_pending = False

    def has_next(self) -> bool:
        if not self._has_pending:
            try:
                self._pending = next(self._stream)
            except StopIteration:
                return False
            self._has_pending = True
        return True

    def peek(self) -> Record:
        if not self.has_next():
            raise StopIteration
        return self._pending

    def __iter__(self) -> "MultiSourceIterator":
        return self

    def __next__(self) -> Record:
        if not self.has_next():
            raise StopIteration
        record = self._pending
        self._pending = None
        self._has_pending = False
        return record


def comparator_for(merge_order: str) -> Optional[Comparator]:
    if merge_order == "score":
        return by_score_desc
    if merge_order == "timestamp_asc":
        return by_timestamp(descending=False)
    if merge_order == "timestamp_desc":
        return by_timestamp(descending=True)
    if merge_order == "sequential":
        return None
    raise ValueError(f"Unsupported merge order: {merge_order}")
