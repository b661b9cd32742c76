from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import pytest

from logpipe.memory_index import MemoryIndex
from logpipe.models import Record

BASE_TIME = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)


def build_record(
    raw_text: str = "",
    minutes: Optional[float] = None,
    source: str = "app",
    **fields: str,
) -> Record:
    timestamp = None if minutes is None else BASE_TIME + timedelta(minutes=minutes)
    return Record(raw_text=raw_text, timestamp=timestamp, source=source, fields=dict(fields))


@pytest.fixture
def make_record() -> Callable[..., Record]:
    return build_record


@pytest.fixture
def error_index() -> MemoryIndex:
    app: List[Record] = [
        build_record("login failed", 0, level="ERROR", user="x"),
        build_record("login failed", 5, level="ERROR", user="x"),
        build_record("checkout ok", 10, level="INFO", user="y"),
        build_record("timeout", 20, level="ERROR", user="y"),
    ]
    gateway: List[Record] = [
        build_record("upstream failed", 3, source="gateway", level="ERROR", user="x"),
        build_record("healthy", 30, source="gateway", level="INFO", user="z"),
    ]
    sources: Dict[str, List[Record]] = {"app": app, "gateway": gateway}
    return MemoryIndex(sources)
