from logpipe.memory_index import MemoryIndex, parse_filter
from logpipe.retrieval import SortSpec


def test_parse_filter_terms():
    assert parse_filter("*") == []
    assert parse_filter(None) == []
    terms = parse_filter("level:ERROR timeout")
    assert [(term.field, term.value) for term in terms] == [("level", "error"), (None, "timeout")]


def test_field_terms_support_wildcards(make_record):
    index = MemoryIndex({"app": [make_record(host="web-1"), make_record(host="db-1")]})
    reader = index.open_reader("app")
    assert reader.count("host:web-*") == 1
    assert reader.count("host:*-1") == 2
    assert reader.count("missing:*") == 0


def test_terms_are_anded(make_record):
    index = MemoryIndex(
        {"app": [make_record("disk full", level="ERROR"), make_record("disk ok", level="INFO")]}
    )
    reader = index.open_reader("app")
    assert reader.count("disk level:error") == 1
    assert reader.count("DISK") == 2


def test_timestamp_sort_puts_missing_last(make_record):
    records = [make_record("late", minutes=9), make_record("none"), make_record("early", minutes=1)]
    reader = MemoryIndex({"app": records}).open_reader("app")
    hits = reader.search("*", sort=SortSpec("timestamp", descending=False))
    assert [reader.records[hit.doc_id].raw_text for hit in hits] == ["early", "late", "none"]


def test_snapshots_are_immutable(make_record):
    index = MemoryIndex({"app": [make_record("one")]})
    reader = index.open_reader("app")
    index.add("app", [make_record("two")])
    assert reader.count("*") == 1
    assert not index.is_current("app", reader)
    assert index.open_reader("app").count("*") == 2
    assert index.open_reader("other") is None
