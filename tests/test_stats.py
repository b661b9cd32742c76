import pytest

from logpipe.errors import InvalidParameterError
from logpipe.models import LogsResult, TableResult
from logpipe.parser import parse_stage
from logpipe.stages import StatsStage, build_stage


def _stats(text: str) -> StatsStage:
    return build_stage(parse_stage(text))


def test_avg_by_user_orders_by_first_aggregation(make_record):
    records = [
        make_record(user="a", dur="120ms"),
        make_record(user="b", dur="80ms"),
        make_record(user="a", dur="40ms"),
    ]
    table = _stats("stats avg(dur) by user").execute(LogsResult(records))
    assert isinstance(table, TableResult)
    assert table.columns == ["user", "avg(dur)"]
    assert table.rows == [{"user": "a", "avg(dur)": 80.0}, {"user": "b", "avg(dur)": 80.0}]
    assert table.source_hits == 3


def test_count_without_group_by_is_single_row(make_record):
    table = _stats("stats count").execute(LogsResult([make_record() for _ in range(5)]))
    assert table.rows == [{"count": 5}]


def test_empty_input_without_group_by(make_record):
    table = _stats("stats count avg(dur)").execute(LogsResult([]))
    assert table.rows == [{"count": 0, "avg(dur)": 0.0}]


def test_default_aggregation_is_count(make_record):
    stage = _stats("stats by level")
    assert [agg.expression for agg in stage.aggregations] == ["count"]
    assert stage.group_by == ("level",)


def test_one_row_per_distinct_group(make_record):
    records = [make_record(level=level) for level in ("ERROR", "INFO", "ERROR", "WARN", "ERROR")]
    table = _stats("stats count by level").execute(LogsResult(records))
    assert table.rows == [
        {"level": "ERROR", "count": 3},
        {"level": "INFO", "count": 1},
        {"level": "WARN", "count": 1},
    ]
    assert sum(row["count"] for row in table.rows) == len(records)


def test_missing_group_field_groups_under_empty_string(make_record):
    records = [make_record(user="a"), make_record()]
    table = _stats("stats count by user").execute(LogsResult(records))
    assert {row["user"] for row in table.rows} == {"a", ""}


def test_sum_min_max_dc(make_record):
    records = [
        make_record(host="h1", bytes="10"),
        make_record(host="h2", bytes="30"),
        make_record(host="h1", bytes="n/a"),
        make_record(host="h3"),
    ]
    table = _stats("stats sum(bytes) min(bytes) max(bytes) dc(host)").execute(LogsResult(records))
    assert table.rows == [
        {"sum(bytes)": 40.0, "min(bytes)": 10.0, "max(bytes)": 30.0, "dc(host)": 3}
    ]


def test_avg_ignores_non_numeric_values(make_record):
    records = [make_record(dur="100"), make_record(dur="oops"), make_record()]
    table = _stats("stats avg(dur)").execute(LogsResult(records))
    assert table.rows == [{"avg(dur)": 100.0}]


def test_multiple_group_fields(make_record):
    records = [
        make_record(level="ERROR", host="h1"),
        make_record(level="ERROR", host="h2"),
        make_record(level="ERROR", host="h1"),
    ]
    table = _stats("stats count by level host").execute(LogsResult(records))
    assert table.columns == ["level", "host", "count"]
    assert table.rows[0] == {"level": "ERROR", "host": "h1", "count": 2}


def test_joined_keys_that_collide_share_a_group(make_record):
    records = [make_record(a="x|y", b="z"), make_record(a="x", b="y|z")]
    table = _stats("stats count by a b").execute(LogsResult(records))
    assert table.rows == [{"a": "x|y", "b": "z", "count": 2}]


def test_duplicate_expressions_collapse():
    stage = _stats("stats count count by user user")
    assert stage.columns == ["user", "count"]


def test_table_input_passes_through():
    table = TableResult(["count"], [{"count": 1}])
    assert _stats("stats count").execute(table) is table


def test_unknown_aggregation_rejected():
    with pytest.raises(InvalidParameterError):
        _stats("stats median(dur)")
