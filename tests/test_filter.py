import pytest

from logpipe.errors import InvalidParameterError, InvalidPatternError
from logpipe.models import ChartResult, LogsResult, TableResult
from logpipe.parser import parse_stage
from logpipe.stages import FilterStage, build_stage


def _filter(text: str) -> FilterStage:
    return build_stage(parse_stage(text))


def test_filters_records_on_field(make_record):
    records = [make_record(level="ERROR"), make_record(level="INFO"), make_record()]
    result = _filter("filter level = ERROR").execute(LogsResult(records))
    assert [r.get("level") for r in result.records] == ["ERROR"]


def test_numeric_comparison_on_table():
    table = TableResult(["user", "count"], [{"user": "x", "count": 3}, {"user": "y", "count": 1}], 4)
    result = _filter("filter count > 1").execute(table)
    assert result.rows == [{"user": "x", "count": 3}]
    assert result.columns == ["user", "count"]
    assert result.source_hits == 4


def test_numeric_comparison_beats_lexicographic(make_record):
    records = [make_record(status="200"), make_record(status="1000")]
    result = _filter("filter status >= 500").execute(LogsResult(records))
    assert [r.get("status") for r in result.records] == ["1000"]


def test_string_operators(make_record):
    records = [make_record(path="/api/login"), make_record(path="/static/app.js")]
    assert len(_filter("filter path startswith /api").execute(LogsResult(records)).records) == 1
    assert len(_filter("filter path endswith .js").execute(LogsResult(records)).records) == 1
    assert len(_filter("filter path contains log").execute(LogsResult(records)).records) == 1
    assert len(_filter("filter path != /api/login").execute(LogsResult(records)).records) == 1


def test_regex_operators(make_record):
    records = [make_record(msg="took 120ms"), make_record(msg="took long")]
    matched = _filter('filter msg regex "\\d+ms"').execute(LogsResult(records))
    assert [r.get("msg") for r in matched.records] == ["took 120ms"]
    unmatched = _filter('filter msg !regex "\\d+ms"').execute(LogsResult(records))
    assert [r.get("msg") for r in unmatched.records] == ["took long"]


def test_value_with_spaces_is_joined(make_record):
    records = [make_record(msg="disk is full"), make_record(msg="disk ok")]
    result = _filter("filter msg = disk is full").execute(LogsResult(records))
    assert len(result.records) == 1


def test_filter_is_idempotent(make_record):
    stage = _filter("filter level = ERROR")
    records = [make_record(level=level) for level in ("ERROR", "INFO", "ERROR", "WARN")]
    once = stage.execute(LogsResult(records))
    twice = stage.execute(once)
    assert once.records == twice.records


def test_filter_never_grows_input(make_record):
    records = [make_record(n=str(n)) for n in range(10)]
    result = _filter("filter n < 4").execute(LogsResult(records))
    assert len(result.records) == 4
    assert all(record in records for record in result.records)


def test_terminal_results_pass_through():
    chart = ChartResult("bar", ["a"], {"count": [1.0]})
    assert _filter("filter count > 0").execute(chart) is chart


def test_missing_arguments_rejected():
    with pytest.raises(InvalidParameterError):
        _filter("filter level")


def test_unknown_operator_rejected():
    with pytest.raises(InvalidParameterError):
        _filter("filter level ~ ERROR")


def test_invalid_regex_rejected():
    with pytest.raises(InvalidPatternError) as excinfo:
        _filter('filter msg regex "(unclosed"')
    assert excinfo.value.stage == "filter"
    assert excinfo.value.parameter == "regex"


def test_nan_never_satisfies_ordering(make_record):
    records = [make_record(latency="nan"), make_record(latency="3")]
    assert _filter("filter latency >= 5").execute(LogsResult(records)).records == []
    below = _filter("filter latency <= 1").execute(LogsResult(records))
    assert below.records == []
    assert len(_filter("filter latency != 3").execute(LogsResult(records)).records) == 1


def test_underscored_digits_compare_as_text(make_record):
    records = [make_record(size="1_000")]
    assert _filter("filter size > 50").execute(LogsResult(records)).records == []
