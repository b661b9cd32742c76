import pytest

from logpipe.errors import InvalidParameterError
from logpipe.models import ChartResult, LogsResult, TableResult, TimeChartResult
from logpipe.parser import parse_stage
from logpipe.stages import build_stage
from logpipe.stages.timechart import parse_span


def _stage(text: str, timezone: str = "UTC"):
    return build_stage(parse_stage(text), timezone)


def test_chart_from_records(make_record):
    records = [make_record(level=level) for level in ("ERROR", "INFO", "ERROR")]
    chart = _stage("chart count by level type=pie").execute(LogsResult(records))
    assert isinstance(chart, ChartResult)
    assert chart.chart_type == "pie"
    assert chart.labels == ["ERROR", "INFO"]
    assert chart.series == {"count": [2, 1]}
    assert chart.source_hits == 3


def test_chart_defaults_to_bar(make_record):
    chart = _stage("chart count by level").execute(LogsResult([make_record(level="INFO")]))
    assert chart.chart_type == "bar"


def test_chart_from_table_uses_first_column():
    rows = [{"host": "h1", "count": 4}, {"host": "h2", "count": "?"}]
    table = TableResult(["host", "count"], rows, 5)
    chart = _stage("chart count").execute(table)
    assert chart.labels == ["h1", "h2"]
    assert chart.series == {"count": [4, 0]}
    assert chart.source_hits == 5


def test_timechart_hourly_buckets(make_record):
    records = [make_record(minutes=0), make_record(minutes=60)]
    chart = _stage("timechart span=1h count").execute(LogsResult(records))
    assert isinstance(chart, TimeChartResult)
    assert chart.labels == ["2024-03-01 10:00", "2024-03-01 11:00"]
    assert chart.series == {"count": [1, 1]}


def test_timechart_buckets_are_contiguous(make_record):
    records = [make_record(minutes=1), make_record(minutes=2), make_record(minutes=31)]
    chart = _stage("timechart span=10m count").execute(LogsResult(records))
    assert chart.labels == [
        "2024-03-01 10:00",
        "2024-03-01 10:10",
        "2024-03-01 10:20",
        "2024-03-01 10:30",
    ]
    assert chart.series == {"count": [2, 0, 0, 1]}
    assert sum(chart.series["count"]) == len(records)


def test_timechart_split_by_field(make_record):
    records = [
        make_record(minutes=0, level="ERROR"),
        make_record(minutes=70, level="INFO"),
        make_record(minutes=75),
    ]
    chart = _stage("timechart span=1h count by level").execute(LogsResult(records))
    assert chart.series == {"ERROR": [1, 0], "INFO": [0, 1], "count": [0, 1]}
    for values in chart.series.values():
        assert len(values) == len(chart.labels)


def test_timechart_skips_records_without_timestamp(make_record):
    chart = _stage("timechart count").execute(LogsResult([make_record(), make_record(minutes=5)]))
    assert chart.series == {"count": [1]}
    assert chart.source_hits == 2


def test_timechart_with_no_timestamps_is_empty(make_record):
    chart = _stage("timechart count").execute(LogsResult([make_record()]))
    assert chart.labels == []
    assert chart.series == {}


def test_timechart_labels_follow_timezone(make_record):
    chart = _stage("timechart span=1h count", timezone="Asia/Tokyo").execute(
        LogsResult([make_record(minutes=0)])
    )
    assert chart.labels == ["2024-03-01 19:00"]


@pytest.mark.parametrize(
    "span, millis",
    [("30s", 30_000), ("5m", 300_000), ("2h", 7_200_000), ("1d", 86_400_000), ("3w", 3_600_000)],
)
def test_parse_span(span, millis):
    assert parse_span(span) == millis


@pytest.mark.parametrize("span", ["0m", "m", "abc"])
def test_invalid_span_rejected(span):
    with pytest.raises(InvalidParameterError):
        parse_span(span)


def test_terminal_chart_passes_through():
    chart = ChartResult("bar", ["a"], {"count": [1.0]})
    assert _stage("timechart count").execute(chart) is chart


def test_quoted_chart_type_and_span(make_record):
    chart = _stage('chart count by level type="pie"').execute(LogsResult([make_record(level="x")]))
    assert chart.chart_type == "pie"
    assert _stage('timechart span="5m" count').span_millis == 300_000


@pytest.mark.parametrize("timezone", ["Mars/Olympus", ""])
def test_unknown_timezone_rejected(timezone):
    with pytest.raises(InvalidParameterError) as excinfo:
        _stage("timechart count", timezone=timezone)
    assert excinfo.value.parameter == "timezone"
