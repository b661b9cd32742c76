"""Typer CLI entrypoints."""

from __future__ import annotations

from pathlib import Path
from time import perf_counter
from typing import Dict, List, Optional

import pandas as pd
import typer
from rich.console import Console
from rich.table import Table

from .benchmark import benchmark_queries, results_to_frame
from .config import SearchConfig, load_search_config
from .data_loader import load_sources
from .errors import LogpipeError
from .logging_utils import get_logger, set_global_log_level
from .memory_index import MemoryIndex
from .models import (
    ChartResult,
    ExportResult,
    LogsResult,
    PipeResult,
    Record,
    TableResult,
    TimeChartResult,
)
from .parser import parse
from .retrieval import SCORE_SORT, TimeRange
from .search import SearchRequest, SearchResponse, SearchService
from .sink import FrameSink

app = typer.Typer(add_completion=False, help="Pipe queries over structured log sources")
console = Console()
logger = get_logger("CLI")

PREVIEW_ROWS = 20


def _build_service(config_path: Path) -> tuple[SearchService, SearchConfig]:
    try:
        config = load_search_config(config_path)
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc
    set_global_log_level(config.log_level)
    index = MemoryIndex(load_sources(config.data))
    if not config.sources:
        config.sources = index.sources
    logger.debug("Loaded sources %s from %s", index.sources, config.data)
    return SearchService(index, config), config


def _sort_descending(sort_field: str, descending: Optional[bool]) -> bool:
    # score ranks best first unless a direction is given
    if descending is not None:
        return descending
    return sort_field == SCORE_SORT


def _format_stage_name(key: str) -> str:
    label = key.replace("_seconds", "").replace("_", " ").strip()
    return label.title() if label else key


def _print_timings(title: str, timings: Dict[str, float]) -> None:
    if not timings:
        return
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Stage")
    table.add_column("Seconds", justify="right")
    for stage, seconds in timings.items():
        table.add_row(_format_stage_name(stage), f"{seconds:.4f}")
    console.print(table)


def _print_frame(title: str, frame: pd.DataFrame, limit: Optional[int] = None) -> None:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    for column in frame.columns:
        table.add_column(str(column))
    rows = frame if limit is None else frame.head(limit)
    for _, row in rows.iterrows():
        table.add_row(*("" if pd.isna(row[col]) else str(row[col]) for col in frame.columns))
    console.print(table)


def _print_records(title: str, records: List[Record]) -> None:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Timestamp")
    table.add_column("Source")
    table.add_column("Score", justify="right")
    table.add_column("Message")
    for record in records:
        timestamp = record.timestamp.isoformat() if record.timestamp else ""
        preview = record.raw_text[:120].replace("\n", " ")
        table.add_row(timestamp, record.collection or "", f"{record.score:.2f}", preview)
    console.print(table)


def _print_series(title: str, labels: List[str], series: Dict[str, List[float]]) -> None:
    frame = pd.DataFrame(series, index=labels)
    frame.index.name = "label"
    _print_frame(title, frame.reset_index())


def _render(response: SearchResponse) -> None:
    result: PipeResult = response.pipe_result or LogsResult(response.results)
    match result:
        case TableResult():
            _print_frame(f"Table ({result.source_hits} source hits)", result.to_frame())
        case ChartResult(chart_type=chart_type, labels=labels, series=series):
            _print_series(f"Chart: {chart_type}", labels, series)
        case TimeChartResult(labels=labels, series=series):
            _print_series("Time chart", labels, series)
        case ExportResult():
            summary = result.deliver(FrameSink())
            console.print(
                f"[bold green]Exported[/bold green] {summary.rows_written} of "
                f"{result.total_results} results to '{summary.target}'"
            )
            _print_frame(f"Preview: {summary.target}", result.to_frame(), limit=PREVIEW_ROWS)
        case LogsResult(records=records):
            title = "Results"
            if response.pipe_result is None:
                title = f"Results (page {response.page + 1} of {response.total_pages})"
            _print_records(title, records)
            for name, counts in response.facets.items():
                facet = pd.DataFrame(
                    sorted(counts.items(), key=lambda item: item[1], reverse=True),
                    columns=[name, "count"],
                )
                _print_frame(f"Facet: {name}", facet, limit=10)


@app.command()
def search(
    query: str = typer.Argument(..., help="Base filter optionally followed by | stages"),
    config_path: Path = typer.Option(Path("configs/default.yaml"), "--config", "-c"),
    sources: Optional[List[str]] = typer.Option(
        None, "--source", "-s", help="Restrict the query to these sources"
    ),
    page: int = typer.Option(0, "--page", min=0),
    page_size: Optional[int] = typer.Option(None, "--page-size", min=1),
    sort_field: str = typer.Option(SCORE_SORT, "--sort", help="score, timestamp or a field name"),
    descending: Optional[bool] = typer.Option(
        None, "--desc/--asc", help="Sort direction; defaults to descending for score only"
    ),
    facets: bool = typer.Option(True, "--facets/--no-facets"),
    since: Optional[int] = typer.Option(None, "--since", help="Epoch millis lower bound"),
    until: Optional[int] = typer.Option(None, "--until", help="Epoch millis upper bound"),
    measure: bool = typer.Option(False, "--measure", help="Print load and query timings"),
) -> None:
    timings: Dict[str, float] = {}
    start = perf_counter()
    service, _ = _build_service(config_path)
    timings["load_seconds"] = perf_counter() - start

    time_range = TimeRange(since, until) if since is not None or until is not None else None
    request = SearchRequest(
        sources=list(sources or []),
        query=query,
        page=page,
        page_size=page_size,
        sort_field=sort_field,
        sort_descending=_sort_descending(sort_field, descending),
        include_facets=facets,
        time_range=time_range,
    )
    query_start = perf_counter()
    try:
        response = service.search(request)
    except LogpipeError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc
    finally:
        service.close()
    timings.update(response.timings)
    timings["query_seconds"] = perf_counter() - query_start

    console.print(
        f"[bold green]{response.result_type.value}[/bold green] "
        f"{response.total_hits} hits ({response.filtered_hits} after filters)"
    )
    _render(response)
    if measure:
        _print_timings("Query Timings", timings)


@app.command("parse")
def parse_query(query: str = typer.Argument(..., help="Query to split into stages")) -> None:
    parsed = parse(query)
    console.print(f"[bold]Base filter:[/bold] {parsed.base_filter}")
    if not parsed.has_stages:
        return
    table = Table(title="Stages", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Command")
    table.add_column("Args")
    table.add_column("Params")
    for idx, spec in enumerate(parsed.stages, start=1):
        params = ", ".join(f"{key}={value}" for key, value in spec.params.items())
        table.add_row(str(idx), spec.command, " ".join(repr(arg) for arg in spec.args), params)
    console.print(table)


@app.command()
def benchmark(
    queries: List[str] = typer.Argument(..., help="Queries to time", metavar="QUERY"),
    config_path: Path = typer.Option(Path("configs/default.yaml"), "--config", "-c"),
    repeat: int = typer.Option(3, "--repeat", "-r", min=1),
) -> None:
    service, _ = _build_service(config_path)
    try:
        results = benchmark_queries(service, queries, repeat)
    except LogpipeError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc
    finally:
        service.close()
    frame = results_to_frame(results)
    table = Table(title="Query Benchmarks", show_lines=False)
    for column in frame.columns:
        table.add_column(column)
    for _, row in frame.iterrows():
        table.add_row(*(str(row[col]) for col in frame.columns))
    console.print(table)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
