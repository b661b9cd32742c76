"""Registry that turns parsed stage specs into executable stages.

Each pipe command maps to one builder; builders validate their arguments
eagerly so a malformed stage rejects the whole query before retrieval.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Union

from ..errors import InvalidParameterError, UnknownCommandError
from ..parser import ParsedQuery, StageSpec
from .base import split_aggregations, strip_quotes
from .chart import ChartStage
from .export import ExportStage
from .filter import FilterStage
from .stats import StatsStage
from .timechart import DEFAULT_SPAN, TimeChartStage
from .transform import TransformStage

Stage = Union[FilterStage, TransformStage, StatsStage, ChartStage, TimeChartStage, ExportStage]

StageBuilder = Callable[[StageSpec, str], Stage]

_REGISTRY: Dict[str, StageBuilder] = {}


def register_stage(command: str) -> Callable[[StageBuilder], StageBuilder]:
    def _decorator(builder: StageBuilder) -> StageBuilder:
        if command in _REGISTRY:
            raise KeyError(f"Stage builder already registered for '{command}'")
        _REGISTRY[command] = builder
        return builder

    return _decorator


def known_commands() -> List[str]:
    return sorted(_REGISTRY)


def build_stage(spec: StageSpec, timezone: str = "UTC") -> Stage:
    builder = _REGISTRY.get(spec.command.lower())
    if builder is None:
        raise UnknownCommandError(spec.command)
    return builder(spec, timezone)


def build_stages(parsed: ParsedQuery, timezone: str = "UTC") -> List[Stage]:
    return [build_stage(spec, timezone) for spec in parsed.stages]


def _index_of(args: List[str], keyword: str) -> int:
    for idx, arg in enumerate(args):
        if arg.lower() == keyword:
            return idx
    return -1


def _param(spec: StageSpec, key: str, default: Optional[str] = None) -> Optional[str]:
    value = spec.param(key, default)
    return strip_quotes(value) if value is not None else None


def _usage(operation: str, syntax: str) -> InvalidParameterError:
    return InvalidParameterError(f"{operation} syntax: {syntax}", stage="transform", parameter=operation)


@register_stage("stats")
def _build_stats(spec: StageSpec, timezone: str) -> StatsStage:
    aggregations, group_by = split_aggregations(spec.args)
    return StatsStage.create(aggregations, group_by)


@register_stage("chart")
def _build_chart(spec: StageSpec, timezone: str) -> ChartStage:
    aggregations, group_by = split_aggregations(spec.args)
    return ChartStage(StatsStage.create(aggregations, group_by), _param(spec, "type", "bar"))


@register_stage("timechart")
def _build_timechart(spec: StageSpec, timezone: str) -> TimeChartStage:
    aggregations, split = split_aggregations(spec.args, single_split=True)
    return TimeChartStage.create(
        span=_param(spec, "span", DEFAULT_SPAN),
        aggregations=aggregations,
        split_by=split[0] if split else None,
        timezone=timezone,
    )


@register_stage("filter")
def _build_filter(spec: StageSpec, timezone: str) -> FilterStage:
    args = spec.args
    if len(args) < 3:
        raise InvalidParameterError(
            "Filter requires field, operator, and value: filter <field> <operator> <value>",
            stage="filter",
        )
    value = strip_quotes(" ".join(args[2:]))
    return FilterStage.create(args[0], args[1], value)


@register_stage("transform")
def _build_transform(spec: StageSpec, timezone: str) -> TransformStage:
    args = spec.args
    if not args:
        raise InvalidParameterError(
            "Transform requires an operation: rename, extract, replace, merge, eval, or remove",
            stage="transform",
        )
    operation = args[0].lower()

    if operation == "rename":
        if len(args) < 4 or args[2].lower() != "as":
            raise _usage("rename", "transform rename <field> as <newname>")
        return TransformStage.rename(args[1], args[3])

    if operation == "extract":
        regex_idx, as_idx = _index_of(args, "regex"), _index_of(args, "as")
        if len(args) < 6 or regex_idx < 0 or as_idx < 0:
            raise _usage("extract", 'transform extract <field> regex "pattern" as <newfield>')
        return TransformStage.extract(args[1], args[regex_idx + 1], args[as_idx + 1])

    if operation == "replace":
        regex_idx, with_idx = _index_of(args, "regex"), _index_of(args, "with")
        if len(args) < 6 or regex_idx < 0 or with_idx < 0:
            raise _usage("replace", 'transform replace <field> regex "pattern" with "replacement"')
        return TransformStage.replace(args[1], args[regex_idx + 1], args[with_idx + 1])

    if operation == "merge":
        as_idx = _index_of(args, "as")
        if len(args) < 4 or as_idx < 0 or as_idx + 1 >= len(args):
            raise _usage("merge", 'transform merge <field1,field2,...> as <newfield> [separator="sep"]')
        sources = [name.strip() for name in args[1].split(",") if name.strip()]
        separator = _param(spec, "separator", "")
        return TransformStage.merge(sources, args[as_idx + 1], separator)

    if operation == "eval":
        if "=" in args and args.index("=") == 2 and len(args) >= 4:
            return TransformStage.eval(args[1], " ".join(args[3:]))
        if len(args) == 1 and len(spec.params) == 1:
            # compact form: transform eval total=a+b
            target, expression = next(iter(spec.params.items()))
            return TransformStage.eval(target, expression)
        raise _usage("eval", "transform eval <newfield> = <expression>")

    if operation == "remove":
        if len(args) < 2:
            raise _usage("remove", "transform remove <field>")
        return TransformStage.remove(args[1])

    raise InvalidParameterError(
        f"Unknown transform operation: {operation}", stage="transform", parameter=operation
    )


@register_stage("export")
def _build_export(spec: StageSpec, timezone: str) -> ExportStage:
    target = _param(spec, "table")
    if not target:
        raise InvalidParameterError(
            "Export command requires 'table' parameter", stage="export", parameter="table"
        )

    fields = None
    fields_param = _param(spec, "fields")
    if fields_param:
        fields = tuple(name.strip() for name in fields_param.split(",") if name.strip())

    sample_size = None
    sample_param = _param(spec, "sample")
    if sample_param:
        try:
            sample_size = int(sample_param)
        except ValueError as exc:
            raise InvalidParameterError(
                f"Invalid sample size: {sample_param}", stage="export", parameter="sample"
            ) from exc

    append = (_param(spec, "append", "true") or "").lower() == "true"
    return ExportStage(target=target, fields=fields, sample_size=sample_size, append=append)
