"""Pipe stages and the registry that builds them."""

from .chart import ChartStage
from .export import ExportStage
from .factory import Stage, build_stage, build_stages, known_commands
from .filter import FilterStage
from .stats import StatsStage
from .timechart import TimeChartStage
from .transform import TransformStage

__all__ = [
    "ChartStage",
    "ExportStage",
    "FilterStage",
    "Stage",
    "StatsStage",
    "TimeChartStage",
    "TransformStage",
    "build_stage",
    "build_stages",
    "known_commands",
]
