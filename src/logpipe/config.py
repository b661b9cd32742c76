"""Configuration dataclasses and helpers for the search service."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml


MergeOrder = Literal["sequential", "score", "timestamp_asc", "timestamp_desc"]


@dataclass
class StreamConfig:
    batch_size: int = 1000
    merge_order: MergeOrder = "sequential"


@dataclass
class PipeConfig:
    result_cap: int = 10000
    timezone: str = "UTC"


@dataclass
class PagingConfig:
    page_size: int = 50
    sort_cap: int = 10000
    facet_fields: list[str] = field(default_factory=list)


@dataclass
class SearchConfig:
    data_path: str = "data/samples"
    sources: list[str] = field(default_factory=list)
    log_level: str = "INFO"
    stream: StreamConfig = field(default_factory=StreamConfig)
    pipe: PipeConfig = field(default_factory=PipeConfig)
    search: PagingConfig = field(default_factory=PagingConfig)

    @property
    def data(self) -> Path:
        return Path(self.data_path).expanduser()


def _load_section(data: Dict[str, Any], section_key: str, target_type: Any) -> Any:
    section = data.get(section_key, {})
    return target_type(**section)


def load_search_config(path: str | Path) -> SearchConfig:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as handle:
        raw: Dict[str, Any] = yaml.safe_load(handle) or {}

    config = SearchConfig(
        data_path=raw.get("data_path", SearchConfig.data_path),
        sources=list(raw.get("sources") or []),
        log_level=raw.get("log_level", SearchConfig.log_level),
        stream=_load_section(raw, "stream", StreamConfig),
        pipe=_load_section(raw, "pipe", PipeConfig),
        search=_load_section(raw, "search", PagingConfig),
    )
    if config.stream.batch_size <= 0:
        raise ValueError(f"stream.batch_size must be positive, got {config.stream.batch_size}")
    try:
        ZoneInfo(config.pipe.timezone)
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        raise ValueError(f"pipe.timezone is not a known zone: {config.pipe.timezone!r}") from exc
    return config
