"""Pipe queries over structured log sources."""

from .config import PagingConfig, PipeConfig, SearchConfig, StreamConfig, load_search_config
from .errors import (
    InvalidParameterError,
    InvalidPatternError,
    InvalidQueryError,
    LogpipeError,
    PipelineExecutionError,
    RetrievalError,
    UnknownCommandError,
)
from .memory_index import MemoryIndex
from .parser import ParsedQuery, StageSpec, parse
from .search import SearchRequest, SearchResponse, SearchService

__all__ = [
    "InvalidParameterError",
    "InvalidPatternError",
    "InvalidQueryError",
    "LogpipeError",
    "MemoryIndex",
    "PagingConfig",
    "ParsedQuery",
    "PipeConfig",
    "PipelineExecutionError",
    "RetrievalError",
    "SearchConfig",
    "SearchRequest",
    "SearchResponse",
    "SearchService",
    "StageSpec",
    "StreamConfig",
    "UnknownCommandError",
    "load_search_config",
    "parse",
]
