"""Shared logging helpers."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from time import perf_counter
from typing import Dict, Iterator, Optional

from rich.console import Console
from rich.logging import RichHandler


# Log output goes to stderr so rendered tables on stdout stay clean.
_CONSOLE = Console(width=120, stderr=True)
_LOGGER_CACHE: dict[str, logging.Logger] = {}
_GLOBAL_LEVEL: Optional[int] = None


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    if name in _LOGGER_CACHE:
        return _LOGGER_CACHE[name]

    handler = RichHandler(console=_CONSOLE, show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("[%(name)s] %(message)s"))

    logger = logging.getLogger(f"logpipe.{name}")
    logger.setLevel(_GLOBAL_LEVEL if _GLOBAL_LEVEL is not None else level)
    logger.addHandler(handler)
    logger.propagate = False

    _LOGGER_CACHE[name] = logger
    return logger


def set_global_log_level(level: int | str) -> None:
    """Apply ``level`` to every logpipe logger, including ones created later."""
    global _GLOBAL_LEVEL
    _GLOBAL_LEVEL = _resolve_level(level)
    for logger in _LOGGER_CACHE.values():
        logger.setLevel(_GLOBAL_LEVEL)


@contextmanager
def timed(
    logger: logging.Logger, label: str, timings: Optional[Dict[str, float]] = None
) -> Iterator[None]:
    start = perf_counter()
    try:
        yield
    finally:
        elapsed = perf_counter() - start
        if timings is not None:
            timings[f"{label}_seconds"] = elapsed
        logger.debug("%s took %.4fs", label, elapsed)
