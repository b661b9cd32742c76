"""Exception hierarchy for query parsing, stage execution and retrieval."""

from __future__ import annotations

from typing import Optional


class LogpipeError(Exception):
    """Base class for every error raised by logpipe."""


class InvalidQueryError(LogpipeError):
    """The query was rejected before any retrieval ran."""

    def __init__(
        self, message: str, stage: Optional[str] = None, parameter: Optional[str] = None
    ) -> None:
        self.stage = stage
        self.parameter = parameter
        prefix = f"[{stage}] " if stage else ""
        super().__init__(f"{prefix}{message}")


class UnknownCommandError(InvalidQueryError):
    def __init__(self, command: str) -> None:
        super().__init__(f"Unknown pipe command: {command}", stage=command)
        self.command = command


class InvalidPatternError(InvalidQueryError):
    def __init__(self, stage: str, pattern: str, reason: str) -> None:
        super().__init__(
            f"Invalid regex pattern {pattern!r}: {reason}", stage=stage, parameter="regex"
        )
        self.pattern = pattern


class InvalidParameterError(InvalidQueryError):
    pass


class PipelineExecutionError(LogpipeError):
    """A stage failed while running; the rest of the chain was abandoned."""

    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage
        super().__init__(f"Pipe command error in '{stage}': {message}")


class RetrievalError(LogpipeError):
    """The retrieval adapter could not serve a source."""

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        super().__init__(f"Retrieval failed for source '{source}': {message}")
