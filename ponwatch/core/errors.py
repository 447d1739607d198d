"""
Exception hierarchy for PONWATCH.

None of these conditions is fatal to the engine: malformed events are
skipped and counted, and filter or trace errors surface to the caller
(the CLI reports them with exit code 2).
"""

from __future__ import annotations


class PonwatchError(Exception):
    """Base class for all PONWATCH errors."""

    pass


class MalformedEventError(PonwatchError):
    """Raised when a raw record lacks a required field or has a bad value."""

    def __init__(self, message: str, field_name: str | None = None) -> None:
        super().__init__(message)
        self.field_name = field_name


class FilterSyntaxError(PonwatchError):
    """Raised for lexical or syntactic errors in a filter query."""

    pass


class TraceFormatError(PonwatchError):
    """Raised when a trace file cannot be read as event records."""

    pass
