"""
Structured logging for the analysis engine.

Provides configurable log levels (silent, normal, verbose, debug)
with consistent formatting for batch progress, per-event lines,
integrity verdicts, and analysis statistics.
"""

from __future__ import annotations

import sys
from enum import Enum
from typing import Any, Dict, Iterable, TextIO


class LogLevel(Enum):
    """
    Logging levels for the engine.

    SILENT:  No output at all.
    NORMAL:  Warnings and the final verdict.
    VERBOSE: Batch progress and statistics.
    DEBUG:   Detailed per-event processing output.
    """

    SILENT = 0
    NORMAL = 1
    VERBOSE = 2
    DEBUG = 3


class AnalysisLogger:
    """
    Structured logger for the analysis engine.

    Output is filtered by the configured log level.

    Attributes:
        level: The minimum log level to display.
        stream: The output stream (defaults to stdout).
    """

    def __init__(
        self,
        level: LogLevel = LogLevel.NORMAL,
        stream: TextIO = sys.stdout,
    ) -> None:
        """
        Initialize logger with level and output stream.

        Args:
            level: Minimum log level to display.
            stream: Output stream (default: sys.stdout).
        """
        self.level: LogLevel = level
        self.stream: TextIO = stream

    def debug(self, message: str, **kwargs: Any) -> None:
        """
        Log a debug message (only shown at DEBUG level).

        Args:
            message: The message to log.
            **kwargs: Additional key-value pairs to include.
        """
        if self.level.value >= LogLevel.DEBUG.value:
            self._write(f"[DEBUG] {message}")
            for k, v in kwargs.items():
                self._write(f"  {k}: {v}")

    def info(self, message: str, **kwargs: Any) -> None:
        """
        Log an info message (shown at VERBOSE and DEBUG levels).

        Args:
            message: The message to log.
            **kwargs: Additional key-value pairs to include.
        """
        if self.level.value >= LogLevel.VERBOSE.value:
            self._write(f"[INFO] {message}")
            for k, v in kwargs.items():
                self._write(f"  {k}: {v}")

    def warning(self, message: str) -> None:
        """Log a warning (shown at NORMAL level and above)."""
        if self.level.value >= LogLevel.NORMAL.value:
            self._write(f"[WARN] {message}")

    def verdict(self, findings: int) -> None:
        """
        Log the integrity verdict (shown at NORMAL level and above).

        Args:
            findings: Number of integrity findings in the last analysis.
        """
        if self.level.value < LogLevel.NORMAL.value:
            return
        if findings:
            self._write(f"FINDINGS: {findings} integrity problem(s) detected")
        else:
            self._write("CLEAN: No integrity problems detected")

    def statistics(self, stats: Dict[str, Any]) -> None:
        """
        Log analysis statistics (shown at VERBOSE level and above).

        Args:
            stats: Dictionary of statistic names to values.
        """
        if self.level.value >= LogLevel.VERBOSE.value:
            self._write("=== Statistics ===")
            for key, value in stats.items():
                label = key.replace("_", " ").title()
                self._write(f"  {label}: {value}")

    def batch_ingested(self, accepted: int, skipped: int, total: int) -> None:
        """
        Log completion of an ingest batch at VERBOSE level.

        Args:
            accepted: Valid events appended to the log.
            skipped: Malformed records skipped.
            total: Events in the log after the batch.
        """
        if self.level.value >= LogLevel.VERBOSE.value:
            self._write(
                f"[BATCH] {accepted} event(s) ingested, "
                f"{skipped} skipped, {total} buffered"
            )

    def event_info(
        self, position: int, kind: str, key: str, tags: Iterable[str],
    ) -> None:
        """
        Log per-event info at DEBUG level.

        Args:
            position: Log position of the event.
            kind: Message kind.
            key: Transaction key.
            tags: Annotation tags currently on the event.
        """
        if self.level.value >= LogLevel.DEBUG.value:
            tags_str = ", ".join(sorted(tags)) if tags else "(none)"
            self._write(f"[EVENT] #{position} {kind} @ {key}, tags: {tags_str}")

    def _write(self, message: str) -> None:
        """Write a line to the output stream."""
        self.stream.write(message + "\n")
