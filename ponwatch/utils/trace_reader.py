"""
Capture-dump reader for decoded event records.

Reads event records from JSON-lines files or from a single JSON array
(the form produced by a one-shot capture scan). Records are returned raw;
conversion to events, and counting of malformed records, is left to the
engine so that a bad record never aborts a batch.

Comment lines at the top of a JSON-lines file may carry directives::

    # high_latency_ms: 500
    # success_result_code: 0
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List

from ponwatch.core.config import AnalyzerConfig
from ponwatch.core.errors import TraceFormatError

_DIRECTIVES = {
    "high_latency_ms": float,
    "success_result_code": int,
}


@dataclass
class TraceMetadata:
    """
    Metadata extracted from a trace file.

    Attributes:
        record_count: Number of records in the file.
        directives: Parsed directive values.
    """

    record_count: int
    directives: Dict[str, Any] = field(default_factory=dict)

    @property
    def config(self) -> AnalyzerConfig:
        """Analysis settings implied by the directives."""
        return AnalyzerConfig.from_directives(self.directives)


@dataclass
class TraceData:
    """
    Complete trace data loaded from a file.

    Attributes:
        records: Raw records in file order.
        metadata: Trace metadata.
    """

    records: List[Any]
    metadata: TraceMetadata


def parse_line(line: str) -> Any:
    """
    Parse one JSON-lines entry.

    Lines that are not valid JSON are returned as the stripped text, which
    the engine then counts as a malformed event.
    """
    text = line.strip()
    try:
        return json.loads(text)
    except ValueError:
        return text


def is_data_line(line: str) -> bool:
    """True for non-blank, non-comment lines."""
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith("#")


class TraceReader:
    """
    Parses capture dumps into raw event records.

    Attributes:
        filepath: Path to the dump.
    """

    def __init__(self, filepath: Path) -> None:
        """
        Initialize reader with file path.

        Args:
            filepath: Path to the JSON or JSON-lines file.
        """
        self.filepath: Path = Path(filepath)

    def read_all(self) -> TraceData:
        """Read all records and the file directives."""
        records = self.read_records()
        metadata = TraceMetadata(
            record_count=len(records),
            directives=self.read_directives(),
        )
        return TraceData(records=records, metadata=metadata)

    def read_records(self) -> List[Any]:
        """
        Read every record in file order.

        Raises:
            FileNotFoundError: If the file does not exist.
            TraceFormatError: If a JSON array dump cannot be decoded.
        """
        if not self.filepath.exists():
            raise FileNotFoundError(f"Trace file not found: {self.filepath}")

        lines = self._read_data_lines()
        if not lines:
            return []

        if lines[0].lstrip().startswith(("[", '"')):
            return self._decode_document("\n".join(lines))
        return [parse_line(line) for line in lines]

    def iter_batches(self, batch_size: int) -> Iterator[List[Any]]:
        """
        Yield records in arrival order, *batch_size* at a time.

        Raises:
            ValueError: If batch_size is not positive.
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        records = self.read_records()
        for start in range(0, len(records), batch_size):
            yield records[start:start + batch_size]

    def read_directives(self) -> Dict[str, Any]:
        """
        Extract directives from comment lines.

        Raises:
            TraceFormatError: If a known directive has an invalid value.
        """
        directives: Dict[str, Any] = {}
        if not self.filepath.exists():
            return directives

        with open(self.filepath, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line.startswith("#"):
                    continue
                content = line.lstrip("#").strip()
                name, sep, value = content.partition(":")
                convert = _DIRECTIVES.get(name.strip())
                if not sep or convert is None:
                    continue
                try:
                    directives[name.strip()] = convert(value.strip())
                except ValueError as exc:
                    raise TraceFormatError(
                        f"Invalid value for directive '{name.strip()}': {value.strip()}"
                    ) from exc
        return directives

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _read_data_lines(self) -> List[str]:
        """Read non-comment, non-empty lines from the file."""
        with open(self.filepath, encoding="utf-8") as f:
            return [line.rstrip("\n") for line in f if is_data_line(line)]

    def _decode_document(self, text: str) -> List[Any]:
        try:
            document = json.loads(text)
        except ValueError as exc:
            raise TraceFormatError(
                f"Cannot decode {self.filepath}: {exc}"
            ) from exc
        # An empty scan is served as an empty string
        if document == "":
            return []
        if not isinstance(document, list):
            raise TraceFormatError(
                f"Expected a JSON array of records in {self.filepath}"
            )
        return document
