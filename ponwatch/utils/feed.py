"""
Periodic polling of a growing JSON-lines capture file.

A live capture appends one record per line; each poll returns the
records of the complete lines written since the previous poll. A partial
trailing line is kept back until it is terminated.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional

from ponwatch.utils.trace_reader import is_data_line, parse_line


class FileFeed:
    """
    Incremental reader over an append-only JSON-lines file.

    Attributes:
        filepath: Path to the file being followed.
        offset: Byte offset up to which the file has been consumed.
    """

    def __init__(self, filepath: Path) -> None:
        self.filepath: Path = Path(filepath)
        self.offset: int = 0

    def poll(self) -> List[Any]:
        """
        Return the records appended since the last poll.

        A missing file yields no records. A file that shrank (truncated or
        rotated) is read again from the start.
        """
        if not self.filepath.exists():
            return []
        if self.filepath.stat().st_size < self.offset:
            self.offset = 0

        with open(self.filepath, "rb") as f:
            f.seek(self.offset)
            chunk = f.read()

        end = chunk.rfind(b"\n")
        if end < 0:
            return []
        complete = chunk[: end + 1]
        self.offset += len(complete)

        lines = complete.decode("utf-8", errors="replace").splitlines()
        return [parse_line(line) for line in lines if is_data_line(line)]

    def follow(
        self,
        interval: float,
        should_stop: Optional[Callable[[], bool]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> Iterator[List[Any]]:
        """
        Poll every *interval* seconds and yield each non-empty batch.

        Args:
            interval: Seconds between polls.
            should_stop: Checked before each poll; stops when it returns True.
            sleep: Sleep function (replaceable for tests).
        """
        while should_stop is None or not should_stop():
            batch = self.poll()
            if batch:
                yield batch
            sleep(interval)
