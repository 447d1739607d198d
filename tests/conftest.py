"""
Shared pytest fixtures for the PONWATCH test suite.

Provides a factory for test events, a fresh engine, and temporary file
paths used across unit and integration tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from ponwatch.core.engine import AnalysisEngine
from ponwatch.core.event import Event, EventTime

CONTROLLER = "10.0.0.1:9191"
DEVICE = "10.0.0.2:50000"


def make_event(
    kind: str,
    tid: int,
    ms: float,
    link: int = 1,
    endpoint: int = 1,
    source: Optional[str] = None,
    destination: Optional[str] = None,
    result_code: Optional[int] = None,
    decoding_error: Optional[str] = None,
    attributes: Optional[dict] = None,
) -> Event:
    """
    Create an event at *ms* milliseconds past a fixed base instant.

    Requests default to controller -> device, everything else to
    device -> controller.
    """
    downstream = "Request" in kind
    seconds, millis = divmod(ms, 1000)
    timestamp = EventTime.parse(
        f"2025-01-01T00:00:{int(seconds):02d}.{int(round(millis * 1000)):06d}Z"
    )
    return Event.from_record({
        "link_id": link,
        "endpoint_id": endpoint,
        "transaction_id": tid,
        "message_kind": kind,
        "timestamp": timestamp.raw,
        "source": source if source is not None else (
            CONTROLLER if downstream else DEVICE
        ),
        "destination": destination if destination is not None else (
            DEVICE if downstream else CONTROLLER
        ),
        "result_code": result_code,
        "decoding_error": decoding_error,
        "attributes": attributes or {},
    })


@pytest.fixture
def event_factory() -> Callable[..., Event]:
    """The :func:`make_event` factory."""
    return make_event


@pytest.fixture
def engine() -> AnalysisEngine:
    """A fresh engine with default settings and no output."""
    return AnalysisEngine()


@pytest.fixture
def raw_record() -> dict[str, Any]:
    """A valid native-format record."""
    return {
        "link_id": 1,
        "endpoint_id": 2,
        "transaction_id": 7,
        "message_kind": "Get Request",
        "timestamp": "2025-01-01T00:00:00.000+00:00",
        "source": CONTROLLER,
        "destination": DEVICE,
    }


@pytest.fixture
def tmp_trace_file(tmp_path: Path) -> Path:
    """Path for a temporary JSON-lines trace file."""
    return tmp_path / "trace.jsonl"


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def traces_dir(fixtures_dir: Path) -> Path:
    """Path to the test trace fixtures directory."""
    return fixtures_dir / "traces"
