"""
Per-event classification and ingest-time accounting.

Derives the role (request/response), direction and alarm flag of an event
from its message kind, counts operation outcomes and decoding errors, and
runs the controller-address heuristic that flags downstream traffic from
an unexpected origin.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional

from ponwatch.core.event import Annotation, Event


class Direction(Enum):
    """Traffic direction relative to the controller."""

    DOWNSTREAM = "Downstream"
    UPSTREAM = "Upstream"


def is_request(kind: str) -> bool:
    """Request-like: requests and (self-terminating) alarms."""
    return "Request" in kind or "Alarm" in kind


def is_response(kind: str) -> bool:
    """Response-like: responses and (self-terminating) alarms."""
    return "Response" in kind or "Alarm" in kind


def is_alarm(kind: str) -> bool:
    """True for alarm notifications."""
    return "Alarm" in kind


def direction_of(kind: str) -> Direction:
    """
    Naming heuristic: anything called a request travels downstream.

    Alarms are not requests here, so they count as upstream traffic.
    """
    if "Request" in kind:
        return Direction.DOWNSTREAM
    return Direction.UPSTREAM


@dataclass(frozen=True)
class Classification:
    """
    Derived flags for a single event.

    Attributes:
        is_request: Event plays the request role.
        is_response: Event plays the response role.
        is_alarm: Event is an alarm notification.
        direction: Downstream or upstream.
        annotations: Ingest-time annotations for the event.
    """

    is_request: bool
    is_response: bool
    is_alarm: bool
    direction: Direction
    annotations: FrozenSet[Annotation] = frozenset()


@dataclass
class ClassifierCounters:
    """Running ingest counters (reset only with the session)."""

    total_events: int = 0
    total_alarms: int = 0
    total_operations: int = 0
    failed_operations: int = 0
    decoding_errors: int = 0
    suspicious_origins: int = 0


class EventClassifier:
    """
    Classifies events and maintains the ingest counters.

    The controller address is inferred, not authenticated: the destination
    of the first upstream event that has one is latched, and every later downstream
    event sent from a different address is counted as a suspicious origin.

    Attributes:
        success_result_code: Result code that denotes a successful operation.
        counters: Running counters.
        controller_address: Latched controller address (None until seen).
    """

    def __init__(self, success_result_code: int = 0) -> None:
        self.success_result_code: int = success_result_code
        self.counters: ClassifierCounters = ClassifierCounters()
        self.controller_address: Optional[str] = None

    def classify(self, event: Event) -> Classification:
        """
        Classify *event* and account for it in the counters.

        Returns:
            The event's Classification, including ingest annotations.
        """
        kind = event.message_kind
        direction = direction_of(kind)
        alarm = is_alarm(kind)
        annotations = set()

        self.counters.total_events += 1
        if alarm:
            self.counters.total_alarms += 1

        if event.result_code is not None:
            self.counters.total_operations += 1
            if event.result_code != self.success_result_code:
                self.counters.failed_operations += 1
                annotations.add(Annotation.FAILURE)

        if event.decoding_error is not None:
            self.counters.decoding_errors += 1
            annotations.add(Annotation.DECODING_ERROR)

        if (
            self.controller_address is None
            and direction is Direction.UPSTREAM
            and event.destination
        ):
            self.controller_address = event.destination
        if (
            self.controller_address is not None
            and direction is Direction.DOWNSTREAM
            and event.source != self.controller_address
        ):
            self.counters.suspicious_origins += 1
            annotations.add(Annotation.SUSPICIOUS)

        return Classification(
            is_request=is_request(kind),
            is_response=is_response(kind),
            is_alarm=alarm,
            direction=direction,
            annotations=frozenset(annotations),
        )

    def reset(self) -> None:
        """Clear counters and the latched controller address."""
        self.counters = ClassifierCounters()
        self.controller_address = None
