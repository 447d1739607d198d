"""
Structural and free-text predicates over events.

The structural filter narrows to one link (optionally one endpoint). The
text filter performs a case-insensitive depth-first search over every
field of an event, including nested attribute data, testing
``"field: value"`` strings against the needle.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Iterator, Mapping, Optional, Tuple

from ponwatch.core.event import Event, EventTime


@dataclass(frozen=True)
class StructuralFilter:
    """
    Link/endpoint filter.

    Attributes:
        link_id: Required link, or None to pass every event.
        endpoint_id: Required endpoint on that link, or None for any.
    """

    link_id: Optional[int] = None
    endpoint_id: Optional[int] = None

    def __post_init__(self) -> None:
        if self.link_id is None and self.endpoint_id is not None:
            raise ValueError("endpoint_id requires link_id to be set")

    @property
    def is_set(self) -> bool:
        return self.link_id is not None

    def matches(self, event: Event) -> bool:
        """True if *event* lies on the selected link (and endpoint)."""
        if self.link_id is None:
            return True
        if event.link_id != self.link_id:
            return False
        return self.endpoint_id is None or event.endpoint_id == self.endpoint_id

    def __str__(self) -> str:
        if self.link_id is None:
            return "*"
        if self.endpoint_id is None:
            return f"link:{self.link_id}"
        return f"link:{self.link_id} endpoint:{self.endpoint_id}"


@dataclass(frozen=True)
class TextFilter:
    """
    Case-insensitive substring search over all event fields.

    Attributes:
        needle: Text to look for; empty passes every event.
    """

    needle: str = ""

    @property
    def is_set(self) -> bool:
        return bool(self.needle)

    def matches(self, event: Event) -> bool:
        """
        True if any ``"field: value"`` at any depth contains the needle.

        Top-level fields are also offered under their capture-service
        names, so ``"Messagetype: get"`` and ``"message_kind: get"`` both
        match a Get request.
        """
        if not self.needle:
            return True
        needle = self.needle.lower()
        return any(
            needle in f"{name}: {value}".lower()
            for name, value in iter_search_fields(event)
        )

    def __str__(self) -> str:
        return repr(self.needle) if self.needle else "*"


@dataclass(frozen=True)
class FilterPredicate:
    """
    Combination of a structural and a text filter.

    Attributes:
        structural: Link/endpoint filter.
        text: Free-text filter.
    """

    structural: StructuralFilter = StructuralFilter()
    text: TextFilter = TextFilter()

    def matches(self, event: Event) -> bool:
        """True if *event* passes both filters."""
        return self.structural.matches(event) and self.text.matches(event)

    def __str__(self) -> str:
        return f"structural={self.structural} text={self.text}"


CAPTURE_LABELS = {
    "link_id": "InterfaceId",
    "endpoint_id": "OnuId",
    "transaction_id": "TransactionId",
    "message_kind": "Messagetype",
    "timestamp": "Timestamp",
    "source": "Source",
    "destination": "Destination",
    "message_number": "MessageNumber",
    "entity_class": "EntityClass",
    "instance_id": "InstanceId",
}


def iter_search_fields(event: Event) -> Iterator[Tuple[str, Any]]:
    """Leaf fields followed by the top-level fields under capture names."""
    yield from iter_leaf_fields(event)
    for name, label in CAPTURE_LABELS.items():
        value = getattr(event, name)
        yield label, str(value) if isinstance(value, EventTime) else value


def iter_leaf_fields(event: Event) -> Iterator[Tuple[str, Any]]:
    """
    Yield ``(field, value)`` for every scalar reachable from *event*.

    Mappings contribute their keys as field names, sequences their
    indices. Traversal is depth-first in field order.
    """
    stack = [
        (f.name, getattr(event, f.name)) for f in reversed(fields(event))
    ]
    while stack:
        name, value = stack.pop()
        if isinstance(value, Mapping):
            stack.extend(
                (str(k), v) for k, v in reversed(list(value.items()))
            )
        elif isinstance(value, (tuple, list)):
            stack.extend(
                (str(i), v) for i, v in reversed(list(enumerate(value)))
            )
        elif isinstance(value, EventTime):
            yield name, str(value)
        else:
            yield name, value
