"""
Event representation for decoded control-plane messages.

Each event is one decoded request, response or alarm on a link, addressed
to an endpoint on that link and tagged with a transaction identifier.
Events are immutable; the mutable per-event analysis state (annotations,
surfacing) lives on the :class:`EventRecord` that owns the event inside
the session log.
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, NamedTuple, Optional, Set, Tuple, Union

from ponwatch.core.errors import MalformedEventError

# Nested attribute data is a tagged variant: scalars, read-only mappings of
# further values, or tuples of further values.
AttributeValue = Union[
    str, int, float, bool, None, Mapping[str, Any], Tuple[Any, ...],
]

BASE64_FIELDS = frozenset({
    "EquipmentId",
    "SerialNumber",
    "VendorId",
    "Version",
    "ExpectedEquipmentId",
    "ActualEquipmentId",
    "OltVendorId",
})

_TIMESTAMP_RE = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>[^Z+\-]*))?"
    r"(?P<tz>Z|[+\-]\d{2}:?\d{2})?$"
)


class TransactionKey(NamedTuple):
    """Composite key correlating a request with its response."""

    link_id: int
    endpoint_id: int
    transaction_id: int

    def __str__(self) -> str:
        return f"{self.link_id}/{self.endpoint_id}#{self.transaction_id}"


class Annotation(Enum):
    """
    Per-event findings that a presentation layer maps to its own styling.

    FAILURE, DECODING_ERROR and SUSPICIOUS are set once at ingest time.
    The remaining annotations are recomputed on every reanalysis.
    """

    FAILURE = "failure"
    DECODING_ERROR = "decodingError"
    SUSPICIOUS = "suspicious"
    MISSING_COUNTERPART = "missingCounterpart"
    OUT_OF_ORDER = "outOfOrder"
    ROLE_SWAP = "roleSwap"
    HIGH_LATENCY = "highLatency"
    TID_OUT_OF_SEQUENCE = "tidOutOfSequence"


INGEST_ANNOTATIONS = frozenset({
    Annotation.FAILURE,
    Annotation.DECODING_ERROR,
    Annotation.SUSPICIOUS,
})

ANALYSIS_ANNOTATIONS = frozenset(Annotation) - INGEST_ANNOTATIONS


# ---------------------------------------------------------------------- #
# Timestamps
# ---------------------------------------------------------------------- #


@dataclass(frozen=True)
class EventTime:
    """
    Timestamp with the sub-second fraction carried at full precision.

    ``datetime`` truncates to microseconds, so the fractional second is
    kept separately in nanoseconds. Comparisons and differences go through
    :attr:`epoch_ns`.

    Attributes:
        instant: Parsed instant (timezone aware, microsecond precision).
        fraction_ns: Fractional second in nanoseconds (0..999_999_999).
        raw: The original textual timestamp.
        ambiguous: True when the fraction could not be parsed and was
            treated as zero.
    """

    instant: datetime
    fraction_ns: int = 0
    raw: str = ""
    ambiguous: bool = field(default=False, compare=False)

    @classmethod
    def parse(cls, value: Any) -> EventTime:
        """
        Parse an RFC 3339 timestamp string or numeric epoch seconds.

        Naive timestamps are taken as UTC.

        Raises:
            MalformedEventError: If the value is not a timestamp at all.
        """
        if isinstance(value, bool) or value is None:
            raise MalformedEventError("missing timestamp", "timestamp")
        if isinstance(value, (int, float)):
            try:
                total_ns = int(round(value * 1_000_000_000))
                seconds, fraction_ns = divmod(total_ns, 1_000_000_000)
                instant = datetime.fromtimestamp(seconds, tz=timezone.utc)
            except (ValueError, OverflowError, OSError) as exc:
                raise MalformedEventError(
                    f"epoch timestamp out of range: {value}", "timestamp"
                ) from exc
            instant = instant.replace(microsecond=fraction_ns // 1000)
            return cls(instant=instant, fraction_ns=fraction_ns, raw=str(value))

        text = str(value).strip()
        match = _TIMESTAMP_RE.match(text)
        if match is None:
            raise MalformedEventError(
                f"unparseable timestamp '{text}'", "timestamp"
            )
        try:
            base = datetime.fromisoformat(match.group("base"))
        except ValueError as exc:
            raise MalformedEventError(
                f"unparseable timestamp '{text}': {exc}", "timestamp"
            ) from exc

        fraction_ns, ambiguous = _parse_fraction(match.group("frac"))
        try:
            tzinfo = _parse_offset(match.group("tz"))
        except ValueError as exc:
            raise MalformedEventError(
                f"invalid UTC offset in timestamp '{text}'", "timestamp"
            ) from exc
        instant = base.replace(microsecond=fraction_ns // 1000, tzinfo=tzinfo)
        return cls(
            instant=instant,
            fraction_ns=fraction_ns,
            raw=text,
            ambiguous=ambiguous,
        )

    @property
    def epoch_ns(self) -> int:
        """Nanoseconds since the Unix epoch."""
        whole = int(self.instant.replace(microsecond=0).timestamp())
        return whole * 1_000_000_000 + self.fraction_ns

    def millis_until(self, other: EventTime) -> float:
        """Milliseconds from this instant to *other* (negative if earlier)."""
        return (other.epoch_ns - self.epoch_ns) / 1_000_000

    def __lt__(self, other: EventTime) -> bool:
        return self.epoch_ns < other.epoch_ns

    def __str__(self) -> str:
        return self.raw or self.instant.isoformat()


def _parse_fraction(frac: Optional[str]) -> Tuple[int, bool]:
    """Return ``(fraction_ns, ambiguous)`` for the digits after the dot."""
    if frac is None:
        return 0, False
    if not (frac.isascii() and frac.isdigit()):
        return 0, True
    return int(frac[:9].ljust(9, "0")), False


def _parse_offset(tz: Optional[str]) -> timezone:
    if tz is None or tz == "Z":
        return timezone.utc
    sign = -1 if tz[0] == "-" else 1
    digits = tz[1:].replace(":", "")
    offset = timedelta(hours=int(digits[:2]), minutes=int(digits[2:]))
    return timezone(sign * offset)


# ---------------------------------------------------------------------- #
# Attributes
# ---------------------------------------------------------------------- #


def freeze_attributes(value: Any) -> AttributeValue:
    """Recursively convert JSON-like data into read-only attribute values."""
    if isinstance(value, Mapping):
        return MappingProxyType(
            {str(k): freeze_attributes(v) for k, v in value.items()}
        )
    if isinstance(value, (list, tuple)):
        return tuple(freeze_attributes(v) for v in value)
    return value


def decode_attribute(name: str, value: AttributeValue) -> AttributeValue:
    """
    Decode a Base64-encoded binary attribute for display.

    Only the known binary identity fields are decoded; anything that is not
    valid Base64 is returned unchanged.
    """
    if name not in BASE64_FIELDS or not isinstance(value, str):
        return value
    try:
        decoded = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return value
    return decoded.decode("latin-1").rstrip("\x00")


# ---------------------------------------------------------------------- #
# Event
# ---------------------------------------------------------------------- #


@dataclass(frozen=True)
class Event:
    """
    Immutable decoded protocol message.

    Attributes:
        link_id: Physical line (port) identifier.
        endpoint_id: Subordinate device on the link.
        transaction_id: Sequence number pairing requests with responses
            (0 and 1 are reserved and non-sequential).
        message_kind: Message type tag, e.g. ``"Get Request"``.
        timestamp: Capture time of the message.
        source: Origin address (``ip:port``).
        destination: Destination address (``ip:port``).
        result_code: Operation outcome, when the message reports one.
        decoding_error: Decoder error text, when decoding was partial.
        attributes: Nested decoded attribute data.
        message_number: Sequence number assigned by the capture service.
        entity_class: Managed entity class name.
        instance_id: Managed entity instance.
    """

    link_id: int
    endpoint_id: int
    transaction_id: int
    message_kind: str
    timestamp: EventTime
    source: str = ""
    destination: str = ""
    result_code: Optional[int] = None
    decoding_error: Optional[str] = None
    attributes: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({}), hash=False,
    )
    message_number: Optional[int] = None
    entity_class: Optional[str] = None
    instance_id: Optional[int] = None

    @property
    def key(self) -> TransactionKey:
        """The transaction key of this event."""
        return TransactionKey(self.link_id, self.endpoint_id, self.transaction_id)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Event:
        """
        Build an event from a decoded record.

        Accepts the native snake_case field names as well as the field
        names emitted by the capture service (``InterfaceId``, ``OnuId``,
        ``TransactionId``, ``Messagetype``, ``Timestamp``, ...). Capture
        link and endpoint identifiers are hex strings.

        Raises:
            MalformedEventError: If a required field is missing or invalid.
        """
        if not isinstance(record, Mapping):
            raise MalformedEventError(
                f"expected a mapping, got {type(record).__name__}"
            )

        if "InterfaceId" in record or "Messagetype" in record:
            return cls._from_capture_record(record)

        timestamp = EventTime.parse(_require(record, "timestamp"))
        return cls(
            link_id=_parse_int(_require(record, "link_id"), "link_id"),
            endpoint_id=_parse_int(_require(record, "endpoint_id"), "endpoint_id"),
            transaction_id=_parse_int(
                _require(record, "transaction_id"), "transaction_id"
            ),
            message_kind=str(_require(record, "message_kind")),
            timestamp=timestamp,
            source=str(record.get("source") or ""),
            destination=str(record.get("destination") or ""),
            result_code=_optional_int(record.get("result_code"), "result_code"),
            decoding_error=_decoding_error(record.get("decoding_error")),
            attributes=_attributes(record.get("attributes")),
            message_number=_optional_int(
                record.get("message_number"), "message_number"
            ),
            entity_class=_optional_str(record.get("entity_class")),
            instance_id=_optional_int(record.get("instance_id"), "instance_id"),
        )

    @classmethod
    def _from_capture_record(cls, record: Mapping[str, Any]) -> Event:
        layer = record.get("MessageLayer")
        data = record.get("MessageData")
        layer = layer if isinstance(layer, Mapping) else {}
        data = data if isinstance(data, Mapping) else {}

        attributes = {}
        if layer:
            attributes["MessageLayer"] = layer
        if data:
            attributes["MessageData"] = data

        return cls(
            link_id=_parse_int(
                _require(record, "InterfaceId"), "InterfaceId", base=16
            ),
            endpoint_id=_parse_int(_require(record, "OnuId"), "OnuId", base=16),
            transaction_id=_parse_int(
                _require(record, "TransactionId"), "TransactionId"
            ),
            message_kind=str(_require(record, "Messagetype")),
            timestamp=EventTime.parse(_require(record, "Timestamp")),
            source=str(record.get("Source") or ""),
            destination=str(record.get("Destination") or ""),
            result_code=_optional_int(layer.get("Result"), "Result"),
            decoding_error=_decoding_error(data.get("Decoding Error")),
            attributes=freeze_attributes(attributes),
            message_number=_optional_int(
                record.get("MessageNumber"), "MessageNumber"
            ),
            entity_class=_optional_str(record.get("EntityClass")),
            instance_id=_optional_int(record.get("InstanceId"), "InstanceId"),
        )


def _require(record: Mapping[str, Any], name: str) -> Any:
    value = record.get(name)
    if value is None or value == "":
        raise MalformedEventError(f"missing required field '{name}'", name)
    return value


def _parse_int(value: Any, name: str, base: int = 10) -> int:
    if isinstance(value, bool):
        raise MalformedEventError(f"field '{name}' is not an integer", name)
    if isinstance(value, int):
        return value
    text = str(value).strip().lower()
    try:
        if text.startswith("0x"):
            return int(text, 16)
        return int(text, base)
    except ValueError as exc:
        raise MalformedEventError(
            f"field '{name}' is not an integer: '{value}'", name
        ) from exc


def _optional_int(value: Any, name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    return _parse_int(value, name)


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _attributes(value: Any) -> Mapping[str, Any]:
    if value is None:
        return MappingProxyType({})
    if not isinstance(value, Mapping):
        raise MalformedEventError(
            f"field 'attributes' must be an object, got {type(value).__name__}",
            "attributes",
        )
    return freeze_attributes(value)


def _decoding_error(value: Any) -> Optional[str]:
    if value is None or value is False or value == "":
        return None
    if value is True:
        return "decoding error"
    return str(value)


# ---------------------------------------------------------------------- #
# Log entries
# ---------------------------------------------------------------------- #


@dataclass(eq=False)
class EventRecord:
    """
    Entry of the append-only session log.

    Attributes:
        event: The immutable event.
        position: 1-based arrival position within the session.
        annotations: Current findings attached to this event.
        surfaced: Whether the event passes the active filter.
    """

    event: Event
    position: int
    annotations: Set[Annotation] = field(default_factory=set)
    surfaced: bool = True

    def annotate(self, annotation: Annotation) -> None:
        """Attach *annotation* to this record."""
        self.annotations.add(annotation)

    def clear(self, annotation: Annotation) -> None:
        """Remove *annotation* if present."""
        self.annotations.discard(annotation)

    def clear_analysis(self) -> None:
        """Drop every annotation that a reanalysis recomputes."""
        self.annotations -= ANALYSIS_ANNOTATIONS

    def has(self, annotation: Annotation) -> bool:
        """True if *annotation* is attached."""
        return annotation in self.annotations
