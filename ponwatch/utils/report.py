"""
Text and JSON rendering of analysis results.

Turns snapshots, ingest counters, key-index entries and annotated event
records into plain-text blocks for the terminal or a JSON document for
other tools. Base64 identity attributes are decoded for display here,
never in the core.
"""

from __future__ import annotations

import json
import math
from dataclasses import asdict
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ponwatch.core.engine import IngestCounts
from ponwatch.core.event import EventRecord, decode_attribute
from ponwatch.core.key_index import KeyIndexEntry
from ponwatch.core.stats import AnalysisSnapshot


def format_rate(value: Optional[float]) -> str:
    """Render messages per second (``undefined`` / ``inf`` aware)."""
    if value is None:
        return "undefined"
    if math.isinf(value):
        return "inf"
    return f"{value:.2f}"


def format_ms(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    return f"{value:.2f}"


def statistics_dict(
    snapshot: AnalysisSnapshot, counts: IngestCounts,
) -> Dict[str, Any]:
    """Flat label → value mapping of the combined statistics."""
    max_latency = snapshot.max_latency
    skipped = str(snapshot.skipped_count)
    if snapshot.skipped_ranges:
        skipped += " @" + ", ".join(str(r) for r in snapshot.skipped_ranges)

    return {
        "total_messages": counts.total_events,
        "total_alarms": counts.total_alarms,
        "analyzed_messages": snapshot.event_count,
        "total_transactions": snapshot.total_transactions,
        "missing_messages": snapshot.missing_count,
        "skipped_tids": skipped,
        "requests_responses_swapped": snapshot.role_swaps,
        "transactions_out_of_sequence": snapshot.tid_out_of_sequence,
        "timestamps_out_of_sequence": snapshot.out_of_order,
        "messages_per_second": format_rate(snapshot.messages_per_second),
        "average_response_time_ms": format_ms(snapshot.mean_latency_ms),
        "max_response_time_ms": (
            "n/a"
            if max_latency is None
            else f"{max_latency.value_ms:.2f} @{max_latency.index}"
        ),
        "failed_operations": (
            f"{counts.failed_operations} ({counts.total_operations})"
        ),
        "decoding_errors": counts.decoding_errors,
        "suspicious_origins": counts.suspicious_origins,
        "controller_address": counts.controller_address or "unknown",
        "malformed_events": counts.malformed_events,
    }


def render_statistics(
    snapshot: AnalysisSnapshot, counts: IngestCounts,
) -> str:
    """Render the statistics block as text."""
    lines = ["=== Statistics ==="]
    for key, value in statistics_dict(snapshot, counts).items():
        label = key.replace("_", " ").title()
        lines.append(f"  {label}: {value}")
    return "\n".join(lines)


def render_key_index(entries: Iterable[KeyIndexEntry]) -> str:
    """Render the key index as filter-selector lines."""
    lines: List[str] = []
    for entry in entries:
        if entry.endpoint_id is None:
            lines.append(f"Link {entry.link_id} | No. Messages: {entry.count}")
        else:
            lines.append(
                f"  Link {entry.link_id} | Endpoint {entry.endpoint_id} "
                f"| No. Messages: {entry.count}"
            )
    return "\n".join(lines)


def render_event(record: EventRecord) -> str:
    """One header line per event, followed by its tags."""
    event = record.event
    tags = sorted(a.value for a in record.annotations)
    line = (
        f"{record.position:>6} {event.message_kind} "
        f"link={event.link_id} endpoint={event.endpoint_id} "
        f"tid={event.transaction_id} {event.timestamp} "
        f"{event.source} -> {event.destination}"
    )
    if tags:
        line += " [" + ", ".join(tags) + "]"
    return line


def display_attributes(attributes: Mapping[str, Any]) -> Dict[str, Any]:
    """Plain-dict copy of *attributes* with Base64 fields decoded."""
    result: Dict[str, Any] = {}
    for name, value in attributes.items():
        if isinstance(value, Mapping):
            result[name] = display_attributes(value)
        elif isinstance(value, tuple):
            result[name] = [
                display_attributes(v) if isinstance(v, Mapping) else v
                for v in value
            ]
        else:
            result[name] = decode_attribute(name, value)
    return result


def event_to_dict(record: EventRecord) -> Dict[str, Any]:
    """JSON-safe form of an annotated record."""
    event = record.event
    return {
        "position": record.position,
        "link_id": event.link_id,
        "endpoint_id": event.endpoint_id,
        "transaction_id": event.transaction_id,
        "message_kind": event.message_kind,
        "timestamp": str(event.timestamp),
        "source": event.source,
        "destination": event.destination,
        "result_code": event.result_code,
        "decoding_error": event.decoding_error,
        "attributes": display_attributes(event.attributes),
        "annotations": sorted(a.value for a in record.annotations),
    }


def to_json(
    snapshot: AnalysisSnapshot,
    counts: IngestCounts,
    records: Optional[Iterable[EventRecord]] = None,
) -> str:
    """
    Serialize the analysis results as a JSON document.

    Args:
        snapshot: Latest analysis snapshot.
        counts: Ingest counters.
        records: Optional records to include with their annotations.
    """
    document: Dict[str, Any] = {
        "snapshot": snapshot.to_dict(),
        "counts": asdict(counts),
    }
    if records is not None:
        document["events"] = [event_to_dict(r) for r in records]
    return json.dumps(document, indent=2)
