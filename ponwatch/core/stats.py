"""
Roll-up of one analysis pass into an immutable snapshot.

The snapshot is recomputed from scratch on every reanalysis and
supersedes the previous one; two passes over identical state compare
equal.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, NamedTuple, Optional, Sequence, Tuple

from ponwatch.core.correlator import CorrelationResult
from ponwatch.core.event import Annotation, EventRecord, TransactionKey
from ponwatch.core.missing import MissingRecord
from ponwatch.core.sequence import SequenceReport, SkippedRange

DEFAULT_HIGH_LATENCY_MS = 1000.0


class MaxLatency(NamedTuple):
    """Largest response latency and the batch position of its response."""

    index: int
    value_ms: float


@dataclass(frozen=True)
class AnalysisSnapshot:
    """
    Statistics of one analysis pass.

    Attributes:
        event_count: Events in the analyzed batch.
        total_transactions: Distinct transaction keys.
        missing_count: Transactions lacking a request or a response.
        missing: Keys of the missing transactions.
        skipped_count: Number of skipped transaction-id ranges.
        skipped_ranges: The skipped ranges.
        role_swaps: Requests observed after their response.
        out_of_order: Arrival-order timestamp inversions.
        tid_out_of_sequence: Transaction ids going backwards.
        messages_per_second: Throughput; None for an empty batch and
            ``inf`` when the batch spans zero time.
        mean_latency_ms: Mean latency over complete transactions.
        max_latency: Largest non-negative latency, first occurrence wins.
    """

    event_count: int = 0
    total_transactions: int = 0
    missing_count: int = 0
    missing: Tuple[TransactionKey, ...] = ()
    skipped_count: int = 0
    skipped_ranges: Tuple[SkippedRange, ...] = ()
    role_swaps: int = 0
    out_of_order: int = 0
    tid_out_of_sequence: int = 0
    messages_per_second: Optional[float] = None
    mean_latency_ms: Optional[float] = None
    max_latency: Optional[MaxLatency] = None

    @classmethod
    def empty(cls) -> AnalysisSnapshot:
        """Snapshot of a batch without events."""
        return cls()

    @property
    def finding_count(self) -> int:
        """Total number of integrity problems detected."""
        return (
            self.missing_count
            + self.skipped_count
            + self.role_swaps
            + self.out_of_order
            + self.tid_out_of_sequence
        )

    @property
    def has_findings(self) -> bool:
        """True if any integrity problem was detected."""
        return self.finding_count > 0

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe dictionary form (``inf`` is rendered as a string)."""
        mps: Any = self.messages_per_second
        if mps is not None and math.isinf(mps):
            mps = "inf"
        return {
            "event_count": self.event_count,
            "total_transactions": self.total_transactions,
            "missing_count": self.missing_count,
            "missing": [str(k) for k in self.missing],
            "skipped_count": self.skipped_count,
            "skipped_ranges": [str(r) for r in self.skipped_ranges],
            "role_swaps": self.role_swaps,
            "out_of_order": self.out_of_order,
            "tid_out_of_sequence": self.tid_out_of_sequence,
            "messages_per_second": mps,
            "mean_latency_ms": self.mean_latency_ms,
            "max_latency": (
                None
                if self.max_latency is None
                else {
                    "index": self.max_latency.index,
                    "value_ms": self.max_latency.value_ms,
                }
            ),
        }


class StatsAggregator:
    """
    Computes an AnalysisSnapshot from the outputs of one pass.

    Attributes:
        high_latency_ms: Latency above which a transaction's originating
            event is annotated as slow.
    """

    def __init__(self, high_latency_ms: float = DEFAULT_HIGH_LATENCY_MS) -> None:
        self.high_latency_ms: float = high_latency_ms

    def aggregate(
        self,
        records: Sequence[EventRecord],
        correlation: CorrelationResult,
        sequence: SequenceReport,
        missing: Sequence[MissingRecord],
    ) -> AnalysisSnapshot:
        """
        Build the snapshot for an analyzed batch.

        Args:
            records: The analyzed batch in arrival order.
            correlation: Correlation pass output.
            sequence: Sequence-integrity findings.
            missing: Missing records collected after correlation.
        """
        if not records:
            return AnalysisSnapshot.empty()

        total_latency = 0.0
        complete = 0
        max_latency: Optional[MaxLatency] = None
        for transaction in correlation.transactions:
            latency = transaction.latency_ms
            if latency is None:
                continue
            complete += 1
            total_latency += latency
            # A response stamped before its request never counts as slowest
            if latency >= 0 and (
                max_latency is None or latency > max_latency.value_ms
            ):
                max_latency = MaxLatency(transaction.response_index, latency)
            if latency > self.high_latency_ms:
                transaction.origin.annotate(Annotation.HIGH_LATENCY)

        return AnalysisSnapshot(
            event_count=len(records),
            total_transactions=correlation.total,
            missing_count=len(missing),
            missing=tuple(m.key for m in missing),
            skipped_count=sequence.skipped_count,
            skipped_ranges=tuple(sequence.skipped_ranges),
            role_swaps=correlation.role_swaps,
            out_of_order=sequence.out_of_order,
            tid_out_of_sequence=sequence.tid_out_of_sequence,
            messages_per_second=messages_per_second(records),
            mean_latency_ms=(total_latency / complete) if complete else None,
            max_latency=max_latency,
        )


def messages_per_second(records: Sequence[EventRecord]) -> Optional[float]:
    """
    Throughput between the first and last record by arrival order.

    Returns None for no records and ``inf`` for a zero time span.
    """
    if not records:
        return None
    first = records[0].event.timestamp
    last = records[-1].event.timestamp
    span_ms = abs(first.millis_until(last))
    if span_ms == 0:
        return math.inf
    return len(records) / span_ms * 1000
