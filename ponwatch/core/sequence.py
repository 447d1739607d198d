"""
Sequence-integrity checks over an analysis batch.

Three independent checks:

* arrival-order monotonicity of timestamps, global across all keys;
* skipped transaction identifiers per ``(link, endpoint)`` in key order;
* transaction identifiers going backwards per ``(link, endpoint)`` in
  creation order.

Transaction identifiers 0 and 1 are reserved and never take part in the
identifier checks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, Sequence, Tuple

from ponwatch.core.correlator import Transaction
from ponwatch.core.event import Annotation, EventRecord

RESERVED_TID_MAX = 1


class SkippedRange(NamedTuple):
    """Gap between two consecutive transaction ids of one endpoint."""

    link_id: int
    endpoint_id: int
    prev: int
    next: int

    def __str__(self) -> str:
        return f"{self.prev}-{self.next}"


@dataclass
class SequenceReport:
    """
    Findings of a sequence-integrity pass.

    Attributes:
        out_of_order: Records whose timestamp precedes the previous one.
        skipped_ranges: Gaps in transaction ids.
        tid_out_of_sequence: Transactions whose id went backwards.
    """

    out_of_order: int = 0
    skipped_ranges: List[SkippedRange] = field(default_factory=list)
    tid_out_of_sequence: int = 0

    @property
    def skipped_count(self) -> int:
        return len(self.skipped_ranges)


class SequenceIntegrityAnalyzer:
    """Detects arrival-order inversions and transaction-id anomalies."""

    def analyze(
        self,
        records: Sequence[EventRecord],
        transactions: Sequence[Transaction],
    ) -> SequenceReport:
        """Run all checks and collect their findings."""
        return SequenceReport(
            out_of_order=self.check_arrival_order(records),
            skipped_ranges=self.find_skipped_ranges(transactions),
            tid_out_of_sequence=self.check_transaction_order(transactions),
        )

    def check_arrival_order(self, records: Sequence[EventRecord]) -> int:
        """
        Count timestamps strictly earlier than their predecessor's.

        Compares each record with the immediately preceding one in arrival
        order, including the sub-millisecond fraction. Both records of an
        inversion are annotated.
        """
        inversions = 0
        previous = None
        for record in records:
            if previous is not None and (
                record.event.timestamp.epoch_ns < previous.event.timestamp.epoch_ns
            ):
                inversions += 1
                previous.annotate(Annotation.OUT_OF_ORDER)
                record.annotate(Annotation.OUT_OF_ORDER)
            previous = record
        return inversions

    def find_skipped_ranges(
        self, transactions: Sequence[Transaction],
    ) -> List[SkippedRange]:
        """
        Find gaps greater than one between consecutive transaction ids.

        Transactions are sorted by key. A new ``(link, endpoint)`` pair or a
        reserved id on either side resets the chain without a gap.
        """
        skipped: List[SkippedRange] = []
        ordered = sorted(transactions, key=lambda t: t.key)
        previous = None
        for transaction in ordered:
            key = transaction.key
            if (
                previous is not None
                and previous.link_id == key.link_id
                and previous.endpoint_id == key.endpoint_id
                and previous.transaction_id > RESERVED_TID_MAX
                and key.transaction_id > RESERVED_TID_MAX
                and key.transaction_id - previous.transaction_id > 1
            ):
                skipped.append(
                    SkippedRange(
                        key.link_id,
                        key.endpoint_id,
                        previous.transaction_id,
                        key.transaction_id,
                    )
                )
            previous = key
        return skipped

    def check_transaction_order(
        self, transactions: Sequence[Transaction],
    ) -> int:
        """
        Count transaction ids lower than the previous one of their endpoint.

        Walks transactions in creation order; both the offending transaction
        and its predecessor are annotated.
        """
        swapped = 0
        latest: Dict[Tuple[int, int], Transaction] = {}
        for transaction in transactions:
            key = transaction.key
            if key.transaction_id <= RESERVED_TID_MAX:
                continue
            pair = (key.link_id, key.endpoint_id)
            previous = latest.get(pair)
            if previous is not None and previous.key.transaction_id > key.transaction_id:
                swapped += 1
                transaction.origin.annotate(Annotation.TID_OUT_OF_SEQUENCE)
                previous.origin.annotate(Annotation.TID_OUT_OF_SEQUENCE)
            latest[pair] = transaction
        return swapped
