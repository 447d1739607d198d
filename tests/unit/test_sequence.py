"""
Tests for sequence-integrity checks.

Tests cover arrival-order inversions, skipped transaction ids, reserved
ids, and transaction ids going backwards.
"""

from __future__ import annotations

from typing import List

from ponwatch.core.correlator import TransactionCorrelator
from ponwatch.core.event import Annotation, Event, EventRecord
from ponwatch.core.sequence import SequenceIntegrityAnalyzer, SkippedRange


def _records(*events: Event) -> List[EventRecord]:
    return [EventRecord(e, position=i) for i, e in enumerate(events, start=1)]


def _analyze(records: List[EventRecord]):
    transactions = TransactionCorrelator().correlate(records).transactions
    return SequenceIntegrityAnalyzer().analyze(records, transactions)


# ---------------------------------------------------------------------------
# Tests: Arrival Order
# ---------------------------------------------------------------------------


class TestArrivalOrder:
    """Test timestamp monotonicity in arrival order."""

    def test_monotonic(self, event_factory) -> None:
        report = _analyze(_records(
            event_factory("Get Request", 2, 0),
            event_factory("Get Response", 2, 10),
            event_factory("Get Request", 3, 10),
        ))
        assert report.out_of_order == 0

    def test_inversion_marks_both(self, event_factory) -> None:
        records = _records(
            event_factory("Get Request", 2, 100),
            event_factory("Get Response", 2, 50),
        )
        report = _analyze(records)
        assert report.out_of_order == 1
        assert all(r.has(Annotation.OUT_OF_ORDER) for r in records)

    def test_global_across_keys(self, event_factory) -> None:
        """Events of different endpoints are compared too."""
        report = _analyze(_records(
            event_factory("Get Request", 2, 100, endpoint=1),
            event_factory("Get Request", 2, 90, endpoint=2),
        ))
        assert report.out_of_order == 1

    def test_compares_only_neighbours(self, event_factory) -> None:
        """One late event followed by a recovery counts once."""
        report = _analyze(_records(
            event_factory("Get Request", 2, 100),
            event_factory("Get Request", 3, 20),
            event_factory("Get Request", 4, 30),
        ))
        assert report.out_of_order == 1


# ---------------------------------------------------------------------------
# Tests: Skipped Ranges
# ---------------------------------------------------------------------------


class TestSkippedRanges:
    """Test detection of transaction-id gaps."""

    def _requests(self, event_factory, tids, endpoint=1):
        return [
            event_factory("Get Request", tid, i, endpoint=endpoint)
            for i, tid in enumerate(tids)
        ]

    def test_single_gap(self, event_factory) -> None:
        report = _analyze(_records(*self._requests(event_factory, [2, 3, 5])))
        assert report.skipped_ranges == [SkippedRange(1, 1, 3, 5)]
        assert str(report.skipped_ranges[0]) == "3-5"

    def test_contiguous(self, event_factory) -> None:
        report = _analyze(_records(*self._requests(event_factory, [2, 3, 4])))
        assert report.skipped_count == 0

    def test_arrival_order_irrelevant(self, event_factory) -> None:
        """Ids are sorted before comparing."""
        report = _analyze(_records(*self._requests(event_factory, [4, 2, 3])))
        assert report.skipped_count == 0

    def test_reserved_ids_never_gap(self, event_factory) -> None:
        """Ids 0 and 1 reset the chain."""
        report = _analyze(_records(*self._requests(event_factory, [0, 1, 5, 6])))
        assert report.skipped_count == 0

    def test_per_endpoint(self, event_factory) -> None:
        """A new endpoint starts a new chain."""
        events = (
            self._requests(event_factory, [2, 3], endpoint=1)
            + self._requests(event_factory, [9, 10], endpoint=2)
        )
        report = _analyze(_records(*events))
        assert report.skipped_count == 0


# ---------------------------------------------------------------------------
# Tests: Transaction Order
# ---------------------------------------------------------------------------


class TestTransactionOrder:
    """Test detection of ids going backwards in creation order."""

    def test_backwards_id(self, event_factory) -> None:
        records = _records(
            event_factory("Get Request", 5, 0),
            event_factory("Get Request", 4, 10),
        )
        report = _analyze(records)
        assert report.tid_out_of_sequence == 1
        assert all(r.has(Annotation.TID_OUT_OF_SEQUENCE) for r in records)

    def test_forward_ids(self, event_factory) -> None:
        report = _analyze(_records(
            event_factory("Get Request", 4, 0),
            event_factory("Get Request", 5, 10),
        ))
        assert report.tid_out_of_sequence == 0

    def test_reserved_ids_skipped(self, event_factory) -> None:
        report = _analyze(_records(
            event_factory("Get Request", 5, 0),
            event_factory("Alarm Notification", 0, 10),
            event_factory("Get Request", 6, 20),
        ))
        assert report.tid_out_of_sequence == 0

    def test_per_endpoint(self, event_factory) -> None:
        """Ids on different endpoints are independent."""
        report = _analyze(_records(
            event_factory("Get Request", 9, 0, endpoint=1),
            event_factory("Get Request", 2, 10, endpoint=2),
        ))
        assert report.tid_out_of_sequence == 0
