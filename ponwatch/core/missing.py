"""
Tracking of transactions that lack a counterpart.

After each correlation pass the incomplete transactions become pending
missing records. Every event ingested afterwards is checked against the
pending set; a record whose request and response roles are both
satisfied is reconciled and its annotation cleared.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List

from ponwatch.core.classifier import is_request, is_response
from ponwatch.core.correlator import Transaction
from ponwatch.core.event import Annotation, EventRecord, TransactionKey


class MissingState(Enum):
    """Lifecycle of a missing record."""

    PENDING = "pending"
    RECONCILED = "reconciled"


@dataclass
class MissingRecord:
    """
    A transaction that lacked its request or response after analysis.

    A role is satisfied either by the timestamp found during analysis or
    by a matching event ingested later. Alarms satisfy both roles.

    Attributes:
        key: The transaction key.
        origin: Log record of the event that created the transaction.
        request_satisfied: A request has been seen.
        response_satisfied: A response has been seen.
        state: PENDING until both roles are satisfied.
    """

    key: TransactionKey
    origin: EventRecord
    request_satisfied: bool = False
    response_satisfied: bool = False
    state: MissingState = MissingState.PENDING

    def satisfy(self, request: bool, response: bool) -> bool:
        """
        Mark roles as satisfied.

        Returns:
            True if this call reconciled the record.
        """
        if self.state is MissingState.RECONCILED:
            return False
        self.request_satisfied = self.request_satisfied or request
        self.response_satisfied = self.response_satisfied or response
        if self.request_satisfied and self.response_satisfied:
            self.state = MissingState.RECONCILED
            return True
        return False


class MissingTransactionTracker:
    """Pending missing records, keyed by transaction key."""

    def __init__(self) -> None:
        self._pending: Dict[TransactionKey, MissingRecord] = {}

    def collect(self, transactions: Iterable[Transaction]) -> List[MissingRecord]:
        """
        Replace the pending set with the incomplete *transactions*.

        Each incomplete transaction's origin record is annotated.

        Returns:
            The new missing records, in transaction order.
        """
        self._pending = {}
        for transaction in transactions:
            if transaction.is_complete:
                continue
            record = MissingRecord(
                key=transaction.key,
                origin=transaction.origin,
                request_satisfied=transaction.request_time is not None,
                response_satisfied=transaction.response_time is not None,
            )
            transaction.origin.annotate(Annotation.MISSING_COUNTERPART)
            self._pending[transaction.key] = record
        return list(self._pending.values())

    def reconcile(self, record: EventRecord) -> bool:
        """
        Check a newly ingested record against the pending set.

        Returns:
            True if a pending record was reconciled by this event.
        """
        event = record.event
        missing = self._pending.get(event.key)
        if missing is None:
            return False
        if missing.satisfy(
            is_request(event.message_kind), is_response(event.message_kind)
        ):
            missing.origin.clear(Annotation.MISSING_COUNTERPART)
            del self._pending[event.key]
            return True
        return False

    @property
    def pending(self) -> List[MissingRecord]:
        """Pending records in the order they were collected."""
        return list(self._pending.values())

    def clear(self) -> None:
        """Drop all pending records."""
        self._pending = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: object) -> bool:
        return key in self._pending
