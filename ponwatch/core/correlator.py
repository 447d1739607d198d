"""
Request/response correlation.

Pairs the events of an analysis batch into transactions keyed by
``(link_id, endpoint_id, transaction_id)``. Lookup goes through a dict
keyed by the tuple; this keeps the first-exact-match semantics of a
linear scan (keys are unique) while making a pass O(n).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ponwatch.core.classifier import is_request, is_response
from ponwatch.core.event import Annotation, EventRecord, EventTime, TransactionKey


@dataclass
class Transaction:
    """
    Correlation record for one transaction key.

    Request and response times are only ever overwritten by a later event
    of the same role, never cleared.

    Attributes:
        key: The transaction key.
        sequence_index: 1-based batch position of the creating event.
        origin: Log record of the creating event.
        request_time: Time of the latest request, if any.
        response_time: Time of the latest response, if any.
        response_index: Batch position of the latest response, if any.
    """

    key: TransactionKey
    sequence_index: int
    origin: EventRecord
    request_time: Optional[EventTime] = None
    response_time: Optional[EventTime] = None
    response_index: Optional[int] = None

    @property
    def is_complete(self) -> bool:
        """True when both a request and a response were seen."""
        return self.request_time is not None and self.response_time is not None

    @property
    def latency_ms(self) -> Optional[float]:
        """Response minus request time in milliseconds (complete only)."""
        if self.request_time is None or self.response_time is None:
            return None
        return self.request_time.millis_until(self.response_time)


@dataclass
class CorrelationResult:
    """
    Output of one correlation pass.

    Attributes:
        transactions: Transactions in creation order.
        role_swaps: Number of requests seen after their response.
    """

    transactions: List[Transaction] = field(default_factory=list)
    role_swaps: int = 0

    @property
    def total(self) -> int:
        return len(self.transactions)


class TransactionCorrelator:
    """Builds the transaction set of an analysis batch."""

    def correlate(self, records: Sequence[EventRecord]) -> CorrelationResult:
        """
        Correlate *records* in arrival order.

        A request that arrives for a key which already has a response but
        no request is a role swap: it is counted and the earlier (response)
        record is annotated.

        Args:
            records: The analysis batch, in arrival order.

        Returns:
            CorrelationResult with all transactions and the swap count.
        """
        result = CorrelationResult()
        index: Dict[TransactionKey, Transaction] = {}

        for position, record in enumerate(records, start=1):
            event = record.event
            request = is_request(event.message_kind)
            response = is_response(event.message_kind)

            transaction = index.get(event.key)
            if transaction is None:
                transaction = Transaction(
                    key=event.key,
                    sequence_index=position,
                    origin=record,
                )
                index[event.key] = transaction
                result.transactions.append(transaction)
            elif (
                request
                and transaction.request_time is None
                and transaction.response_time is not None
            ):
                result.role_swaps += 1
                transaction.origin.annotate(Annotation.ROLE_SWAP)

            if request:
                transaction.request_time = event.timestamp
            if response:
                transaction.response_time = event.timestamp
                transaction.response_index = position

        return result
