"""
Analysis engine orchestration.

Coordinates per-event ingest (classification, key indexing, missing
reconciliation, filter surfacing) and on-demand reanalysis of the
buffered session log (correlation, sequence integrity, missing
transactions, statistics).
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Union

from ponwatch.core.classifier import EventClassifier
from ponwatch.core.config import AnalyzerConfig
from ponwatch.core.correlator import Transaction, TransactionCorrelator
from ponwatch.core.errors import MalformedEventError
from ponwatch.core.event import Event, EventRecord
from ponwatch.core.key_index import KeyIndex, KeyIndexEntry
from ponwatch.core.missing import MissingRecord, MissingTransactionTracker
from ponwatch.core.sequence import SequenceIntegrityAnalyzer
from ponwatch.core.stats import AnalysisSnapshot, StatsAggregator
from ponwatch.filter.predicate import FilterPredicate, StructuralFilter, TextFilter
from ponwatch.utils.logger import AnalysisLogger, LogLevel

RawEvent = Union[Event, Mapping[str, Any]]


@dataclass(frozen=True)
class IngestCounts:
    """
    Incremental counters maintained during ingest.

    Attributes:
        total_events: Valid events ingested.
        total_alarms: Alarm notifications among them.
        total_operations: Events carrying a result code.
        failed_operations: Events whose result code is not success.
        decoding_errors: Events with a decoding error.
        suspicious_origins: Downstream events not sent by the controller.
        controller_address: Inferred controller address, if latched.
        malformed_events: Records skipped as malformed.
        ambiguous_timestamps: Timestamps whose fraction was unparseable.
    """

    total_events: int = 0
    total_alarms: int = 0
    total_operations: int = 0
    failed_operations: int = 0
    decoding_errors: int = 0
    suspicious_origins: int = 0
    controller_address: Optional[str] = None
    malformed_events: int = 0
    ambiguous_timestamps: int = 0


@dataclass
class AnalysisState:
    """
    All mutable state of one session.

    Created at session start, mutated only by ingest and reanalysis, and
    replaced wholesale on an explicit reset.
    """

    config: AnalyzerConfig
    records: List[EventRecord] = field(default_factory=list)
    key_index: KeyIndex = field(default_factory=KeyIndex)
    classifier: EventClassifier = field(init=False)
    missing: MissingTransactionTracker = field(
        default_factory=MissingTransactionTracker
    )
    predicate: FilterPredicate = field(default_factory=FilterPredicate)
    transactions: List[Transaction] = field(default_factory=list)
    snapshot: AnalysisSnapshot = field(default_factory=AnalysisSnapshot.empty)
    malformed_events: int = 0
    ambiguous_timestamps: int = 0

    def __post_init__(self) -> None:
        self.classifier = EventClassifier(self.config.success_result_code)


class AnalysisEngine:
    """
    Session-scoped event correlation and integrity analysis.

    A single lock serializes ingest, reanalysis and reset, so one batch is
    processed to completion before the next one is accepted regardless of
    which delivery path it came from.

    Attributes:
        config: Analysis settings.
        logger: Logger for progress output.
    """

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        logger: Optional[AnalysisLogger] = None,
    ) -> None:
        """
        Initialize the engine with an empty session.

        Args:
            config: Analysis settings (defaults apply when omitted).
            logger: Optional logger for progress and debug output.
        """
        self.config: AnalyzerConfig = config or AnalyzerConfig()
        self.logger: AnalysisLogger = logger or AnalysisLogger(LogLevel.SILENT)
        self._lock = threading.RLock()
        self._state = AnalysisState(self.config)
        self._correlator = TransactionCorrelator()
        self._sequence = SequenceIntegrityAnalyzer()
        self._stats = StatsAggregator(self.config.high_latency_ms)

    # ------------------------------------------------------------------ #
    # Ingest
    # ------------------------------------------------------------------ #

    def ingest(self, events: Iterable[RawEvent]) -> None:
        """
        Ingest one delivered batch, in arrival order.

        Items may be Event objects or raw decoded records. Malformed
        records are skipped and counted without aborting the batch.

        Args:
            events: The batch.
        """
        with self._lock:
            state = self._state
            accepted = 0
            skipped = 0
            for item in events:
                if isinstance(item, Event):
                    event = item
                else:
                    try:
                        event = Event.from_record(item)
                    except MalformedEventError as exc:
                        state.malformed_events += 1
                        skipped += 1
                        self.logger.warning(f"Skipping malformed event: {exc}")
                        continue
                self._append(event)
                accepted += 1
            self.logger.batch_ingested(accepted, skipped, len(state.records))

    def _append(self, event: Event) -> EventRecord:
        state = self._state
        if event.timestamp.ambiguous:
            state.ambiguous_timestamps += 1
            self.logger.debug(
                "Ambiguous timestamp fraction treated as zero",
                timestamp=event.timestamp.raw,
            )

        classification = state.classifier.classify(event)
        state.key_index.observe(event.link_id)
        state.key_index.observe(event.link_id, event.endpoint_id)

        record = EventRecord(
            event=event,
            position=len(state.records) + 1,
            annotations=set(classification.annotations),
        )
        state.records.append(record)
        if state.missing.reconcile(record):
            self.logger.debug(f"Reconciled missing transaction {event.key}")
        record.surfaced = state.predicate.matches(event)

        self.logger.event_info(
            record.position,
            event.message_kind,
            str(event.key),
            [a.value for a in record.annotations],
        )
        return record

    # ------------------------------------------------------------------ #
    # Reanalysis
    # ------------------------------------------------------------------ #

    def reanalyze(
        self,
        structural: Optional[StructuralFilter] = None,
        text: Union[TextFilter, str, None] = None,
    ) -> AnalysisSnapshot:
        """
        Recompute all analysis results over the buffered log.

        The structural filter selects the analyzed events; the text filter
        only decides which events are surfaced, since narrowing by text
        would break the context-dependent checks. Both become the active
        filter for subsequent ingests.

        Args:
            structural: Link/endpoint filter (None selects everything).
            text: Free-text filter or needle (None passes everything).

        Returns:
            The new AnalysisSnapshot, replacing the previous one.
        """
        structural = structural or StructuralFilter()
        if not isinstance(text, TextFilter):
            text = TextFilter(text or "")

        with self._lock:
            state = self._state
            state.predicate = FilterPredicate(structural, text)
            for record in state.records:
                record.clear_analysis()
                record.surfaced = state.predicate.matches(record.event)

            batch = [r for r in state.records if structural.matches(r.event)]
            self.logger.info(
                f"Analyzing {len(batch)} of {len(state.records)} events",
                filter=str(state.predicate),
            )

            if not batch:
                state.missing.clear()
                state.transactions = []
                state.snapshot = AnalysisSnapshot.empty()
                return state.snapshot

            correlation = self._correlator.correlate(batch)
            sequence = self._sequence.analyze(batch, correlation.transactions)
            missing = state.missing.collect(correlation.transactions)
            state.transactions = correlation.transactions
            state.snapshot = self._stats.aggregate(
                batch, correlation, sequence, missing,
            )

            self.logger.statistics(state.snapshot.to_dict())
            return state.snapshot

    def apply_filter(self, predicate: FilterPredicate) -> AnalysisSnapshot:
        """Reanalyze with both parts of *predicate*."""
        return self.reanalyze(predicate.structural, predicate.text)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def current_counts(self) -> IngestCounts:
        """Cheap ingest counters, independent of reanalysis."""
        with self._lock:
            state = self._state
            counters = state.classifier.counters
            return IngestCounts(
                total_events=counters.total_events,
                total_alarms=counters.total_alarms,
                total_operations=counters.total_operations,
                failed_operations=counters.failed_operations,
                decoding_errors=counters.decoding_errors,
                suspicious_origins=counters.suspicious_origins,
                controller_address=state.classifier.controller_address,
                malformed_events=state.malformed_events,
                ambiguous_timestamps=state.ambiguous_timestamps,
            )

    def key_index_snapshot(self) -> List[KeyIndexEntry]:
        """Active links and endpoints with their event counts."""
        with self._lock:
            return self._state.key_index.snapshot()

    def surfaced(self) -> List[EventRecord]:
        """Records that pass the active filter, in arrival order."""
        with self._lock:
            return [r for r in self._state.records if r.surfaced]

    @property
    def records(self) -> List[EventRecord]:
        """The whole session log, in arrival order."""
        with self._lock:
            return list(self._state.records)

    @property
    def transactions(self) -> List[Transaction]:
        """Transactions of the last reanalysis, in creation order."""
        with self._lock:
            return list(self._state.transactions)

    @property
    def pending_missing(self) -> List[MissingRecord]:
        """Missing records not yet reconciled."""
        with self._lock:
            return self._state.missing.pending

    @property
    def snapshot(self) -> AnalysisSnapshot:
        """The last computed snapshot."""
        with self._lock:
            return self._state.snapshot

    @property
    def active_filter(self) -> FilterPredicate:
        with self._lock:
            return self._state.predicate

    def reset(self) -> None:
        """Clear the session: log, index, counters, filter and results."""
        with self._lock:
            self._state = AnalysisState(self.config)
            self.logger.info("Session reset")
