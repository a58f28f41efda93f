"""
Reconciliation Service

Runs one matching pass over two ledgers:
- Normalising raw records from both sides (and optional history)
- Dropping records with neither an identifier nor an amount
- Classifying our records against counterparty candidates
- Explaining unmatched counterparty records from history
- Totals and variance

The engine does no I/O. Telemetry is a collaborator passed in by the
caller; by default events go to the log.
"""

import uuid
import logging
from typing import Any, List, Optional, Sequence, Tuple

from invoice_matching.config import MatchingSettings, get_settings
from invoice_matching.errors import MatchingError
from invoice_matching.logging_config import set_run_context, clear_run_context
from invoice_matching.normalisation.field_normaliser import FieldNormaliser
from invoice_matching.matching_rules.match_classifier import MatchClassifier
from invoice_matching.schema import TransactionRecord, ReconciliationResult
from invoice_matching.services.historical_insights import generate_historical_insights
from invoice_matching.services.totals import calculate_totals
from invoice_matching.telemetry import (
    MatchingTelemetry,
    LoggingTelemetry,
    ReconciliationEvent,
)

logger = logging.getLogger(__name__)


def count_credit_notes(records: List[TransactionRecord]) -> int:
    return sum(1 for record in records if record.is_credit_note)


def _require_collection(parameter: str, value: Any, optional: bool = False) -> None:
    if value is None and optional:
        return
    if not isinstance(value, (list, tuple)):
        raise MatchingError.invalid_collection(parameter, value)


class ReconciliationEngine:
    """
    Matches our-side records against counterparty records.

    Each call to match_records is independent; the engine keeps no state
    between runs beyond its settings and collaborators.
    """

    def __init__(
        self,
        settings: Optional[MatchingSettings] = None,
        telemetry: Optional[MatchingTelemetry] = None,
        classifier: Optional[MatchClassifier] = None
    ):
        self.settings = settings or get_settings()
        self.telemetry = telemetry or LoggingTelemetry()
        self.classifier = classifier or MatchClassifier.from_settings(self.settings)

    def match_records(
        self,
        our_records: Sequence[Any],
        their_records: Sequence[Any],
        our_date_format: Optional[str] = None,
        their_date_format: Optional[str] = None,
        historical_records: Optional[Sequence[Any]] = None,
        run_id: Optional[str] = None
    ) -> ReconciliationResult:
        """
        Reconcile two ledgers.

        Args:
            our_records: Raw our-side (receivables) records
            their_records: Raw counterparty (payables) records
            our_date_format: Date-format hint for our records
            their_date_format: Date-format hint for counterparty records
            historical_records: Optional raw our-side history
            run_id: Optional run identifier (generated when omitted)

        Returns:
            ReconciliationResult

        Raises:
            MatchingError: if a record collection is missing or not a list
        """
        _require_collection("our_records", our_records)
        _require_collection("their_records", their_records)
        _require_collection("historical_records", historical_records, optional=True)

        run_id = run_id or str(uuid.uuid4())
        our_date_format = our_date_format or self.settings.DEFAULT_DATE_FORMAT
        their_date_format = their_date_format or self.settings.DEFAULT_DATE_FORMAT

        set_run_context(run_id)
        try:
            self.telemetry.record_event(ReconciliationEvent.RUN_STARTED, {
                "run_id": run_id,
                "our_count": len(our_records),
                "their_count": len(their_records),
                "historical_count": len(historical_records) if historical_records else 0
            })

            notes: List[str] = []
            ours = self._prepare("our", our_records, our_date_format, run_id, notes)
            theirs = self._prepare("their", their_records, their_date_format, run_id, notes)
            history = self._prepare(
                "historical", historical_records or [], our_date_format, run_id, notes
            )

            classification = self.classifier.classify(ours, theirs)
            historical_insights = generate_historical_insights(
                classification.unmatched.their_side, history
            )

            result = ReconciliationResult(
                run_id=run_id,
                perfect_matches=classification.perfect_matches,
                mismatches=classification.mismatches,
                unmatched=classification.unmatched,
                date_mismatches=classification.date_mismatches,
                historical_insights=historical_insights,
                totals=calculate_totals(ours, theirs),
                our_record_count=len(ours),
                their_record_count=len(theirs),
                our_credit_note_count=count_credit_notes(ours),
                their_credit_note_count=count_credit_notes(theirs),
                processing_notes=notes
            )

            self.telemetry.record_event(ReconciliationEvent.RUN_COMPLETED, {
                "run_id": run_id,
                **result.summary()
            })
            logger.info(
                f"Reconciliation {run_id} complete: {len(result.perfect_matches)} perfect, "
                f"{len(result.mismatches)} mismatched, match rate {result.match_rate}%"
            )
            return result
        finally:
            clear_run_context()

    def _prepare(
        self,
        side: str,
        raw_records: Sequence[Any],
        date_format: str,
        run_id: str,
        notes: List[str]
    ) -> List[TransactionRecord]:
        """Normalise one side and drop records with no identifier and no amount."""
        normalised = FieldNormaliser.normalise_records(list(raw_records), date_format)
        kept, dropped = self._split_incomplete(normalised)

        for record in kept:
            for note in record.processing_notes:
                notes.append(f"{side} record {record.display_id}: {note}")

        for record in dropped:
            logger.warning(f"Dropping {side} record #{record.handle}: no identifier and no amount")
            notes.append(f"{side} record #{record.handle} dropped: no identifier and no amount")
            self.telemetry.record_event(ReconciliationEvent.RECORD_DROPPED, {
                "run_id": run_id,
                "side": side,
                "handle": record.handle
            })

        return kept

    @staticmethod
    def _split_incomplete(
        records: List[TransactionRecord]
    ) -> Tuple[List[TransactionRecord], List[TransactionRecord]]:
        kept, dropped = [], []
        for record in records:
            if record.has_identifier or record.amount_present:
                kept.append(record)
            else:
                dropped.append(record)
        return kept, dropped


def match_records(
    our_records: Sequence[Any],
    their_records: Sequence[Any],
    our_date_format: Optional[str] = None,
    their_date_format: Optional[str] = None,
    historical_records: Optional[Sequence[Any]] = None,
    telemetry: Optional[MatchingTelemetry] = None
) -> ReconciliationResult:
    """Run a reconciliation with the configured settings."""
    engine = ReconciliationEngine(telemetry=telemetry)
    return engine.match_records(
        our_records,
        their_records,
        our_date_format=our_date_format,
        their_date_format=their_date_format,
        historical_records=historical_records
    )
