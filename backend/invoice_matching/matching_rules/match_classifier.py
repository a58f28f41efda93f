"""
Match Classifier

Classifies every our-side record against its exact-identifier candidates.

Rules:
- No candidates: the record stays unmatched
- One candidate: perfect match when amounts agree within tolerance,
  neither side is partially paid, and paid/voided flags agree;
  otherwise a mismatch
- Several candidates: always a mismatch against the best-scoring
  candidate, so an ambiguous pairing is never auto-accepted

Best-candidate scoring:
- Amount exact: +3
- Transaction number exact: +2
- Reference exact: +2
- Same calendar day: +1, within the date window: +0.5

Perfect matches are additionally checked for date divergence. A date
mismatch annotates the pair; it does not demote it.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from invoice_matching.schema import (
    TransactionRecord,
    PerfectMatch,
    Mismatch,
    MismatchReason,
    DateMismatch,
    DateMismatchType,
    UnmatchedSets,
    ClassificationResult,
)
from invoice_matching.matching_rules.candidate_finder import CandidateIndex

logger = logging.getLogger(__name__)


class MatchClassifier:
    """
    Exact-identifier match classifier.

    Tolerances default to the engine settings but can be passed in
    directly, which keeps the classifier usable without configuration.
    """

    # Best-candidate weights
    SCORE_AMOUNT = 3.0
    SCORE_TRANSACTION_NUMBER = 2.0
    SCORE_REFERENCE = 2.0
    SCORE_SAME_DAY = 1.0
    SCORE_NEAR_DATE = 0.5

    def __init__(
        self,
        amount_tolerance: Decimal = Decimal("0.01"),
        date_mismatch_threshold_days: int = 1,
        best_match_date_window_days: int = 5
    ):
        self.amount_tolerance = Decimal(str(amount_tolerance))
        self.date_mismatch_threshold_days = date_mismatch_threshold_days
        self.best_match_date_window_days = best_match_date_window_days

    @classmethod
    def from_settings(cls, settings) -> "MatchClassifier":
        return cls(
            amount_tolerance=settings.AMOUNT_TOLERANCE,
            date_mismatch_threshold_days=settings.DATE_MISMATCH_THRESHOLD_DAYS,
            best_match_date_window_days=settings.BEST_MATCH_DATE_WINDOW_DAYS
        )

    # ==================== PAIR CHECKS ====================

    def amounts_agree(self, ours: TransactionRecord, theirs: TransactionRecord) -> bool:
        """Absolute amounts within tolerance; tolerates opposite sign conventions."""
        return abs(abs(ours.amount) - abs(theirs.amount)) < self.amount_tolerance

    @staticmethod
    def has_status_mismatch(ours: TransactionRecord, theirs: TransactionRecord) -> bool:
        """Paid or voided flags disagree, in either direction."""
        return ours.is_paid != theirs.is_paid or ours.is_voided != theirs.is_voided

    def is_exact_match(self, ours: TransactionRecord, theirs: TransactionRecord) -> bool:
        if ours.is_partially_paid or theirs.is_partially_paid:
            return False
        return self.amounts_agree(ours, theirs)

    def mismatch_reasons(
        self,
        ours: TransactionRecord,
        theirs: TransactionRecord,
        candidate_count: int = 1
    ) -> List[MismatchReason]:
        reasons = []
        if not self.amounts_agree(ours, theirs):
            reasons.append(MismatchReason.AMOUNT_DIFFERENCE)
        if self.has_status_mismatch(ours, theirs):
            reasons.append(MismatchReason.STATUS_MISMATCH)
        if ours.is_partially_paid or theirs.is_partially_paid:
            reasons.append(MismatchReason.PARTIALLY_PAID)
        if candidate_count > 1:
            reasons.append(MismatchReason.MULTIPLE_CANDIDATES)
        return reasons

    # ==================== BEST CANDIDATE ====================

    def calculate_match_score(self, ours: TransactionRecord, theirs: TransactionRecord) -> float:
        """Weighted score used to rank several candidates for one record."""
        score = 0.0

        if self.amounts_agree(ours, theirs):
            score += self.SCORE_AMOUNT

        if ours.transaction_number and ours.transaction_number == theirs.transaction_number:
            score += self.SCORE_TRANSACTION_NUMBER

        if ours.reference and ours.reference == theirs.reference:
            score += self.SCORE_REFERENCE

        if ours.date and theirs.date:
            days_apart = abs((ours.date - theirs.date).days)
            if days_apart == 0:
                score += self.SCORE_SAME_DAY
            elif days_apart <= self.best_match_date_window_days:
                score += self.SCORE_NEAR_DATE

        return score

    def find_best_match(
        self,
        ours: TransactionRecord,
        candidates: List[TransactionRecord]
    ) -> Optional[TransactionRecord]:
        """Highest-scoring candidate; ties keep the first encountered."""
        best: Optional[TransactionRecord] = None
        best_score = float("-inf")

        for candidate in candidates:
            score = self.calculate_match_score(ours, candidate)
            if score > best_score:
                best, best_score = candidate, score

        return best

    # ==================== DATES ====================

    def find_date_mismatches(
        self,
        ours: TransactionRecord,
        theirs: TransactionRecord
    ) -> List[DateMismatch]:
        """One entry per date field whose values differ by more than the threshold."""
        mismatches = []
        for mismatch_type, our_date, their_date in (
            (DateMismatchType.TRANSACTION_DATE, ours.date, theirs.date),
            (DateMismatchType.DUE_DATE, ours.due_date, theirs.due_date),
        ):
            if our_date is None or their_date is None:
                continue

            days_difference = abs((our_date - their_date).days)
            if days_difference > self.date_mismatch_threshold_days:
                mismatches.append(DateMismatch(
                    our_record=ours,
                    their_record=theirs,
                    mismatch_type=mismatch_type,
                    our_date=our_date,
                    their_date=their_date,
                    days_difference=days_difference
                ))
        return mismatches

    # ==================== CLASSIFICATION ====================

    def classify_pair(
        self,
        ours: TransactionRecord,
        candidates: List[TransactionRecord]
    ) -> Tuple[Optional[TransactionRecord], Optional[PerfectMatch], Optional[Mismatch], List[DateMismatch]]:
        """
        Classify one record against its candidates.

        Returns:
            (paired counterparty record, perfect match, mismatch, date mismatches);
            all empty when there are no candidates
        """
        if not candidates:
            return None, None, None, []

        if len(candidates) == 1:
            theirs = candidates[0]
            if self.is_exact_match(ours, theirs) and not self.has_status_mismatch(ours, theirs):
                perfect = PerfectMatch(our_record=ours, their_record=theirs)
                return theirs, perfect, None, self.find_date_mismatches(ours, theirs)

            return theirs, None, Mismatch(
                our_record=ours,
                their_record=theirs,
                reasons=self.mismatch_reasons(ours, theirs)
            ), []

        best = self.find_best_match(ours, candidates)
        logger.debug(
            f"Record {ours.display_id} has {len(candidates)} candidates; "
            f"best is {best.display_id}"
        )
        return best, None, Mismatch(
            our_record=ours,
            their_record=best,
            reasons=self.mismatch_reasons(ours, best, len(candidates)),
            candidate_count=len(candidates)
        ), []

    def classify(
        self,
        our_records: List[TransactionRecord],
        their_records: List[TransactionRecord]
    ) -> ClassificationResult:
        """
        Classify every our-side record.

        Candidates are drawn from the whole counterparty set, so a
        counterparty record can pair with more than one of ours. Unmatched
        pools are tracked by handle.
        """
        index = CandidateIndex(their_records)
        result = ClassificationResult()

        unmatched_ours = {record.handle for record in our_records}
        unmatched_theirs = {record.handle for record in their_records}

        for ours in our_records:
            theirs, perfect, mismatch, date_mismatches = self.classify_pair(
                ours, index.find_candidates(ours)
            )
            if theirs is None:
                continue

            unmatched_ours.discard(ours.handle)
            unmatched_theirs.discard(theirs.handle)

            if perfect:
                result.perfect_matches.append(perfect)
                result.date_mismatches.extend(date_mismatches)
            else:
                result.mismatches.append(mismatch)

        result.unmatched = UnmatchedSets(
            our_side=[r for r in our_records if r.handle in unmatched_ours],
            their_side=[r for r in their_records if r.handle in unmatched_theirs]
        )

        logger.info(
            f"Classified {len(our_records)} records: "
            f"{len(result.perfect_matches)} perfect, {len(result.mismatches)} mismatched, "
            f"{len(result.unmatched.our_side)} unmatched"
        )
        return result
