"""
Confidence Scorer

Fuzzy pairing for ledgers whose identifiers can't be trusted for exact
lookup (OCR'd invoices, manually keyed entries).

Scoring Weights:
- transaction number similarity: 35%
- amount similarity: 30%
- date proximity: 20%
- reference similarity: 15%

Status:
- matched: confidence >= auto-match threshold (default 90)
- mismatched: confidence >= review threshold (default 50)
- no-match: below that

Each result carries the per-factor scores, the reasons the pair fell
short, and graded insights worded from the same score bands.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Union

from rapidfuzz.distance import Levenshtein

from invoice_matching.schema import TransactionRecord
from invoice_matching.normalisation.field_normaliser import FieldNormaliser
from invoice_matching.source_registry import LedgerSource, SourceRegistry, source_registry

logger = logging.getLogger(__name__)

RecordLike = Union[TransactionRecord, Mapping]


class MatchConfidenceStatus:
    MATCHED = "matched"
    MISMATCHED = "mismatched"
    NO_MATCH = "no-match"


@dataclass
class ScoringTolerances:
    """
    Tolerances for fuzzy scoring.
    """
    amount_tolerance: float = 0.01  # Percentage (0.01 = 1%)
    date_tolerance_days: int = 7
    fuzzy_matching: bool = True


@dataclass
class MatchFactors:
    transaction_number_match: int = 0
    amount_match: int = 0
    date_match: int = 0
    reference_match: int = 0
    overall_confidence: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "transactionNumberMatch": self.transaction_number_match,
            "amountMatch": self.amount_match,
            "dateMatch": self.date_match,
            "referenceMatch": self.reference_match,
            "overallConfidence": self.overall_confidence
        }


@dataclass
class MatchInsight:
    type: str  # positive, warning, error
    message: str
    weight: float

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "message": self.message, "weight": self.weight}


@dataclass
class ConfidenceResult:
    """
    Result of scoring one pair.
    """
    confidence: int
    status: str
    factors: MatchFactors
    reasons: List[str] = field(default_factory=list)
    insights: List[MatchInsight] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "confidence": self.confidence,
            "status": self.status,
            "factors": self.factors.to_dict(),
            "reasons": list(self.reasons),
            "insights": [i.to_dict() for i in self.insights]
        }


@dataclass
class ScoredPair:
    """Best counterparty found for one of our records in a batch run."""
    our_record: TransactionRecord
    their_record: TransactionRecord
    result: ConfidenceResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ourRecord": self.our_record.to_dict(),
            "theirRecord": self.their_record.to_dict(),
            **self.result.to_dict()
        }


def _normalise_identifier(value: str) -> str:
    return re.sub(r"\s+", "", value).lower()


class ConfidenceScorer:
    """
    Weighted fuzzy-similarity scorer.
    """

    # Scoring weights
    WEIGHT_TRANSACTION_NUMBER = Decimal("0.35")
    WEIGHT_AMOUNT = Decimal("0.30")
    WEIGHT_DATE = Decimal("0.20")
    WEIGHT_REFERENCE = Decimal("0.15")

    # Reference blank on exactly one side
    NEUTRAL_REFERENCE_SCORE = 70

    def __init__(
        self,
        tolerances: Optional[ScoringTolerances] = None,
        auto_match_threshold: int = 90,
        review_threshold: int = 50,
        date_format: Optional[str] = None
    ):
        self.tolerances = tolerances or ScoringTolerances()
        self.auto_match_threshold = auto_match_threshold
        self.review_threshold = review_threshold
        self.date_format = date_format

    @classmethod
    def from_settings(cls, settings) -> "ConfidenceScorer":
        return cls(
            tolerances=ScoringTolerances(
                amount_tolerance=settings.CONFIDENCE_AMOUNT_TOLERANCE,
                date_tolerance_days=settings.CONFIDENCE_DATE_TOLERANCE_DAYS,
                fuzzy_matching=settings.CONFIDENCE_FUZZY_MATCHING
            ),
            auto_match_threshold=settings.AUTO_MATCH_THRESHOLD,
            review_threshold=settings.REVIEW_THRESHOLD,
            date_format=settings.DEFAULT_DATE_FORMAT
        )

    @classmethod
    def for_source(
        cls,
        source: LedgerSource,
        registry: SourceRegistry = source_registry
    ) -> "ConfidenceScorer":
        """Build a scorer from a ledger source's tolerances and thresholds."""
        cfg = registry.get_config(source)
        if cfg is None:
            logger.warning(f"No source config for {source}; using default tolerances")
            return cls()

        return cls(
            tolerances=ScoringTolerances(
                amount_tolerance=cfg.amount_tolerance,
                date_tolerance_days=cfg.date_tolerance_days
            ),
            auto_match_threshold=cfg.auto_match_threshold,
            review_threshold=cfg.review_threshold,
            date_format=cfg.default_date_format
        )

    # ==================== FACTOR SCORES ====================

    @staticmethod
    def similarity_band(similarity: float) -> int:
        """Map a normalised edit-distance similarity onto a score."""
        if similarity > 0.9:
            return 90
        if similarity > 0.8:
            return 75
        if similarity > 0.7:
            return 60
        if similarity > 0.5:
            return 40
        return 0

    def _score_identifier_text(self, ours: str, theirs: str) -> int:
        if ours == theirs:
            return 100

        if not self.tolerances.fuzzy_matching:
            return 0

        our_normalised = _normalise_identifier(ours)
        their_normalised = _normalise_identifier(theirs)
        if our_normalised == their_normalised:
            return 95

        return self.similarity_band(
            Levenshtein.normalized_similarity(our_normalised, their_normalised)
        )

    def score_transaction_number(self, ours: str, theirs: str) -> int:
        if not ours or not theirs:
            return 0
        return self._score_identifier_text(ours, theirs)

    def score_reference(self, ours: str, theirs: str) -> int:
        if not ours and not theirs:
            return 100
        if not ours or not theirs:
            return self.NEUTRAL_REFERENCE_SCORE
        return self._score_identifier_text(ours, theirs)

    def score_amount(self, ours: Decimal, theirs: Decimal) -> int:
        our_abs, their_abs = abs(ours), abs(theirs)
        if not our_abs and not their_abs:
            return 100
        if not our_abs or not their_abs:
            return 0

        if our_abs == their_abs:
            return 100

        tolerance = Decimal(str(self.tolerances.amount_tolerance))
        percent_difference = abs(our_abs - their_abs) / max(our_abs, their_abs)

        if percent_difference <= tolerance:
            return 95
        if percent_difference <= tolerance * 2:
            return 85
        if percent_difference <= tolerance * 3:
            return 70
        if percent_difference <= tolerance * 5:
            return 50
        if percent_difference <= Decimal("0.10"):
            return 30
        return 0

    def score_date(self, ours, theirs) -> int:
        if ours is None and theirs is None:
            return 100
        if ours is None or theirs is None:
            return 0

        days_apart = abs((ours - theirs).days)
        window = self.tolerances.date_tolerance_days

        if days_apart == 0:
            return 100
        if days_apart <= window:
            return 90
        if days_apart <= window * 2:
            return 75
        if days_apart <= window * 3:
            return 60
        if days_apart <= 30:
            return 40
        if days_apart <= 90:
            return 20
        return 0

    # ==================== CONFIDENCE ====================

    def calculate_factors(self, ours: TransactionRecord, theirs: TransactionRecord) -> MatchFactors:
        factors = MatchFactors(
            transaction_number_match=self.score_transaction_number(
                ours.transaction_number, theirs.transaction_number
            ),
            amount_match=self.score_amount(ours.amount, theirs.amount),
            date_match=self.score_date(ours.date, theirs.date),
            reference_match=self.score_reference(ours.reference, theirs.reference)
        )

        weighted = (
            factors.transaction_number_match * self.WEIGHT_TRANSACTION_NUMBER
            + factors.amount_match * self.WEIGHT_AMOUNT
            + factors.date_match * self.WEIGHT_DATE
            + factors.reference_match * self.WEIGHT_REFERENCE
        )
        factors.overall_confidence = int(weighted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return factors

    def determine_match_status(self, confidence: int) -> str:
        if confidence >= self.auto_match_threshold:
            return MatchConfidenceStatus.MATCHED
        if confidence >= self.review_threshold:
            return MatchConfidenceStatus.MISMATCHED
        return MatchConfidenceStatus.NO_MATCH

    def calculate_match_confidence(self, our_record: RecordLike, their_record: RecordLike) -> ConfidenceResult:
        """
        Score a candidate pair.

        Args:
            our_record: TransactionRecord or raw mapping
            their_record: TransactionRecord or raw mapping

        Returns:
            ConfidenceResult with confidence 0-100 and status
        """
        ours = self._coerce(our_record)
        theirs = self._coerce(their_record)

        factors = self.calculate_factors(ours, theirs)
        confidence = factors.overall_confidence

        return ConfidenceResult(
            confidence=confidence,
            status=self.determine_match_status(confidence),
            factors=factors,
            reasons=self.generate_reasons(ours, theirs, factors),
            insights=self.generate_insights(ours, theirs, factors)
        )

    def batch_process_matches(
        self,
        our_records: List[RecordLike],
        their_records: List[RecordLike]
    ) -> List[ScoredPair]:
        """
        Pick the highest-confidence counterparty for each of our records.

        Ties keep the first counterparty encountered; records with no
        counterparty above zero confidence are left out.
        """
        ours_normalised = [self._coerce(r, handle) for handle, r in enumerate(our_records)]
        theirs_normalised = [self._coerce(r, handle) for handle, r in enumerate(their_records)]

        pairs = []
        for ours in ours_normalised:
            best: Optional[ScoredPair] = None
            for theirs in theirs_normalised:
                result = self.calculate_match_confidence(ours, theirs)
                if result.confidence > (best.result.confidence if best else 0):
                    best = ScoredPair(our_record=ours, their_record=theirs, result=result)
            if best:
                pairs.append(best)

        logger.info(f"Confidence batch: {len(pairs)} of {len(ours_normalised)} records paired")
        return pairs

    # ==================== EXPLANATIONS ====================

    def generate_reasons(
        self,
        ours: TransactionRecord,
        theirs: TransactionRecord,
        factors: MatchFactors
    ) -> List[str]:
        """What disagreed, one sentence per factor scoring below 100."""
        reasons = []

        if factors.transaction_number_match < 100:
            if not ours.transaction_number or not theirs.transaction_number:
                reasons.append("Transaction number missing on one or both records")
            elif factors.transaction_number_match == 95:
                reasons.append("Transaction numbers differ only in case or spacing")
            elif factors.transaction_number_match > 0:
                reasons.append("Transaction numbers are similar but not identical")
            else:
                reasons.append("Transaction numbers do not match")

        if factors.amount_match < 100:
            if not ours.amount or not theirs.amount:
                reasons.append("Amount missing or zero on one or both records")
            else:
                difference, percentage = self._amount_difference(ours, theirs)
                reasons.append(f"Amounts differ by ${difference:.2f} ({percentage:.1f}%)")

        if factors.date_match < 100:
            if ours.date is None or theirs.date is None:
                reasons.append("Date missing on one or both records")
            else:
                reasons.append(f"Dates are {abs((ours.date - theirs.date).days)} day(s) apart")

        if factors.reference_match < 100:
            if not ours.reference or not theirs.reference:
                reasons.append("Reference missing on one record")
            elif factors.reference_match == 95:
                reasons.append("References differ only in case or spacing")
            elif factors.reference_match > 0:
                reasons.append("References are similar but not identical")
            else:
                reasons.append("References do not match")

        return reasons

    def generate_insights(
        self,
        ours: TransactionRecord,
        theirs: TransactionRecord,
        factors: MatchFactors
    ) -> List[MatchInsight]:
        """Per-factor insights followed by one overall-confidence insight."""
        insights = []

        # Transaction number
        if factors.transaction_number_match == 100:
            insights.append(MatchInsight("positive", "Invoice numbers match exactly", 0.35))
        elif factors.transaction_number_match >= 90:
            insights.append(MatchInsight(
                "positive", "Invoice numbers match with minor formatting differences", 0.35
            ))
        elif factors.transaction_number_match > 0:
            insights.append(MatchInsight("warning", "Invoice numbers are similar but may have errors", 0.35))
        else:
            insights.append(MatchInsight("error", "Invoice numbers do not match", 0.35))

        # Amount
        if factors.amount_match == 100:
            insights.append(MatchInsight("positive", "Amounts match exactly", 0.30))
        elif factors.amount_match >= 95:
            difference, _ = self._amount_difference(ours, theirs)
            insights.append(MatchInsight(
                "positive", f"Amounts match within tolerance (difference: ${difference:.2f})", 0.30
            ))
        elif factors.amount_match > 0:
            difference, percentage = self._amount_difference(ours, theirs)
            insights.append(MatchInsight(
                "warning", f"Amount difference of ${difference:.2f} ({percentage:.1f}%) detected", 0.30
            ))

        # Date
        if factors.date_match == 100:
            insights.append(MatchInsight("positive", "Dates match exactly", 0.20))
        elif factors.date_match >= 90:
            days_apart = abs((ours.date - theirs.date).days)
            insights.append(MatchInsight(
                "positive", f"Dates are {days_apart} day(s) apart - within acceptable range", 0.20
            ))
        elif factors.date_match > 0:
            insights.append(MatchInsight("warning", "Significant date difference detected", 0.20))

        # Reference, only when both sides carry one
        if ours.reference and theirs.reference:
            if factors.reference_match == 100:
                insights.append(MatchInsight("positive", "Reference numbers match exactly", 0.15))
            elif factors.reference_match >= 85:
                insights.append(MatchInsight("positive", "Reference numbers match with minor differences", 0.15))
            elif factors.reference_match >= 50:
                insights.append(MatchInsight("warning", "Reference numbers are partially similar", 0.15))
            else:
                insights.append(MatchInsight("warning", "Reference numbers do not match", 0.15))

        confidence = factors.overall_confidence
        if confidence >= 95:
            insights.append(MatchInsight(
                "positive", "High confidence match - ready for automatic processing", 1.0
            ))
        elif confidence >= 80:
            insights.append(MatchInsight("positive", "Good match confidence - may require minimal review", 1.0))
        elif confidence >= 60:
            insights.append(MatchInsight("warning", "Moderate confidence - manual review recommended", 1.0))
        else:
            insights.append(MatchInsight("error", "Low confidence match - requires careful review", 1.0))

        return insights

    # ==================== HELPERS ====================

    @staticmethod
    def _amount_difference(ours: TransactionRecord, theirs: TransactionRecord):
        our_abs, their_abs = abs(ours.amount), abs(theirs.amount)
        difference = abs(our_abs - their_abs)
        largest = max(our_abs, their_abs)
        percentage = difference / largest * 100 if largest else Decimal("0")
        return difference, percentage

    def _coerce(self, record: RecordLike, handle: int = 0) -> TransactionRecord:
        if isinstance(record, TransactionRecord):
            return record
        return FieldNormaliser.normalise_record(record, handle, self.date_format)


# Default scorer
confidence_scorer = ConfidenceScorer()


def calculate_match_confidence(our_record: RecordLike, their_record: RecordLike) -> ConfidenceResult:
    """Score a pair with the default tolerances and thresholds."""
    return confidence_scorer.calculate_match_confidence(our_record, their_record)
