"""
Canonical Matching Schema

Defines the canonical transaction record every raw ledger row is
normalised into, and the result types produced by a matching run.

Design principles:
- Deterministic
- Source-agnostic (Xero, CSV, manual entry, OCR)
- Every record carries a stable integer handle for identity tracking
"""

import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Dict, Any
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field


# ==================== ENUMS ====================

class MismatchReason(str, Enum):
    """Why a paired record was not classified as a perfect match."""
    AMOUNT_DIFFERENCE = "amount_difference"
    STATUS_MISMATCH = "status_mismatch"
    PARTIALLY_PAID = "partially_paid"
    MULTIPLE_CANDIDATES = "multiple_candidates"


class DateMismatchType(str, Enum):
    """Which date of a perfect match diverges."""
    TRANSACTION_DATE = "transaction_date"
    DUE_DATE = "due_date"


class InsightType(str, Enum):
    """Explanations for an unmatched counterparty record."""
    ALREADY_PAID = "already_paid"
    PARTIALLY_PAID = "partially_paid"
    VOIDED = "voided"
    DRAFT = "draft"
    FOUND_IN_HISTORY = "found_in_history"


class InsightSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def _iso(value: Optional[datetime.date]) -> Optional[str]:
    return value.isoformat() if value else None


# ==================== TRANSACTION RECORD ====================

class TransactionRecord(BaseModel):
    """
    Canonical transaction record produced by the field normaliser.

    The handle is assigned at normalisation time and is unique within
    one side of one matching run. It is the record's identity for
    unmatched-pool bookkeeping.
    """
    model_config = ConfigDict(frozen=True)

    handle: int = Field(..., description="Stable index assigned at normalisation time")
    transaction_number: str = Field(default="", description="Primary matching identifier")
    type: str = Field(default="", description="Free-text transaction kind")
    amount: Decimal = Field(default=Decimal("0"), description="Signed amount")
    date: Optional[datetime.date] = Field(default=None, description="Issue date")
    due_date: Optional[datetime.date] = Field(default=None, description="Due date")
    status: str = Field(default="", description="Free-text status from the source")
    reference: str = Field(default="", description="Secondary matching identifier")

    is_paid: bool = False
    is_voided: bool = False
    is_partially_paid: bool = False
    original_amount: Decimal = Decimal("0")
    amount_paid: Decimal = Decimal("0")
    payment_date: Optional[datetime.date] = None
    void_date: Optional[datetime.date] = None

    amount_present: bool = Field(default=True, description="False when the source had no usable amount")
    processing_notes: List[str] = Field(default_factory=list)

    @property
    def is_open(self) -> bool:
        """Outstanding items are neither paid nor voided."""
        return not self.is_paid and not self.is_voided

    @property
    def has_identifier(self) -> bool:
        return bool(self.transaction_number or self.reference)

    @property
    def is_credit_note(self) -> bool:
        """Credit notes carry a CREDIT type (ACCRECCREDIT, ACCPAYCREDIT) or a negative amount."""
        if "CREDIT" in self.type.upper():
            return True
        return self.amount < 0

    @property
    def display_id(self) -> str:
        return self.transaction_number or self.reference or f"#{self.handle}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "transactionNumber": self.transaction_number,
            "type": self.type,
            "amount": str(self.amount),
            "date": _iso(self.date),
            "dueDate": _iso(self.due_date),
            "status": self.status,
            "reference": self.reference,
            "isPaid": self.is_paid,
            "isVoided": self.is_voided,
            "isPartiallyPaid": self.is_partially_paid,
            "originalAmount": str(self.original_amount),
            "amountPaid": str(self.amount_paid),
            "paymentDate": _iso(self.payment_date),
            "voidDate": _iso(self.void_date),
            "processingNotes": list(self.processing_notes)
        }


# ==================== MATCH RESULTS ====================

@dataclass
class PerfectMatch:
    """Identifier and amount agree within tolerance, no status divergence."""
    our_record: TransactionRecord
    their_record: TransactionRecord

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ourRecord": self.our_record.to_dict(),
            "theirRecord": self.their_record.to_dict()
        }


@dataclass
class Mismatch:
    """Paired records that fail exactness."""
    our_record: TransactionRecord
    their_record: TransactionRecord
    reasons: List[MismatchReason] = field(default_factory=list)
    candidate_count: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ourRecord": self.our_record.to_dict(),
            "theirRecord": self.their_record.to_dict(),
            "reasons": [reason.value for reason in self.reasons],
            "candidateCount": self.candidate_count
        }


@dataclass
class DateMismatch:
    """Annotation on a perfect match whose dates diverge."""
    our_record: TransactionRecord
    their_record: TransactionRecord
    mismatch_type: DateMismatchType
    our_date: datetime.date
    their_date: datetime.date
    days_difference: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ourRecord": self.our_record.to_dict(),
            "theirRecord": self.their_record.to_dict(),
            "mismatchType": self.mismatch_type.value,
            "ourDate": _iso(self.our_date),
            "theirDate": _iso(self.their_date),
            "daysDifference": self.days_difference
        }


@dataclass
class UnmatchedSets:
    """Records with zero candidates, per side."""
    our_side: List[TransactionRecord] = field(default_factory=list)
    their_side: List[TransactionRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ourSide": [r.to_dict() for r in self.our_side],
            "theirSide": [r.to_dict() for r in self.their_side]
        }


@dataclass
class Insight:
    type: InsightType
    message: str
    severity: InsightSeverity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "message": self.message,
            "severity": self.severity.value
        }


@dataclass
class HistoricalInsight:
    """Links an unmatched counterparty record to our-side history."""
    their_record: TransactionRecord
    historical_record: TransactionRecord
    insight: Insight

    def to_dict(self) -> Dict[str, Any]:
        return {
            "theirRecord": self.their_record.to_dict(),
            "historicalRecord": self.historical_record.to_dict(),
            "insight": self.insight.to_dict()
        }


@dataclass
class Totals:
    our_total: Decimal
    their_total: Decimal
    variance: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ourTotal": str(self.our_total),
            "theirTotal": str(self.their_total),
            "variance": str(self.variance)
        }


@dataclass
class ClassificationResult:
    """Output of the match classifier, before insights and totals."""
    perfect_matches: List[PerfectMatch] = field(default_factory=list)
    mismatches: List[Mismatch] = field(default_factory=list)
    date_mismatches: List[DateMismatch] = field(default_factory=list)
    unmatched: UnmatchedSets = field(default_factory=UnmatchedSets)


@dataclass
class ReconciliationResult:
    """
    Result of a matching run.
    """
    run_id: str
    perfect_matches: List[PerfectMatch]
    mismatches: List[Mismatch]
    unmatched: UnmatchedSets
    date_mismatches: List[DateMismatch]
    historical_insights: List[HistoricalInsight]
    totals: Totals
    our_record_count: int = 0
    their_record_count: int = 0
    our_credit_note_count: int = 0
    their_credit_note_count: int = 0
    processing_notes: List[str] = field(default_factory=list)

    @property
    def match_rate(self) -> float:
        """Percentage of our-side records paired with a counterparty record."""
        if self.our_record_count == 0:
            return 0.0
        paired = len(self.perfect_matches) + len(self.mismatches)
        return round(paired / self.our_record_count * 100, 1)

    def summary(self) -> Dict[str, Any]:
        return {
            "ourRecordCount": self.our_record_count,
            "theirRecordCount": self.their_record_count,
            "ourCreditNoteCount": self.our_credit_note_count,
            "theirCreditNoteCount": self.their_credit_note_count,
            "perfectMatchCount": len(self.perfect_matches),
            "mismatchCount": len(self.mismatches),
            "dateMismatchCount": len(self.date_mismatches),
            "unmatchedOurSideCount": len(self.unmatched.our_side),
            "unmatchedTheirSideCount": len(self.unmatched.their_side),
            "historicalInsightCount": len(self.historical_insights),
            "matchRate": self.match_rate
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the engine's output contract."""
        return {
            "runId": self.run_id,
            "perfectMatches": [m.to_dict() for m in self.perfect_matches],
            "mismatches": [m.to_dict() for m in self.mismatches],
            "unmatchedItems": self.unmatched.to_dict(),
            "dateMismatches": [m.to_dict() for m in self.date_mismatches],
            "historicalInsights": [i.to_dict() for i in self.historical_insights],
            "totals": self.totals.to_dict(),
            "summary": self.summary(),
            "processingNotes": list(self.processing_notes)
        }
