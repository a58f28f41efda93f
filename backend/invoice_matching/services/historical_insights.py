"""
Historical Insight Generator

Explains leftover counterparty records by looking them up in our-side
history (previously closed or archived items). An invoice the
counterparty still shows as open may already be paid, voided or still
a draft on our side.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from invoice_matching.schema import (
    TransactionRecord,
    HistoricalInsight,
    Insight,
    InsightType,
    InsightSeverity,
)
from invoice_matching.matching_rules.candidate_finder import CandidateIndex

logger = logging.getLogger(__name__)


def format_currency(amount: Optional[Decimal]) -> str:
    """US-dollar formatting for messages: $1,234.56, -$1,234.56, N/A."""
    if amount is None:
        return "N/A"
    rounded = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if rounded < 0:
        return f"-${abs(rounded):,.2f}"
    return f"${rounded:,.2f}"


def format_date(value) -> Optional[str]:
    return value.strftime("%d/%m/%Y") if value else None


def _history_sort_key(record: TransactionRecord):
    # Paid first, then most recent; undated records last
    return (
        0 if record.is_paid else 1,
        -record.date.toordinal() if record.date else 1
    )


def select_best_historical(candidates: List[TransactionRecord]) -> Optional[TransactionRecord]:
    if not candidates:
        return None
    return sorted(candidates, key=_history_sort_key)[0]


def determine_insight(their_record: TransactionRecord, historical: TransactionRecord) -> Insight:
    """Classify what the historical record says about the unmatched one."""
    invoice = their_record.transaction_number or their_record.reference or "unknown"

    if historical.is_paid:
        paid_on = format_date(historical.payment_date)
        suffix = f" on {paid_on}" if paid_on else ""
        return Insight(
            type=InsightType.ALREADY_PAID,
            message=f"Invoice {invoice} appears to have been paid{suffix}",
            severity=InsightSeverity.WARNING
        )

    if historical.is_partially_paid:
        return Insight(
            type=InsightType.PARTIALLY_PAID,
            message=(
                f"Invoice {invoice} is partially paid in AR system. "
                f"Original amount: {format_currency(historical.original_amount)}, "
                f"Paid: {format_currency(historical.amount_paid)}, "
                f"Outstanding: {format_currency(historical.amount)}"
            ),
            severity=InsightSeverity.WARNING
        )

    if historical.is_voided:
        voided_on = format_date(historical.void_date)
        suffix = f" on {voided_on}" if voided_on else ""
        return Insight(
            type=InsightType.VOIDED,
            message=f"Invoice {invoice} was voided in the AR system{suffix}",
            severity=InsightSeverity.ERROR
        )

    if historical.status.upper() == "DRAFT":
        return Insight(
            type=InsightType.DRAFT,
            message=f"Invoice {invoice} exists as a draft in the AR system",
            severity=InsightSeverity.INFO
        )

    return Insight(
        type=InsightType.FOUND_IN_HISTORY,
        message=f"Invoice {invoice} found in AR history with status: {historical.status or 'unknown'}",
        severity=InsightSeverity.INFO
    )


class HistoricalInsightGenerator:
    """
    Correlates unmatched counterparty records with our-side history.
    """

    def __init__(self, historical_records: List[TransactionRecord]):
        self.index = CandidateIndex(historical_records)

    def insight_for(self, their_record: TransactionRecord) -> Optional[HistoricalInsight]:
        historical = select_best_historical(self.index.find_candidates(their_record))
        if historical is None:
            return None

        return HistoricalInsight(
            their_record=their_record,
            historical_record=historical,
            insight=determine_insight(their_record, historical)
        )

    def generate(self, unmatched_theirs: List[TransactionRecord]) -> List[HistoricalInsight]:
        insights = []
        for record in unmatched_theirs:
            insight = self.insight_for(record)
            if insight:
                insights.append(insight)

        if insights:
            logger.info(f"Historical lookup explained {len(insights)} of {len(unmatched_theirs)} unmatched records")
        return insights


def generate_historical_insights(
    unmatched_theirs: List[TransactionRecord],
    historical_records: Optional[List[TransactionRecord]]
) -> List[HistoricalInsight]:
    """Empty result when there is no history to look in."""
    if not historical_records or not unmatched_theirs:
        return []
    return HistoricalInsightGenerator(historical_records).generate(unmatched_theirs)
