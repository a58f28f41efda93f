"""
Totals & Variance

Only our open items (neither paid nor voided) count towards our total,
since those are the receivables still outstanding. The counterparty total
covers every record. Variance compares magnitudes so opposite sign
conventions between receivable and payable ledgers cancel out.
"""

from decimal import Decimal
from typing import Iterable

from invoice_matching.schema import TransactionRecord, Totals


def calculate_our_total(records: Iterable[TransactionRecord]) -> Decimal:
    return sum((r.amount for r in records if r.is_open), Decimal("0"))


def calculate_their_total(records: Iterable[TransactionRecord]) -> Decimal:
    return sum((r.amount for r in records), Decimal("0"))


def calculate_variance(our_total: Decimal, their_total: Decimal) -> Decimal:
    return abs(our_total - abs(their_total))


def calculate_totals(
    our_records: Iterable[TransactionRecord],
    their_records: Iterable[TransactionRecord]
) -> Totals:
    our_total = calculate_our_total(our_records)
    their_total = calculate_their_total(their_records)
    return Totals(
        our_total=our_total,
        their_total=their_total,
        variance=calculate_variance(our_total, their_total)
    )
