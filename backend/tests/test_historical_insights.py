"""
Unit Tests for Historical Insight Generator

Run with: pytest tests/test_historical_insights.py -v
"""

from datetime import date
from decimal import Decimal

import pytest

from invoice_matching.schema import TransactionRecord, InsightType, InsightSeverity
from invoice_matching.services.historical_insights import (
    HistoricalInsightGenerator,
    determine_insight,
    format_currency,
    format_date,
    generate_historical_insights,
    select_best_historical,
)


def make_record(handle, number="INV-9", amount="600.00", **fields):
    return TransactionRecord(
        handle=handle,
        transaction_number=number,
        amount=Decimal(amount),
        **fields
    )


class TestFormatting:
    """Test message formatting helpers."""

    def test_format_currency(self):
        assert format_currency(Decimal("1234.5")) == "$1,234.50"
        assert format_currency(Decimal("0")) == "$0.00"
        assert format_currency(Decimal("-1234567.891")) == "-$1,234,567.89"
        assert format_currency(None) == "N/A"

    def test_format_currency_rounds_half_up(self):
        assert format_currency(Decimal("2.345")) == "$2.35"

    def test_format_date(self):
        assert format_date(date(2024, 2, 1)) == "01/02/2024"
        assert format_date(None) is None


class TestDetermineInsight:
    """Test insight classification."""

    @pytest.fixture
    def unmatched(self):
        return make_record(0)

    def test_already_paid(self, unmatched):
        insight = determine_insight(
            unmatched, make_record(1, is_paid=True, payment_date=date(2024, 2, 1))
        )

        assert insight.type == InsightType.ALREADY_PAID
        assert insight.severity == InsightSeverity.WARNING
        assert insight.message == "Invoice INV-9 appears to have been paid on 01/02/2024"

    def test_already_paid_without_payment_date(self, unmatched):
        insight = determine_insight(unmatched, make_record(1, is_paid=True))
        assert insight.message == "Invoice INV-9 appears to have been paid"

    def test_partially_paid(self, unmatched):
        insight = determine_insight(unmatched, make_record(
            1,
            amount="600.00",
            is_partially_paid=True,
            original_amount=Decimal("1000"),
            amount_paid=Decimal("400")
        ))

        assert insight.type == InsightType.PARTIALLY_PAID
        assert insight.severity == InsightSeverity.WARNING
        assert insight.message == (
            "Invoice INV-9 is partially paid in AR system. "
            "Original amount: $1,000.00, Paid: $400.00, Outstanding: $600.00"
        )

    def test_voided(self, unmatched):
        insight = determine_insight(unmatched, make_record(1, is_voided=True))

        assert insight.type == InsightType.VOIDED
        assert insight.severity == InsightSeverity.ERROR
        assert insight.message == "Invoice INV-9 was voided in the AR system"

    def test_voided_with_date(self, unmatched):
        insight = determine_insight(unmatched, make_record(1, is_voided=True, void_date=date(2024, 3, 5)))
        assert insight.message.endswith("on 05/03/2024")

    def test_draft(self, unmatched):
        insight = determine_insight(unmatched, make_record(1, status="Draft"))

        assert insight.type == InsightType.DRAFT
        assert insight.severity == InsightSeverity.INFO

    def test_found_in_history(self, unmatched):
        insight = determine_insight(unmatched, make_record(1, status="AUTHORISED"))

        assert insight.type == InsightType.FOUND_IN_HISTORY
        assert insight.severity == InsightSeverity.INFO
        assert insight.message == "Invoice INV-9 found in AR history with status: AUTHORISED"

    def test_reference_names_item_without_number(self):
        insight = determine_insight(make_record(0, number="", reference="PO-1"), make_record(1, status="DRAFT"))
        assert insight.message == "Invoice PO-1 exists as a draft in the AR system"

    def test_no_identifier_is_unknown(self):
        insight = determine_insight(make_record(0, number=""), make_record(1, status="DRAFT"))
        assert insight.message == "Invoice unknown exists as a draft in the AR system"

    def test_paid_takes_precedence(self, unmatched):
        insight = determine_insight(unmatched, make_record(1, is_paid=True, is_voided=True))
        assert insight.type == InsightType.ALREADY_PAID


class TestSelectBestHistorical:
    """Test ordering of several historical matches."""

    def test_paid_first(self):
        unpaid_recent = make_record(0, date=date(2024, 6, 1))
        paid_old = make_record(1, is_paid=True, date=date(2023, 1, 1))

        assert select_best_historical([unpaid_recent, paid_old]).handle == 1

    def test_most_recent_within_status(self):
        older = make_record(0, is_paid=True, date=date(2024, 1, 1))
        newer = make_record(1, is_paid=True, date=date(2024, 5, 1))
        undated = make_record(2, is_paid=True)

        assert select_best_historical([undated, older, newer]).handle == 1

    def test_empty(self):
        assert select_best_historical([]) is None


class TestGenerateHistoricalInsights:
    """Test insight generation across unmatched records."""

    def test_matches_on_number_and_reference(self):
        unmatched = [
            make_record(0, number="INV-1"),
            make_record(1, number="", reference="PO-2"),
            make_record(2, number="INV-3"),
        ]
        history = [
            make_record(0, number="INV-1", is_paid=True),
            make_record(1, number="INV-2", reference="PO-2", is_voided=True),
        ]

        insights = generate_historical_insights(unmatched, history)

        assert [i.their_record.handle for i in insights] == [0, 1]
        assert [i.insight.type for i in insights] == [InsightType.ALREADY_PAID, InsightType.VOIDED]
        assert insights[1].historical_record.transaction_number == "INV-2"
        assert insights[1].insight.message == "Invoice PO-2 was voided in the AR system"

    def test_no_history(self):
        assert generate_historical_insights([make_record(0)], None) == []
        assert generate_historical_insights([make_record(0)], []) == []

    def test_nothing_unmatched(self):
        assert generate_historical_insights([], [make_record(0)]) == []

    def test_generator_insight_for(self):
        generator = HistoricalInsightGenerator([make_record(0, status="DRAFT")])

        assert generator.insight_for(make_record(0, number="INV-404")) is None
        assert generator.insight_for(make_record(0)).insight.type == InsightType.DRAFT

    def test_to_dict(self):
        insight = generate_historical_insights([make_record(0)], [make_record(0, status="DRAFT")])[0]
        body = insight.to_dict()

        assert body["insight"] == {
            "type": "draft",
            "message": "Invoice INV-9 exists as a draft in the AR system",
            "severity": "info"
        }
        assert body["theirRecord"]["transactionNumber"] == "INV-9"
