"""
Unit Tests for Confidence Scorer

Tests fuzzy pair scoring:
- Per-factor score bands
- Weighted confidence and status
- Reasons and insights wording
- Batch best-match selection
- Source profiles

Run with: pytest tests/test_confidence_scorer.py -v
"""

from datetime import date
from decimal import Decimal

import pytest

from invoice_matching.schema import TransactionRecord
from invoice_matching.source_registry import LedgerSource, SourceRegistry
from invoice_matching.matching_rules.confidence_scorer import (
    ConfidenceScorer,
    MatchConfidenceStatus,
    ScoringTolerances,
    calculate_match_confidence,
)


def make_record(handle=0, number="INV-1001", amount="100.00", issued=date(2024, 1, 10), reference=""):
    return TransactionRecord(
        handle=handle,
        transaction_number=number,
        amount=Decimal(amount),
        date=issued,
        reference=reference
    )


@pytest.fixture
def scorer():
    return ConfidenceScorer()


class TestIdentifierScores:
    """Test transaction number and reference similarity."""

    def test_exact(self, scorer):
        assert scorer.score_transaction_number("INV-1001", "INV-1001") == 100

    def test_case_and_spacing(self, scorer):
        assert scorer.score_transaction_number("inv-1001", "INV 1001".replace(" ", "-")) == 95
        assert scorer.score_transaction_number("INV 1001", "inv1001") == 95

    def test_edit_distance_bands(self, scorer):
        # one substitution in eight characters: similarity 0.875
        assert scorer.score_transaction_number("INV-1001", "INV-1002") == 75
        # one substitution in eleven characters: similarity ~0.909
        assert scorer.score_transaction_number("INV-1000001", "INV-1000002") == 90
        assert scorer.score_transaction_number("INV-1001", "XYZ-9876") == 0

    def test_similarity_band_edges(self):
        assert ConfidenceScorer.similarity_band(0.95) == 90
        assert ConfidenceScorer.similarity_band(0.9) == 75
        assert ConfidenceScorer.similarity_band(0.8) == 60
        assert ConfidenceScorer.similarity_band(0.7) == 40
        assert ConfidenceScorer.similarity_band(0.5) == 0

    def test_missing_identifier(self, scorer):
        assert scorer.score_transaction_number("", "INV-1001") == 0
        assert scorer.score_transaction_number("INV-1001", "") == 0

    def test_fuzzy_matching_disabled(self):
        strict = ConfidenceScorer(ScoringTolerances(fuzzy_matching=False))

        assert strict.score_transaction_number("INV-1001", "INV-1001") == 100
        assert strict.score_transaction_number("inv-1001", "INV-1001") == 0
        assert strict.score_reference("PO-1", "po-1") == 0

    def test_reference_blanks(self, scorer):
        assert scorer.score_reference("", "") == 100
        assert scorer.score_reference("PO-1", "") == 70
        assert scorer.score_reference("", "PO-1") == 70
        assert scorer.score_reference("PO-1", "PO-1") == 100


class TestAmountScores:
    """Test amount similarity bands."""

    @pytest.mark.parametrize("theirs,expected", [
        ("100.00", 100),
        ("-100.00", 100),
        ("99.50", 95),
        ("98.50", 85),
        ("97.50", 70),
        ("96.00", 50),
        ("92.00", 30),
        ("80.00", 0),
        ("0", 0),
    ])
    def test_bands(self, scorer, theirs, expected):
        assert scorer.score_amount(Decimal("100.00"), Decimal(theirs)) == expected

    def test_both_zero(self, scorer):
        assert scorer.score_amount(Decimal("0"), Decimal("0.00")) == 100
        assert scorer.score_amount(Decimal("0"), Decimal("5")) == 0


class TestDateScores:
    """Test date proximity bands."""

    @pytest.mark.parametrize("days,expected", [
        (0, 100),
        (3, 90),
        (7, 90),
        (10, 75),
        (20, 60),
        (25, 40),
        (60, 20),
        (120, 0),
    ])
    def test_bands(self, scorer, days, expected):
        ours = date(2024, 1, 1)
        theirs = date.fromordinal(ours.toordinal() + days)
        assert scorer.score_date(ours, theirs) == expected

    def test_missing_date(self, scorer):
        assert scorer.score_date(None, date(2024, 1, 1)) == 0
        assert scorer.score_date(date(2024, 1, 1), None) == 0

    def test_both_missing(self, scorer):
        assert scorer.score_date(None, None) == 100


class TestMatchConfidence:
    """Test the combined confidence."""

    def test_identical_record_is_full_match(self, scorer):
        record = make_record(reference="PO-77")
        result = scorer.calculate_match_confidence(record, record)

        assert result.confidence == 100
        assert result.status == MatchConfidenceStatus.MATCHED
        assert result.reasons == []
        assert result.insights[0].message == "Invoice numbers match exactly"
        assert result.insights[-1].message == "High confidence match - ready for automatic processing"

    def test_identical_undated_record_is_full_match(self):
        raw = {"id": "INV-2", "amount": 1500}
        result = calculate_match_confidence(raw, dict(raw))

        assert result.confidence == 100
        assert result.status == MatchConfidenceStatus.MATCHED
        assert result.reasons == []

    def test_identical_zero_amount_record_is_full_match(self, scorer):
        record = make_record(amount="0")
        result = scorer.calculate_match_confidence(record, record)

        assert result.confidence == 100
        assert result.status == MatchConfidenceStatus.MATCHED
        assert result.factors.amount_match == 100

    def test_raw_mappings_accepted(self):
        raw = {"id": "INV-1", "amount": 1000, "date": "2024-01-01"}
        result = calculate_match_confidence(raw, dict(raw))

        assert result.confidence == 100
        assert result.status == "matched"

    def test_weighted_sum_rounds_half_up(self, scorer):
        # 35 + 28.5 + 20 + 15 = 98.5
        result = scorer.calculate_match_confidence(make_record(), make_record(amount="99.50"))

        assert result.factors.amount_match == 95
        assert result.confidence == 99

    def test_status_thresholds(self, scorer):
        assert scorer.determine_match_status(90) == "matched"
        assert scorer.determine_match_status(89) == "mismatched"
        assert scorer.determine_match_status(50) == "mismatched"
        assert scorer.determine_match_status(49) == "no-match"
        assert scorer.determine_match_status(0) == "no-match"

    def test_custom_auto_match_threshold(self):
        strict = ConfidenceScorer(auto_match_threshold=99)
        assert strict.determine_match_status(98) == "mismatched"

    def test_unrelated_records(self, scorer):
        result = scorer.calculate_match_confidence(
            make_record(number="INV-1001", amount="100.00", issued=date(2024, 1, 1)),
            make_record(number="ZZZ-9", amount="5000.00", issued=date(2025, 1, 1))
        )

        # only the shared blank reference scores
        assert result.confidence == 15
        assert result.status == "no-match"
        assert result.insights[-1].type == "error"

    def test_reasons_in_factor_order(self, scorer):
        result = scorer.calculate_match_confidence(
            make_record(number="INV-1001", amount="100.00", issued=date(2024, 1, 10), reference="PO-1"),
            make_record(number="INV-1002", amount="99.50", issued=date(2024, 1, 13), reference="")
        )

        assert result.reasons == [
            "Transaction numbers are similar but not identical",
            "Amounts differ by $0.50 (0.5%)",
            "Dates are 3 day(s) apart",
            "Reference missing on one record",
        ]

    def test_insight_wording(self, scorer):
        result = scorer.calculate_match_confidence(
            make_record(number="INV-1001", amount="100.00", issued=date(2024, 1, 10)),
            make_record(number="INV-1001", amount="97.50", issued=date(2024, 1, 13))
        )

        messages = [i.message for i in result.insights]
        assert messages[:3] == [
            "Invoice numbers match exactly",
            "Amount difference of $2.50 (2.5%) detected",
            "Dates are 3 day(s) apart - within acceptable range",
        ]
        # no reference insight when both references are blank
        assert len(messages) == 4

    def test_missing_fields_reasons(self, scorer):
        result = scorer.calculate_match_confidence(
            make_record(number="", amount="0", issued=None),
            make_record()
        )

        assert result.reasons == [
            "Transaction number missing on one or both records",
            "Amount missing or zero on one or both records",
            "Date missing on one or both records",
        ]

    def test_to_dict(self, scorer):
        body = scorer.calculate_match_confidence(make_record(), make_record()).to_dict()

        assert body["confidence"] == 100
        assert body["factors"]["transactionNumberMatch"] == 100
        assert body["insights"][0]["type"] == "positive"


class TestBatchProcessMatches:
    """Test batch best-match selection."""

    def test_best_counterparty_per_record(self, scorer):
        ours = [make_record(0, number="INV-1001")]
        theirs = [
            make_record(0, number="INV-7777", amount="55.00"),
            make_record(1, number="INV-1001"),
        ]

        pairs = scorer.batch_process_matches(ours, theirs)

        assert len(pairs) == 1
        assert pairs[0].their_record.handle == 1
        assert pairs[0].result.confidence == 100

    def test_ties_keep_first(self, scorer):
        pairs = scorer.batch_process_matches([make_record(0)], [make_record(0), make_record(1)])
        assert pairs[0].their_record.handle == 0

    def test_raw_records(self, scorer):
        pairs = scorer.batch_process_matches(
            [{"id": "A-1", "amount": 10, "date": "2024-01-01"}],
            [{"id": "B-2", "amount": 99}, {"invoiceNumber": "A-1", "Total": "10.00", "Date": "01/01/2024"}]
        )

        assert pairs[0].their_record.handle == 1
        assert pairs[0].result.status == "matched"

    def test_no_counterparties(self, scorer):
        assert scorer.batch_process_matches([make_record()], []) == []


class TestForSource:
    """Test scorers built from ledger source profiles."""

    def test_ocr_profile(self):
        scorer = ConfidenceScorer.for_source(LedgerSource.OCR)

        assert scorer.auto_match_threshold == 85
        assert scorer.tolerances.date_tolerance_days == 14
        assert scorer.tolerances.amount_tolerance == 0.02

    def test_custom_registry(self):
        registry = SourceRegistry()
        registry.update_config(LedgerSource.MANUAL, auto_match_threshold=80)

        scorer = ConfidenceScorer.for_source(LedgerSource.MANUAL, registry)
        assert scorer.auto_match_threshold == 80

    def test_from_settings(self):
        class Settings:
            CONFIDENCE_AMOUNT_TOLERANCE = 0.05
            CONFIDENCE_DATE_TOLERANCE_DAYS = 3
            CONFIDENCE_FUZZY_MATCHING = False
            AUTO_MATCH_THRESHOLD = 95
            REVIEW_THRESHOLD = 60
            DEFAULT_DATE_FORMAT = "DD/MM/YYYY"

        scorer = ConfidenceScorer.from_settings(Settings())

        assert scorer.tolerances.fuzzy_matching is False
        assert scorer.determine_match_status(59) == "no-match"
