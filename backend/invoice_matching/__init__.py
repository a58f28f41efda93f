"""
Invoice Matching Engine

Reconciles an our-side receivables ledger against a counterparty payables
ledger:
- Field normalisation of heterogeneous raw records
- Exact-identifier candidate pairing and match classification
- Date discrepancy detection
- Historical insights for unmatched counterparty records
- Totals and variance
- Confidence scoring for ledgers with unreliable identifiers
"""

from invoice_matching.errors import MatchingError
from invoice_matching.schema import (
    TransactionRecord,
    PerfectMatch,
    Mismatch,
    MismatchReason,
    DateMismatch,
    DateMismatchType,
    UnmatchedSets,
    HistoricalInsight,
    Insight,
    InsightType,
    InsightSeverity,
    Totals,
    ReconciliationResult
)
from invoice_matching.source_registry import (
    LedgerSource,
    SourceConfig,
    SourceRegistry,
    source_registry
)
from invoice_matching.matching_rules.confidence_scorer import (
    ConfidenceScorer,
    ConfidenceResult,
    calculate_match_confidence
)
from invoice_matching.services.reconciliation_service import (
    ReconciliationEngine,
    match_records
)

__all__ = [
    # Errors
    'MatchingError',
    # Schema
    'TransactionRecord',
    'PerfectMatch',
    'Mismatch',
    'MismatchReason',
    'DateMismatch',
    'DateMismatchType',
    'UnmatchedSets',
    'HistoricalInsight',
    'Insight',
    'InsightType',
    'InsightSeverity',
    'Totals',
    'ReconciliationResult',
    # Source Registry
    'LedgerSource',
    'SourceConfig',
    'SourceRegistry',
    'source_registry',
    # Confidence Scoring
    'ConfidenceScorer',
    'ConfidenceResult',
    'calculate_match_confidence',
    # Engine
    'ReconciliationEngine',
    'match_records'
]
