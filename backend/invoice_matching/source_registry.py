"""
Ledger Source Registry

Central registry of the ledgers the matching engine reconciles.
Per source:
- Display name
- Default date-format hint
- Whether its identifiers can be trusted for exact matching
- Confidence-scoring tolerances and thresholds

Supported Sources:
- XERO: Accounting provider exports (reliable invoice numbers)
- CSV: Spreadsheet uploads (reliable invoice numbers)
- MANUAL: Manually keyed entries (identifiers prone to typos)
- OCR: Scanned invoices (identifiers prone to recognition errors)
"""

import logging
from enum import Enum
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, fields, replace

logger = logging.getLogger(__name__)


class LedgerSource(str, Enum):
    """
    Recognised ledger sources.
    """
    XERO = "XERO"
    CSV = "CSV"
    MANUAL = "MANUAL"
    OCR = "OCR"


@dataclass
class SourceConfig:
    """
    Configuration for a ledger source.
    """
    source: LedgerSource
    display_name: str
    default_date_format: str
    identifiers_reliable: bool  # False = use confidence scoring instead of exact ids
    amount_tolerance: float  # Percentage tolerance for confidence scoring
    date_tolerance_days: int
    auto_match_threshold: int  # Confidence reported as "matched"
    review_threshold: int  # Confidence reported as "mismatched"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source.value,
            "display_name": self.display_name,
            "default_date_format": self.default_date_format,
            "identifiers_reliable": self.identifiers_reliable,
            "amount_tolerance": self.amount_tolerance,
            "date_tolerance_days": self.date_tolerance_days,
            "auto_match_threshold": self.auto_match_threshold,
            "review_threshold": self.review_threshold
        }


class SourceRegistry:
    """
    Central registry for ledger sources.

    Provides lookup methods for the normaliser hints and the
    confidence scorer.
    """

    _default_configs: Dict[LedgerSource, SourceConfig] = {
        LedgerSource.XERO: SourceConfig(
            source=LedgerSource.XERO,
            display_name="Xero",
            default_date_format="YYYY-MM-DD",
            identifiers_reliable=True,
            amount_tolerance=0.01,
            date_tolerance_days=7,
            auto_match_threshold=90,
            review_threshold=50
        ),
        LedgerSource.CSV: SourceConfig(
            source=LedgerSource.CSV,
            display_name="CSV Upload",
            default_date_format="DD/MM/YYYY",
            identifiers_reliable=True,
            amount_tolerance=0.01,
            date_tolerance_days=7,
            auto_match_threshold=90,
            review_threshold=50
        ),
        LedgerSource.MANUAL: SourceConfig(
            source=LedgerSource.MANUAL,
            display_name="Manual Entries",
            default_date_format="DD/MM/YYYY",
            identifiers_reliable=False,
            amount_tolerance=0.02,
            date_tolerance_days=10,
            auto_match_threshold=90,
            review_threshold=50
        ),
        LedgerSource.OCR: SourceConfig(
            source=LedgerSource.OCR,
            display_name="OCR Scanned Invoices",
            default_date_format="DD/MM/YYYY",
            identifiers_reliable=False,
            amount_tolerance=0.02,
            date_tolerance_days=14,
            auto_match_threshold=85,
            review_threshold=50
        ),
    }

    def __init__(self):
        self._configs = {
            source: replace(cfg)
            for source, cfg in self._default_configs.items()
        }

    def get_config(self, source: LedgerSource) -> Optional[SourceConfig]:
        """None for sources the registry does not know."""
        return self._configs.get(source)

    def get_all_configs(self) -> List[SourceConfig]:
        return list(self._configs.values())

    def get_default_date_format(self, source: LedgerSource) -> Optional[str]:
        """Get the date-format hint for a source."""
        cfg = self._configs.get(source)
        return cfg.default_date_format if cfg else None

    def requires_confidence_scoring(self, source: LedgerSource) -> bool:
        """Check whether a source's identifiers are too unreliable for exact matching."""
        cfg = self._configs.get(source)
        return not cfg.identifiers_reliable if cfg else False

    def get_unreliable_sources(self) -> List[LedgerSource]:
        """Get sources whose records should go through confidence scoring."""
        return [
            cfg.source for cfg in self._configs.values()
            if not cfg.identifiers_reliable
        ]

    def update_config(self, source: LedgerSource, **overrides) -> Optional[SourceConfig]:
        """Override tolerances or thresholds for one source on this registry only."""
        cfg = self._configs.get(source)
        if cfg is None:
            logger.warning(f"Cannot update unknown ledger source {source}")
            return None

        known = {f.name for f in fields(cfg)} - {"source"}
        for name, value in overrides.items():
            if name in known:
                setattr(cfg, name, value)
            else:
                logger.warning(f"Ignoring unknown source setting {name!r} for {source.value}")
        return cfg

    def to_dict(self) -> Dict[str, Any]:
        """Registry contents keyed by source name."""
        return {
            source.value: cfg.to_dict()
            for source, cfg in self._configs.items()
        }


# Shared default registry; scorers may be given their own
source_registry = SourceRegistry()
