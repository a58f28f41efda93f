"""
Services Module
"""

from .reconciliation_service import ReconciliationEngine, match_records

__all__ = ["ReconciliationEngine", "match_records"]
