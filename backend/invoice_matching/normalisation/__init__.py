"""
Normalisation Module
"""

from .field_normaliser import FieldNormaliser, amount_read_is_lossy, parse_amount, parse_date

__all__ = ["FieldNormaliser", "amount_read_is_lossy", "parse_amount", "parse_date"]
