"""Normalization package: amounts, dates, categories and whole records."""

from expense_ledger.normalization.classifier import (
    CATEGORY_KEYWORDS,
    detect_category,
)
from expense_ledger.normalization.parsing import parse_amount, parse_date
from expense_ledger.normalization.records import (
    AMOUNT_KEYS,
    CATEGORY_KEYS,
    DATE_KEYS,
    NOTE_KEYS,
    normalize_record,
    probe,
)

__all__ = [
    "AMOUNT_KEYS",
    "CATEGORY_KEYS",
    "CATEGORY_KEYWORDS",
    "DATE_KEYS",
    "NOTE_KEYS",
    "detect_category",
    "normalize_record",
    "parse_amount",
    "parse_date",
    "probe",
]
