"""Aggregation queries over expense lists."""

from expense_ledger.queries.aggregates import (
    SpendingSummary,
    category_breakdown,
    label_breakdown,
    sort_by_date,
    summarize,
    total_spent,
)

__all__ = [
    "SpendingSummary",
    "category_breakdown",
    "label_breakdown",
    "sort_by_date",
    "summarize",
    "total_spent",
]
