"""
Derived Aggregates

DESIGN DECISION: Aggregates are recomputed from the expense list every
time they are needed and never stored. The ledger is small, and a stored
total could drift from the expenses it summarizes.
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from expense_ledger.models.ledger import (
    CATEGORIES,
    CategoryType,
    Expense,
    category_label,
)


def total_spent(expenses: Iterable[Expense]) -> Decimal:
    return sum((expense.amount for expense in expenses), Decimal(0))


def category_breakdown(expenses: Iterable[Expense]) -> dict[CategoryType, Decimal]:
    """Sum per category, in registry order, omitting empty categories."""
    sums: dict[CategoryType, Decimal] = {}
    for expense in expenses:
        sums[expense.category] = sums.get(expense.category, Decimal(0)) + expense.amount
    return {category: sums[category] for category in CATEGORIES if category in sums}


def label_breakdown(expenses: Iterable[Expense]) -> dict[str, Decimal]:
    """
    Sum per category display label.

    This is the shape the analysis prompt and the chart legend use.
    """
    return {
        category_label(category): amount
        for category, amount in category_breakdown(expenses).items()
    }


def sort_by_date(expenses: Iterable[Expense], newest_first: bool = True) -> list[Expense]:
    return sorted(expenses, key=lambda expense: expense.date, reverse=newest_first)


class SpendingSummary(BaseModel):
    """Aggregated view of one session or group event."""

    total: Decimal
    count: int = Field(ge=0)
    by_category: dict[CategoryType, Decimal] = Field(default_factory=dict)
    budget: Optional[Decimal] = None

    @property
    def remaining_budget(self) -> Optional[Decimal]:
        if self.budget is None:
            return None
        return self.budget - self.total

    @property
    def over_budget(self) -> bool:
        remaining = self.remaining_budget
        return remaining is not None and remaining < 0


def summarize(
    expenses: Iterable[Expense],
    budget: Optional[Decimal] = None,
) -> SpendingSummary:
    expenses = list(expenses)
    return SpendingSummary(
        total=total_spent(expenses),
        count=len(expenses),
        by_category=category_breakdown(expenses),
        budget=budget,
    )
