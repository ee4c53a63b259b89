"""
Data Models Package

This package contains all Pydantic models used by the expense ledger.
All data stored by the Ledger Store must conform to these schemas.
"""

from expense_ledger.models.ledger import (
    CATEGORIES,
    CategoryInfo,
    CategoryType,
    Expense,
    ExpenseDraft,
    GroupEvent,
    GroupEventDraft,
    GroupMember,
    GroupRole,
    MonthlySession,
    Mood,
    SpendingAnalysis,
    Theme,
    ViewMode,
    category_label,
    month_key,
    new_id,
    shift_month,
)
from expense_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "CATEGORIES",
    "CategoryInfo",
    "CategoryType",
    "Expense",
    "ExpenseDraft",
    "GroupEvent",
    "GroupEventDraft",
    "GroupMember",
    "GroupRole",
    "MonthlySession",
    "Mood",
    "SpendingAnalysis",
    "Theme",
    "ViewMode",
    "category_label",
    "month_key",
    "new_id",
    "shift_month",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
