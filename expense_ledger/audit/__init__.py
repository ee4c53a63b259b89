"""Audit logging package."""

from expense_ledger.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
