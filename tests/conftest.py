"""Shared fixtures: an in-memory ledger with an audit trail and a fixed 'today'."""

from datetime import datetime
from decimal import Decimal

import pytest

from expense_ledger.audit import AuditLogger
from expense_ledger.config import AppSettings
from expense_ledger.imports import ImportPipeline
from expense_ledger.models.ledger import CategoryType, ExpenseDraft
from expense_ledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage
from expense_ledger.store import LedgerStore


TODAY = datetime(2024, 3, 15, 12, 0)


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def storage() -> InMemoryLedgerStorage:
    return InMemoryLedgerStorage()


@pytest.fixture
def store(storage, audit_logger) -> LedgerStore:
    """A loaded, empty store looking at March 2024."""
    ledger = LedgerStore(storage, audit_logger=audit_logger, today=TODAY)
    ledger.load()
    return ledger


@pytest.fixture
def pipeline(store, audit_logger) -> ImportPipeline:
    return ImportPipeline(store, audit_logger, AppSettings())


@pytest.fixture
def make_draft():
    """Factory for valid drafts; defaults to a 50.000 ₫ meal on TODAY."""

    def _make(
        amount="50000",
        when: datetime = TODAY,
        note: str = "Phở bò",
        category: CategoryType = CategoryType.FOOD,
    ) -> ExpenseDraft:
        return ExpenseDraft(amount=Decimal(amount), date=when, note=note, category=category)

    return _make
