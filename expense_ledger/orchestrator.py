"""
Main Orchestrator for the Mèo Mập ledger

This module ties the components together and defines the flows the
presentation shell drives:
1. Ledger mutations (store, loaded once at startup)
2. Imports (file / upload / Google Sheet -> pipeline -> store)
3. Analysis (expenses -> agent -> advice card), one request at a time
4. Deletion, confirmed in two steps

DESIGN DECISION: The analysis agent is stateless and safe to call
concurrently. Keeping a single request in flight is a UI convention, so
the busy flag lives here, next to the advice the UI displays, instead of
inside the agent.
"""

from collections.abc import Sequence
from typing import NamedTuple, Optional

import structlog
from pydantic import ValidationError

from expense_ledger.agents import SpendingAnalysisAgent
from expense_ledger.audit import AuditLogger
from expense_ledger.config import get_settings
from expense_ledger.imports import GoogleSheetsSource, ImportPipeline
from expense_ledger.models.ledger import Expense, Mood, SpendingAnalysis
from expense_ledger.services.storage import (
    InMemoryLedgerStorage,
    JsonFileLedgerStorage,
    JsonLinesAuditStorage,
)
from expense_ledger.store import LedgerStore


INITIAL_ADVICE = SpendingAnalysis(
    message="Chào bạn! Mình là Mèo Mập. Hãy thêm chi tiêu để mình giúp bạn quản lý nhé!",
    mood=Mood.HAPPY,
)


class AnalysisFlow:
    """
    Owns the advice card state and the single-request guard.

    Flow:
    1. Guard -> refuse while a request is outstanding or with no expenses
    2. Ask   -> await the agent (always resolves, see SpendingAnalysisAgent)
    3. Store -> keep the result as the latest advice
    """

    def __init__(self, agent: SpendingAnalysisAgent):
        self._agent = agent
        self.busy = False
        self.latest = INITIAL_ADVICE

    async def request_analysis(
        self,
        expenses: Sequence[Expense],
    ) -> Optional[SpendingAnalysis]:
        """
        Returns:
            The new advice, or None if the request was refused
        """
        if self.busy or not expenses:
            return None

        self.busy = True
        try:
            self.latest = await self._agent.analyze(expenses)
            return self.latest
        finally:
            self.busy = False


class DeleteFlow:
    """
    Two-step delete: `request` marks an expense, `confirm` removes it.

    The store deletes on a single call; the confirmation step lives here so
    the shell cannot skip it. One expense can be pending at a time.
    """

    def __init__(self, store: LedgerStore):
        self._store = store
        self.pending: Optional[str] = None

    def request(self, expense_id: str) -> None:
        self.pending = expense_id

    def cancel(self) -> None:
        self.pending = None

    def confirm(self, expense_id: str) -> bool:
        """
        Returns:
            True if the expense was deleted; False if it was not the pending
            one or the store refused (locked, unknown id)
        """
        if self.pending != expense_id:
            return False
        self.pending = None
        return self._store.delete_expense(expense_id)


class AppComponents(NamedTuple):
    store: LedgerStore
    import_pipeline: ImportPipeline
    analysis_flow: AnalysisFlow
    audit_logger: AuditLogger
    sheets_source: Optional[GoogleSheetsSource]


def create_app_components(use_storage: bool = True) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to persist to JSON files under the data dir.
                    Set to False for an in-memory ledger (tests, demos).

    Returns:
        AppComponents with the store already loaded
    """
    settings = get_settings()
    logger = structlog.get_logger(__name__)

    if use_storage:
        storage = JsonFileLedgerStorage(settings.storage)
        audit_logger = AuditLogger(
            JsonLinesAuditStorage(settings.storage.data_dir / settings.storage.audit_file)
        )
    else:
        storage = InMemoryLedgerStorage()
        audit_logger = AuditLogger()  # Local-only logging

    store = LedgerStore(storage, audit_logger=audit_logger)
    store.load()

    try:
        sheets_source = GoogleSheetsSource(settings.google_sheets)
    except ValidationError:
        # Google Sheets not configured - sheet import stays hidden
        logger.info("google_sheets_not_configured")
        sheets_source = None

    return AppComponents(
        store=store,
        import_pipeline=ImportPipeline(store, audit_logger, settings.app),
        analysis_flow=AnalysisFlow(
            SpendingAnalysisAgent(settings.gemini, audit_logger=audit_logger)
        ),
        audit_logger=audit_logger,
        sheets_source=sheets_source,
    )
