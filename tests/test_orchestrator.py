"""Tests for component wiring, the analysis busy guard and exports."""

import asyncio
import json
import pytest
from datetime import datetime

from expense_ledger.exports import (
    build_event_export,
    build_personal_export,
    record_export,
    slugify,
)
from expense_ledger.imports import ImportFormat, ImportPipeline
from expense_ledger.models.audit import AuditEventType
from expense_ledger.models.ledger import GroupEventDraft, Mood, SpendingAnalysis
from expense_ledger.orchestrator import (
    INITIAL_ADVICE,
    AnalysisFlow,
    AppComponents,
    DeleteFlow,
    create_app_components,
)
from expense_ledger.services.storage import InMemoryLedgerStorage
from expense_ledger.store import LedgerStore


class BlockingAgent:
    """Agent whose answer is released by the test."""

    def __init__(self):
        self.calls = 0
        self.release = asyncio.Event()

    async def analyze(self, expenses, total=None):
        self.calls += 1
        await self.release.wait()
        return SpendingAnalysis(message="Tiêu vừa phải!", mood=Mood.HAPPY)


class FailingAgent:
    async def analyze(self, expenses, total=None):
        raise RuntimeError("boom")


class TestAnalysisFlow:
    """Tests for the single-request guard."""

    def test_initial_advice(self):
        """Test the greeting shows before any analysis."""
        flow = AnalysisFlow(BlockingAgent())
        assert flow.latest == INITIAL_ADVICE
        assert flow.latest.mood == Mood.HAPPY
        assert not flow.busy

    @pytest.mark.asyncio
    async def test_empty_expenses_not_sent(self):
        """Test no request is made without expenses."""
        agent = BlockingAgent()
        flow = AnalysisFlow(agent)
        assert await flow.request_analysis([]) is None
        assert agent.calls == 0

    @pytest.mark.asyncio
    async def test_second_request_refused_while_busy(self, make_draft):
        """Test overlapping requests are refused, then allowed again."""
        agent = BlockingAgent()
        flow = AnalysisFlow(agent)
        expenses = [make_draft()]

        first = asyncio.create_task(flow.request_analysis(expenses))
        await asyncio.sleep(0)
        assert flow.busy
        assert await flow.request_analysis(expenses) is None

        agent.release.set()
        result = await first

        assert result.message == "Tiêu vừa phải!"
        assert flow.latest == result
        assert not flow.busy
        assert agent.calls == 1

    @pytest.mark.asyncio
    async def test_busy_cleared_on_error(self, make_draft):
        """Test the flag is released even if the agent raises."""
        flow = AnalysisFlow(FailingAgent())
        with pytest.raises(RuntimeError):
            await flow.request_analysis([make_draft()])
        assert not flow.busy
        assert flow.latest == INITIAL_ADVICE


class TestDeleteFlow:
    """Tests for the two-step delete."""

    def test_request_alone_deletes_nothing(self, store, make_draft):
        """Test marking an expense keeps it in the ledger."""
        expense = store.add_expense(make_draft())
        flow = DeleteFlow(store)

        flow.request(expense.id)

        assert flow.pending == expense.id
        assert len(store.current_expenses()) == 1

    def test_confirm_deletes_pending(self, store, make_draft):
        """Test confirming the pending expense removes it and clears the mark."""
        expense = store.add_expense(make_draft())
        flow = DeleteFlow(store)
        flow.request(expense.id)

        assert flow.confirm(expense.id)
        assert store.current_expenses() == []
        assert flow.pending is None

    def test_confirm_without_request(self, store, make_draft):
        """Test an unrequested or cancelled confirm is refused."""
        expense = store.add_expense(make_draft())
        flow = DeleteFlow(store)
        assert not flow.confirm(expense.id)

        flow.request(expense.id)
        flow.cancel()
        assert not flow.confirm(expense.id)
        assert len(store.current_expenses()) == 1

    def test_confirm_other_expense(self, store, make_draft):
        """Test confirming a different id than the pending one does nothing."""
        first = store.add_expense(make_draft())
        second = store.add_expense(make_draft(note="Bún chả"))
        flow = DeleteFlow(store)
        flow.request(first.id)

        assert not flow.confirm(second.id)
        assert flow.pending == first.id
        assert len(store.current_expenses()) == 2


class TestCreateAppComponents:
    """Tests for the component factory."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch, tmp_path):
        for name in ("GEMINI_API_KEY", "GOOGLE_SHEETS_CREDENTIALS_PATH", "GOOGLE_SHEETS_SPREADSHEET_ID"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.chdir(tmp_path)

    def test_in_memory_components(self):
        """Test wiring without file storage."""
        components = create_app_components(use_storage=False)

        assert isinstance(components, AppComponents)
        assert components.store.month_keys == []
        assert components.analysis_flow.latest == INITIAL_ADVICE

    def test_pipeline_feeds_store(self):
        """Test the pipeline and store are wired to each other."""
        components = create_app_components(use_storage=False)
        components.import_pipeline.import_content(
            '[{"date": "2024-02-01", "amount": 1000}]', ImportFormat.JSON
        )
        assert components.store.month_keys == ["2024-02"]


class TestExports:
    """Tests for export snapshots."""

    def test_slugify(self):
        """Test Vietnamese names fold to ASCII slugs."""
        assert slugify("Đà Lạt 2024!") == "da-lat-2024"
        assert slugify("   ") == "event"

    def test_personal_export(self, store, make_draft):
        """Test the session map export is indented, unescaped JSON."""
        store.add_expense(make_draft())
        bundle = build_personal_export(store)

        assert bundle.filename == "meomap-backup-2024-03.json"
        assert "Phở bò" in bundle.content
        assert bundle.content.startswith("{\n  ")
        assert json.loads(bundle.content)["2024-03"]["expenses"][0]["amount"] == 50000

    def test_personal_export_reimports_as_backup(self, store, make_draft):
        """Test an export restores the same months when imported."""
        store.add_expense(make_draft(when=datetime(2024, 1, 5)))
        store.add_expense(make_draft())
        bundle = build_personal_export(store)

        fresh = LedgerStore(InMemoryLedgerStorage(), today=datetime(2024, 3, 15))
        fresh.load()
        result = ImportPipeline(fresh).import_upload(bundle.filename, bundle.data)

        assert result.imported == 2
        assert fresh.month_keys == ["2024-01", "2024-03"]

    def test_event_export(self, store, make_draft, audit_logger, audit_storage):
        """Test one event is exported under its slug and audited."""
        event = store.create_group_event(GroupEventDraft(name="Đà Lạt"))
        store.select_event(event.id)
        store.add_expense(make_draft())

        bundle = build_event_export(store.active_event, audit_logger)

        assert bundle.filename == "meomap-event-da-lat.json"
        data = json.loads(bundle.content)
        assert data["name"] == "Đà Lạt"
        assert len(data["expenses"]) == 1
        assert audit_storage.events[-1].event_type == AuditEventType.EXPORT_CREATED

    def test_building_does_not_audit(self, store, make_draft, audit_storage):
        """Test only a handed-over bundle is recorded."""
        store.add_expense(make_draft())
        before = len(audit_storage.events)

        bundle = build_personal_export(store)
        assert len(audit_storage.events) == before
        assert bundle.expense_count == 1

    def test_record_export(self, store, make_draft, audit_logger, audit_storage):
        """Test a download records one export event with the bundle's count."""
        store.add_expense(make_draft())
        bundle = build_personal_export(store)

        record_export(audit_logger, bundle)

        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.EXPORT_CREATED
        assert event.details["expense_count"] == 1
