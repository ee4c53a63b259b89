"""
Tests for the Import Pipeline

Covers shape detection, backup merging, record routing, locked months,
error surfacing and the async file / sheet entry points.
"""

import json
import pytest
from datetime import datetime

from expense_ledger.config import AppSettings
from expense_ledger.imports import (
    ImportFormat,
    ImportPipeline,
    ImportShape,
    NoImportTargetError,
    SheetSourceError,
    UnreadableFileError,
    UnsupportedFormatError,
    extract_records,
    is_full_backup,
)
from expense_ledger.models.audit import AuditEventType
from expense_ledger.models.ledger import GroupEventDraft, ViewMode


FLAT_LIST = [
    {"date": "2024-02-01", "amount": 45000, "note": "Cafe"},
    {"date": "2024-02-02", "amount": "120.000", "note": "Grab"},
    {"date": "2024-02-03", "amount": 0, "note": "free"},
]


class FakeSheetSource:
    """Stands in for GoogleSheetsSource."""

    label = "google-sheets:test/Sheet1"

    def __init__(self, records=None, error=None):
        self._records = records or []
        self._error = error

    async def fetch_records(self):
        if self._error:
            raise self._error
        return self._records


class TestShapeDetection:
    """Tests for backup vs record-list detection."""

    def test_backup_detected(self):
        """Test a month map of sessions is a backup."""
        assert is_full_backup({"2024-01": {"id": "2024-01", "expenses": []}})

    def test_flat_list_is_not_backup(self):
        """Test arrays are records."""
        assert not is_full_backup(FLAT_LIST)

    def test_single_record_is_not_backup(self):
        """Test one plain object is not a backup."""
        assert not is_full_backup({"amount": 1000})

    def test_data_wrapper(self):
        """Test lists under 'data' are unwrapped."""
        assert extract_records({"data": FLAT_LIST}) == FLAT_LIST

    def test_sheet_name_wrapper(self):
        """Test spreadsheet-style {'Sheet1': [...]} is unwrapped."""
        assert extract_records({"Sheet1": FLAT_LIST}) == FLAT_LIST

    def test_single_object(self):
        """Test a single record becomes a one-item list."""
        assert extract_records({"amount": 1000}) == [{"amount": 1000}]

    def test_hierarchical_items_expanded(self):
        """Test nested items inherit parent fields, child wins."""
        raw = [{
            "date": "2024-02-01",
            "note": "Siêu thị",
            "items": [{"amount": 1000}, {"amount": 2000, "note": "Sữa"}],
        }]
        assert extract_records(raw) == [
            {"date": "2024-02-01", "note": "Siêu thị", "amount": 1000},
            {"date": "2024-02-01", "note": "Sữa", "amount": 2000},
        ]

    def test_single_object_with_items(self):
        """Test a lone object carrying items is expanded."""
        raw = {"date": "2024-02-01", "items": [{"amount": 1}, {"amount": 2}]}
        assert len(extract_records(raw)) == 2


class TestImportFormat:
    """Tests for format detection."""

    def test_from_filename(self):
        """Test extensions map to formats regardless of case."""
        assert ImportFormat.from_filename("backup.JSON") == ImportFormat.JSON
        assert ImportFormat.from_filename("sổ chi.csv") == ImportFormat.CSV

    def test_unsupported(self):
        """Test other extensions are refused."""
        with pytest.raises(UnsupportedFormatError):
            ImportFormat.from_filename("report.xlsx")


class TestRecordImport:
    """Tests for flat-list imports."""

    def test_valid_records_counted_invalid_skipped(self, pipeline, store):
        """Test only valid records are imported and counted."""
        result = pipeline.import_content(json.dumps(FLAT_LIST), ImportFormat.JSON)
        assert result.shape == ImportShape.RECORDS
        assert result.imported == 2
        assert result.skipped == 1
        assert len(store.get_session("2024-02").expenses) == 2

    def test_importing_twice_duplicates(self, pipeline, store):
        """Test the same list imported twice yields independent records."""
        content = json.dumps(FLAT_LIST)
        pipeline.import_content(content, ImportFormat.JSON)
        pipeline.import_content(content, ImportFormat.JSON)

        expenses = store.get_session("2024-02").expenses
        assert len(expenses) == 4
        assert len({expense.id for expense in expenses}) == 4

    def test_records_route_by_month(self, pipeline, store):
        """Test each record lands in its own month."""
        records = [
            {"date": "2024-01-15", "amount": 1000},
            {"date": "2024-02-15", "amount": 2000},
        ]
        pipeline.import_records(records)
        assert store.month_keys == ["2024-01", "2024-02"]

    def test_locked_month_skipped_rest_imported(self, pipeline, store):
        """Test records for a locked month are skipped without aborting."""
        store.set_month("2024-01")
        store.toggle_lock()

        result = pipeline.import_records([
            {"date": "2024-01-15", "amount": 1000},
            {"date": "2024-02-15", "amount": 2000},
        ])

        assert result.imported == 1
        assert store.get_session("2024-01").expenses == []
        assert len(store.get_session("2024-02").expenses) == 1

    def test_nothing_imported_is_distinct(self, pipeline):
        """Test a readable file with no valid rows is not an error."""
        result = pipeline.import_content('[{"note": "no amount"}]', ImportFormat.JSON)
        assert result.imported == 0
        assert result.nothing_imported

    def test_csv_import(self, pipeline, store):
        """Test CSV content goes through the tabular parser."""
        content = "Ngày,Số tiền,Ghi chú\n05/02/2024,\"1.500.000\",Tiền nhà\n06/02/2024,30000,Trà sữa"
        result = pipeline.import_content(content, ImportFormat.CSV)
        assert result.imported == 2
        notes = {expense.note for expense in store.get_session("2024-02").expenses}
        assert notes == {"Tiền nhà", "Trà sữa"}

    def test_group_mode_appends_to_event(self, pipeline, store):
        """Test group-mode imports go to the open event."""
        event = store.create_group_event(GroupEventDraft(name="Trip"))
        store.select_event(event.id)

        result = pipeline.import_records(FLAT_LIST)

        assert result.imported == 2
        assert len(store.get_event(event.id).expenses) == 2
        assert store.month_keys == []

    def test_group_mode_without_event(self, pipeline, store):
        """Test group-mode import needs a selected event."""
        store.switch_mode(ViewMode.GROUP)
        with pytest.raises(NoImportTargetError):
            pipeline.import_records(FLAT_LIST)

    def test_import_is_audited(self, pipeline, audit_storage):
        """Test completed imports are recorded."""
        pipeline.import_records(FLAT_LIST, source="test.json")
        completed = [e for e in audit_storage.events if e.event_type == AuditEventType.IMPORT_COMPLETED]
        assert completed[0].details == {"source": "test.json", "imported": 2, "skipped": 1}


class TestBackupImport:
    """Tests for full-backup imports."""

    def test_backup_replaces_month(self, pipeline, store, make_draft):
        """Test an imported month replaces (not merges) the existing one."""
        store.add_expense(make_draft(when=datetime(2024, 1, 5)))
        store.add_expense(make_draft(when=datetime(2024, 1, 6)))

        backup = {"2024-01": {
            "id": "2024-01",
            "expenses": [
                {"id": f"b{i}", "amount": 1000 * (i + 1), "date": "2024-01-10T00:00:00",
                 "note": "x", "category": "FOOD"}
                for i in range(3)
            ],
        }}
        result = pipeline.import_content(json.dumps(backup), ImportFormat.JSON)

        assert result.shape == ImportShape.BACKUP
        assert result.imported == 3
        assert result.active_month == "2024-01"
        assert [e.id for e in store.get_session("2024-01").expenses] == ["b0", "b1", "b2"]

    def test_backup_keeps_lock_flag(self, pipeline, store):
        """Test isCompleted survives the import."""
        backup = {"2023-12": {"id": "2023-12", "isCompleted": True, "expenses": []}}
        pipeline.import_content(json.dumps(backup), ImportFormat.JSON)
        assert store.get_session("2023-12").is_locked
        assert store.current_month == "2023-12"

    def test_map_key_wins_over_inner_id(self, pipeline, store):
        """Test the month-key of the map is authoritative."""
        backup = {"2023-10": {"id": "2023-09", "expenses": []}}
        pipeline.import_content(json.dumps(backup), ImportFormat.JSON)
        assert store.get_session("2023-10").id == "2023-10"

    def test_damaged_backup_imports_nothing(self, pipeline, store):
        """Test one invalid month fails the whole backup."""
        backup = {
            "2024-01": {"id": "2024-01", "expenses": []},
            "2024-02": {"id": "2024-02", "budget": -5, "expenses": []},
        }
        with pytest.raises(UnreadableFileError):
            pipeline.import_content(json.dumps(backup), ImportFormat.JSON)
        assert store.month_keys == []

    def test_invalid_month_key_fails_backup(self, pipeline, store):
        """Test a key that is not YYYY-MM fails the whole backup."""
        backup = {"2024-13": {"expenses": []}}
        with pytest.raises(UnreadableFileError):
            pipeline.import_content(json.dumps(backup), ImportFormat.JSON)
        assert store.month_keys == []

    def test_invalid_expense_in_backup_is_skipped(self, pipeline, store, audit_storage):
        """Test a zero-amount expense is skipped and the rest of its month lands."""
        backup = {"2024-02": {"id": "2024-02", "expenses": [
            {"id": "a", "amount": 45000, "date": "2024-02-01T00:00:00"},
            {"id": "b", "amount": 0, "date": "2024-02-02T00:00:00"},
            {"id": "c", "amount": 30000, "date": "2024-02-03T00:00:00"},
        ]}}
        result = pipeline.import_content(json.dumps(backup), ImportFormat.JSON)

        assert result.imported == 2
        assert result.skipped == 1
        assert [e.id for e in store.get_session("2024-02").expenses] == ["a", "c"]
        assert audit_storage.events[-1].details["skipped"] == 1


class TestUnreadableInput:
    """Tests for whole-file failures."""

    def test_malformed_json(self, pipeline, store, audit_storage):
        """Test bad JSON fails once and imports nothing."""
        with pytest.raises(UnreadableFileError):
            pipeline.import_content("{not json", ImportFormat.JSON, source="bad.json")
        assert store.month_keys == []
        assert audit_storage.events[-1].event_type == AuditEventType.IMPORT_FAILED

    def test_upload_unsupported_extension(self, pipeline):
        """Test uploads are checked by extension."""
        with pytest.raises(UnsupportedFormatError):
            pipeline.import_upload("photo.png", b"...")

    def test_upload_not_utf8(self, pipeline):
        """Test binary content is unreadable."""
        with pytest.raises(UnreadableFileError):
            pipeline.import_upload("data.csv", b"\xff\xfe\x00\x81")

    def test_upload_too_large(self, store):
        """Test the size limit is enforced."""
        pipeline = ImportPipeline(store, settings=AppSettings(max_import_size_mb=1))
        with pytest.raises(UnreadableFileError):
            pipeline.import_upload("big.json", b" " * (1024 * 1024 + 1))

    def test_upload_with_bom(self, pipeline):
        """Test a UTF-8 BOM is accepted."""
        data = "\ufeff".encode("utf-8") + json.dumps(FLAT_LIST).encode("utf-8")
        assert pipeline.import_upload("export.json", data).imported == 2


class TestAsyncEntryPoints:
    """Tests for the awaitable import entry points."""

    @pytest.mark.asyncio
    async def test_import_file(self, pipeline, store, tmp_path):
        """Test reading a file from disk."""
        path = tmp_path / "chi-tieu.json"
        path.write_text(json.dumps(FLAT_LIST, ensure_ascii=False), encoding="utf-8")

        result = await pipeline.import_file(path)

        assert result.imported == 2
        assert result.source == "chi-tieu.json"

    @pytest.mark.asyncio
    async def test_import_missing_file(self, pipeline, tmp_path):
        """Test a missing file is unreadable."""
        with pytest.raises(UnreadableFileError):
            await pipeline.import_file(tmp_path / "missing.csv")

    @pytest.mark.asyncio
    async def test_import_sheet(self, pipeline, store):
        """Test sheet rows import like a flat list."""
        source = FakeSheetSource(records=[
            {"Ngày": "01/02/2024", "Số tiền": "50000", "Ghi chú": "Phở"},
        ])
        result = await pipeline.import_sheet(source)
        assert result.imported == 1
        assert result.source == "google-sheets:test/Sheet1"

    @pytest.mark.asyncio
    async def test_import_sheet_failure(self, pipeline, store, audit_storage):
        """Test sheet access errors propagate and import nothing."""
        source = FakeSheetSource(error=SheetSourceError("Spreadsheet not found"))
        with pytest.raises(SheetSourceError):
            await pipeline.import_sheet(source)
        assert store.month_keys == []
        assert audit_storage.events[-1].event_type == AuditEventType.IMPORT_FAILED
