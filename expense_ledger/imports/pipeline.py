"""
Import Pipeline

Bulk ingestion of expenses from files and spreadsheets.

Flow:
1. Parse    - CSV through the Tabular Parser, JSON decoded directly
2. Classify - full backup snapshot, or a (possibly wrapped) record list
3. Route    - a backup is merged into the session map wholesale;
              records go through the Record Normalizer and into the store

GRACEFUL DEGRADATION:
- A file that cannot be parsed fails the whole import (nothing lands).
- A record that cannot be normalized is silently dropped.
- A record aimed at a locked month is skipped; the rest still import.
Only the aggregate count is reported back.
"""

import asyncio
import json
from collections.abc import Iterable, Iterator, Mapping
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from expense_ledger.audit import AuditLogger
from expense_ledger.config import AppSettings, get_settings
from expense_ledger.imports.sheets import GoogleSheetsSource, SheetSourceError
from expense_ledger.imports.tabular import parse_csv
from expense_ledger.models.audit import AuditEventBuilder
from expense_ledger.models.ledger import MonthlySession, ViewMode
from expense_ledger.normalization import normalize_record
from expense_ledger.services.storage import salvage_container
from expense_ledger.store import LedgerStore


class ImportFailedError(Exception):
    """Base exception for imports that could not run at all."""
    pass


class UnreadableFileError(ImportFailedError):
    """The content does not parse as the format it claims to be."""
    pass


class UnsupportedFormatError(ImportFailedError):
    """The file extension is not an importable format."""
    pass


class NoImportTargetError(ImportFailedError):
    """Group-mode import with no group event selected."""
    pass


class ImportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"

    @classmethod
    def from_filename(cls, filename: str) -> "ImportFormat":
        suffix = Path(filename).suffix.lower().lstrip(".")
        try:
            return cls(suffix)
        except ValueError:
            raise UnsupportedFormatError(
                f"Cannot import '{filename}': only .csv and .json files are supported"
            )


class ImportShape(str, Enum):
    BACKUP = "backup"
    RECORDS = "records"


class ImportResult(BaseModel):
    """Aggregate outcome of one import."""

    source: str
    shape: ImportShape
    imported: int = Field(ge=0)
    skipped: int = Field(default=0, ge=0)
    active_month: Optional[str] = None

    @property
    def nothing_imported(self) -> bool:
        """The file was readable but yielded no usable expense."""
        return self.imported == 0


WRAPPER_KEYS = ("data", "expenses", "records", "transactions")


def is_full_backup(raw: Any) -> bool:
    """A backup maps month-keys to objects that each carry an `expenses` list."""
    if not isinstance(raw, Mapping) or not raw:
        return False
    return all(
        isinstance(value, Mapping) and isinstance(value.get("expenses"), list)
        for value in raw.values()
    )


def _unwrap(raw: Any) -> list[Any]:
    if isinstance(raw, list):
        return raw
    if not isinstance(raw, Mapping):
        return []

    for key in WRAPPER_KEYS:
        if isinstance(raw.get(key), list):
            return raw[key]

    # A single object carrying its own line items
    if isinstance(raw.get("items"), list):
        return [raw]

    # Spreadsheet-style export: {"Sheet1": [...]}
    for value in raw.values():
        if isinstance(value, list) and any(isinstance(item, Mapping) for item in value):
            return value

    return [raw]


def _expand(items: Iterable[Any]) -> Iterator[Any]:
    """
    Expand hierarchical records one level.

    {"date": d, "items": [{"amount": a}, ...]} yields one record per item,
    each inheriting the parent's fields unless it overrides them.
    """
    for item in items:
        if isinstance(item, Mapping) and isinstance(item.get("items"), list):
            parent = {key: value for key, value in item.items() if key != "items"}
            for child in item["items"]:
                if isinstance(child, Mapping):
                    yield {**parent, **child}
        else:
            yield item


def extract_records(raw: Any) -> list[Any]:
    """Flatten any supported list shape into a list of candidate records."""
    return list(_expand(_unwrap(raw)))


class ImportPipeline:
    """
    Orchestrates Tabular Parser -> Record Normalizer -> Ledger Store.
    """

    def __init__(
        self,
        store: LedgerStore,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app

    def _audit_failure(self, source: str, error: Exception) -> None:
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.import_failed(source, str(error)))

    # =========================================================================
    # PARSING
    # =========================================================================

    @staticmethod
    def parse_content(content: str, fmt: ImportFormat) -> Any:
        """
        Raises:
            UnreadableFileError: If JSON content is malformed
        """
        if fmt == ImportFormat.CSV:
            return parse_csv(content)
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise UnreadableFileError(f"The file is not valid JSON: {e.msg} (line {e.lineno})")

    # =========================================================================
    # ROUTING
    # =========================================================================

    def import_content(
        self,
        content: str,
        fmt: ImportFormat,
        source: str = "upload",
    ) -> ImportResult:
        """Import already-read file content."""
        try:
            raw = self.parse_content(content, fmt)
            if is_full_backup(raw):
                return self._merge_backup(raw, source)
            return self.import_records(extract_records(raw), source)
        except ImportFailedError as e:
            self._audit_failure(source, e)
            raise

    def _merge_backup(self, raw: Mapping[str, Any], source: str) -> ImportResult:
        # Validate every month before touching the store. A broken month
        # fails the file; a bad expense inside a month is only skipped.
        sessions: dict[str, MonthlySession] = {}
        skipped = 0
        try:
            for key, value in raw.items():
                sessions[key], dropped = salvage_container(MonthlySession, value, container_id=key)
                skipped += dropped
        except ValidationError as e:
            raise UnreadableFileError(f"The backup file is damaged: {e.error_count()} invalid fields")

        active_month = self._store.merge_sessions(sessions)
        imported = sum(len(session.expenses) for session in sessions.values())

        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.import_completed(source, imported, skipped))

        return ImportResult(
            source=source,
            shape=ImportShape.BACKUP,
            imported=imported,
            skipped=skipped,
            active_month=active_month,
        )

    def import_records(self, records: list[Any], source: str = "records") -> ImportResult:
        """
        Normalize and store a list of raw records.

        Raises:
            NoImportTargetError: Group mode with no event selected
        """
        if self._store.mode == ViewMode.GROUP and self._store.active_event is None:
            raise NoImportTargetError("Select or create a group event before importing")

        drafts = [draft for draft in map(normalize_record, records) if draft is not None]
        imported = self._store.import_expenses(drafts)
        skipped = len(records) - imported

        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.import_completed(source, imported, skipped))

        return ImportResult(
            source=source,
            shape=ImportShape.RECORDS,
            imported=imported,
            skipped=skipped,
        )

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    def import_upload(self, filename: str, data: bytes) -> ImportResult:
        """Import an uploaded file's bytes (format from the extension)."""
        try:
            fmt = ImportFormat.from_filename(filename)
            if fmt.value not in self._settings.supported_formats_list:
                raise UnsupportedFormatError(f"Importing .{fmt.value} files is disabled")
            if len(data) > self._settings.max_import_size_bytes:
                raise UnreadableFileError(
                    f"'{filename}' is larger than {self._settings.max_import_size_mb} MB"
                )
            try:
                content = data.decode("utf-8-sig")
            except UnicodeDecodeError:
                raise UnreadableFileError(f"'{filename}' is not UTF-8 text")
        except ImportFailedError as e:
            self._audit_failure(filename, e)
            raise
        return self.import_content(content, fmt, source=filename)

    async def import_file(self, path: Union[str, Path]) -> ImportResult:
        """
        Read a file from disk and import it.

        The read runs in a worker thread; the store mutation happens once
        the content is available, in one synchronous step.
        """
        path = Path(path)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            error = UnreadableFileError(f"Cannot read '{path.name}': {e.strerror or e}")
            self._audit_failure(path.name, error)
            raise error
        return self.import_upload(path.name, data)

    async def import_sheet(self, source: GoogleSheetsSource) -> ImportResult:
        """
        Pull rows from Google Sheets and import them as a flat list.

        Raises:
            SheetSourceError: If the sheet cannot be read (nothing is imported)
        """
        try:
            records = await source.fetch_records()
        except SheetSourceError as e:
            self._audit_failure(source.label, e)
            raise
        return self.import_records(records, source=source.label)
