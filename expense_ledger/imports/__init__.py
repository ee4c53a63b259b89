"""Import package: tabular parsing, Google Sheets source, import pipeline."""

from expense_ledger.imports.pipeline import (
    ImportFailedError,
    ImportFormat,
    ImportPipeline,
    ImportResult,
    ImportShape,
    NoImportTargetError,
    UnreadableFileError,
    UnsupportedFormatError,
    extract_records,
    is_full_backup,
)
from expense_ledger.imports.sheets import GoogleSheetsSource, SheetSourceError
from expense_ledger.imports.tabular import (
    clean_rows,
    parse_csv,
    rows_to_records,
    split_rows,
)

__all__ = [
    "GoogleSheetsSource",
    "ImportFailedError",
    "ImportFormat",
    "ImportPipeline",
    "ImportResult",
    "ImportShape",
    "NoImportTargetError",
    "SheetSourceError",
    "UnreadableFileError",
    "UnsupportedFormatError",
    "clean_rows",
    "extract_records",
    "is_full_backup",
    "parse_csv",
    "rows_to_records",
    "split_rows",
]
