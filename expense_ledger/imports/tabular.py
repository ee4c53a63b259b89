"""
Tabular Parser

Turns delimited text (CSV exports, spreadsheet rows) into attribute bags
for the Record Normalizer.

Header detection: the first non-blank row is a header if any of its cells
mentions a date / amount / note keyword, in English or Vietnamese.
- With a header, rows become {header cell text: value}.
- Without one, rows map positionally to date, amount, note, category.
Rows with fewer than 2 cells are skipped.
"""

import csv
import unicodedata
from collections.abc import Iterable, Sequence


HEADER_KEYWORDS = (
    "date", "amount", "note",
    "ngày", "số tiền", "ghi chú",
)

POSITIONAL_COLUMNS = ("date", "amount", "note", "category")

_QUOTES = "\"'"


def unquote(cell: str) -> str:
    """Trim whitespace and one layer of surrounding quotes."""
    cell = cell.strip()
    if cell[:1] in _QUOTES:
        cell = cell[1:]
    if cell[-1:] in _QUOTES:
        cell = cell[:-1]
    return cell.strip()


def clean_rows(rows: Iterable[Sequence[str]]) -> list[list[str]]:
    """
    Unquote every cell, drop trailing empty cells and blank rows.

    Spreadsheet APIs pad rows to the sheet width; this makes such rows
    look like the equivalent CSV lines.
    """
    cleaned = []
    for row in rows:
        cells = [unquote(str(cell)) for cell in row]
        while cells and not cells[-1]:
            cells.pop()
        if cells:
            cleaned.append(cells)
    return cleaned


def split_rows(text: str) -> list[list[str]]:
    """Split CSV text into rows of cells. Quoted commas stay in their cell."""
    text = text.lstrip("\ufeff")
    rows = []
    for line in text.splitlines():
        if not line.strip():
            continue
        try:
            cells = next(csv.reader([line], skipinitialspace=True))
        except (csv.Error, StopIteration):
            continue
        rows.append(cells)
    return clean_rows(rows)


def is_header(row: Sequence[str]) -> bool:
    for cell in row:
        lowered = unicodedata.normalize("NFC", cell).lower()
        if any(keyword in lowered for keyword in HEADER_KEYWORDS):
            return True
    return False


def rows_to_records(rows: Sequence[Sequence[str]]) -> list[dict[str, str]]:
    """Map cleaned rows to attribute bags, detecting a header row."""
    if not rows:
        return []

    records = []
    if is_header(rows[0]):
        header = list(rows[0])
        for row in rows[1:]:
            if len(row) < 2:
                continue
            records.append({
                key: value
                for key, value in zip(header, row)
                if key
            })
        return records

    for row in rows:
        if len(row) < 2:
            continue
        record = dict(zip(POSITIONAL_COLUMNS, row))
        if "category" not in record and "note" in record:
            record["category"] = record["note"]
        records.append(record)
    return records


def parse_csv(text: str) -> list[dict[str, str]]:
    """CSV text -> attribute bags."""
    return rows_to_records(split_rows(text))
