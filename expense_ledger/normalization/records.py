"""
Record Normalizer

Converts one arbitrary external record (a string-keyed attribute bag from
a CSV row, a JSON object, a spreadsheet row) into an ExpenseDraft.

Export tools disagree on column names, so each canonical field is found
by probing an ordered list of alias keys; the first present value wins.
Keys are compared case-insensitively after trimming.

A record with no usable amount is REJECTED (None). A zero amount cannot
be represented in the ledger, so it is never stored.
"""

import unicodedata
from collections.abc import Mapping
from typing import Any, Callable, Optional

from pydantic import ValidationError

from expense_ledger.models.ledger import ExpenseDraft, category_label
from expense_ledger.normalization.classifier import detect_category
from expense_ledger.normalization.parsing import parse_amount, parse_date


AMOUNT_KEYS = (
    "amount", "số tiền", "so tien", "sotien", "tiền", "money", "price",
    "giá", "cost", "value", "total", "thành tiền",
)
DATE_KEYS = (
    "date", "ngày", "ngay", "time", "thời gian", "datetime", "timestamp",
    "created_at", "createdat", "day",
)
NOTE_KEYS = (
    "note", "ghi chú", "ghi chu", "ghichu", "description", "desc",
    "nội dung", "noi dung", "memo", "title", "name", "item", "tên",
)
CATEGORY_KEYS = (
    "category", "danh mục", "danh muc", "danhmuc", "loại", "type", "cat",
    "nhóm",
)

MAX_NOTE_LENGTH = 500


def _normalize_key(key: Any) -> str:
    return unicodedata.normalize("NFC", str(key)).strip().lower()


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def probe(record: Mapping[str, Any], aliases: tuple[str, ...]) -> Any:
    """Return the value of the first alias present in the record, or None."""
    lookup: dict[str, Any] = {}
    for key, value in record.items():
        # Keep the first occurrence when two keys normalize the same way
        lookup.setdefault(_normalize_key(key), value)

    for alias in aliases:
        value = lookup.get(alias)
        if _is_present(value):
            return value
    return None


# (field, aliases, extractor) evaluated in order against the attribute bag
FIELD_EXTRACTORS: tuple[tuple[str, tuple[str, ...], Callable[[Any], Any]], ...] = (
    ("amount", AMOUNT_KEYS, parse_amount),
    ("date", DATE_KEYS, parse_date),
    ("note", NOTE_KEYS, lambda value: None if value is None else str(value).strip()),
    ("category", CATEGORY_KEYS, lambda value: None if value is None else str(value).strip()),
)


def extract_fields(record: Mapping[str, Any]) -> dict[str, Any]:
    """Run every field extractor over the record."""
    return {
        field: extractor(probe(record, aliases))
        for field, aliases, extractor in FIELD_EXTRACTORS
    }


def normalize_record(record: Any) -> Optional[ExpenseDraft]:
    """
    Normalize one external record.

    Returns:
        An ExpenseDraft (everything but the id), or None when the record
        has no positive amount or is not a mapping at all.
    """
    if not isinstance(record, Mapping):
        return None

    fields = extract_fields(record)

    amount = fields["amount"]
    if not amount or amount <= 0:
        return None

    raw_category = fields["category"]
    raw_note = fields["note"]

    # An explicit category column wins; otherwise classify the note
    if raw_category:
        category = detect_category(raw_category)
    else:
        category = detect_category(raw_note or "")

    note = raw_note or raw_category or category_label(category)

    try:
        return ExpenseDraft(
            amount=amount,
            note=note[:MAX_NOTE_LENGTH],
            category=category,
            date=fields["date"],
        )
    except ValidationError:
        return None
