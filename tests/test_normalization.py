"""
Tests for amount/date parsing, category classification and record
normalization.
"""

import pytest
import unicodedata
from datetime import date, datetime
from decimal import Decimal

from expense_ledger.models.ledger import CategoryType, month_key
from expense_ledger.normalization import (
    detect_category,
    normalize_record,
    parse_amount,
    parse_date,
)
from expense_ledger.normalization.records import probe


FIXED_NOW = datetime(2024, 7, 1, 9, 30)


def fixed_now() -> datetime:
    return FIXED_NOW


class TestParseAmount:
    """Tests for amount parsing."""

    def test_integer(self):
        """Test plain numbers pass through."""
        assert parse_amount(45000) == Decimal("45000")

    def test_float(self):
        """Test floats keep their value."""
        assert parse_amount(12.5) == Decimal("12.5")

    def test_vietnamese_formatted_string(self):
        """Test dot thousands separators and currency suffix are dropped."""
        assert parse_amount("1.500.000 đ") == Decimal("1500000")

    def test_comma_formatted_string(self):
        """Test comma separators are dropped."""
        assert parse_amount("25,000 VND") == Decimal("25000")

    def test_non_numeric_string_is_zero(self):
        """Test text without digits is zero."""
        assert parse_amount("miễn phí") == Decimal(0)

    def test_missing_is_zero(self):
        """Test None is zero."""
        assert parse_amount(None) == Decimal(0)

    def test_bool_is_zero(self):
        """Test booleans are not amounts."""
        assert parse_amount(True) == Decimal(0)

    def test_nan_is_zero(self):
        """Test non-finite numbers are zero."""
        assert parse_amount(float("nan")) == Decimal(0)


class TestParseDate:
    """Tests for date parsing."""

    def test_day_month_year(self):
        """Test slash dates are Day-Month-Year."""
        assert parse_date("05/03/2024", now=fixed_now) == datetime(2024, 3, 5)

    def test_iso_date(self):
        """Test ISO dates are Year-Month-Day."""
        assert parse_date("2024-03-05", now=fixed_now) == datetime(2024, 3, 5)

    def test_year_first_with_slashes(self):
        """Test a four-digit first part means Year-Month-Day."""
        assert parse_date("2024/3/5", now=fixed_now) == datetime(2024, 3, 5)

    def test_dashed_day_month_year(self):
        """Test dashes work like slashes."""
        assert parse_date("05-03-2024", now=fixed_now) == datetime(2024, 3, 5)

    def test_trailing_time_is_ignored(self):
        """Test positional dates may carry a time."""
        assert parse_date("05/03/2024 10:30", now=fixed_now) == datetime(2024, 3, 5)

    def test_iso_datetime(self):
        """Test full ISO timestamps keep their time."""
        assert parse_date("2024-03-05T10:15:00", now=fixed_now) == datetime(2024, 3, 5, 10, 15)

    def test_date_object(self):
        """Test date objects become midnight."""
        assert parse_date(date(2024, 3, 5), now=fixed_now) == datetime(2024, 3, 5)

    def test_impossible_date_falls_back_to_now(self):
        """Test 31 February is not a date."""
        assert parse_date("31/02/2024", now=fixed_now) == FIXED_NOW

    def test_garbage_falls_back_to_now(self):
        """Test unparseable text falls back to now."""
        assert parse_date("hôm qua", now=fixed_now) == FIXED_NOW

    def test_missing_falls_back_to_now(self):
        """Test None falls back to now."""
        assert parse_date(None, now=fixed_now) == FIXED_NOW


class TestDetectCategory:
    """Tests for the category classifier."""

    def test_identifier(self):
        """Test internal identifiers match case-insensitively."""
        assert detect_category("coffee") == CategoryType.COFFEE
        assert detect_category("TRANSPORT") == CategoryType.TRANSPORT

    def test_exact_label(self):
        """Test display labels match."""
        assert detect_category("Nhà ở") == CategoryType.HOUSING

    def test_label_contained(self):
        """Test a label inside longer text matches."""
        assert detect_category("Chi Mua sắm cuối tuần") == CategoryType.SHOPPING

    def test_keyword_substring(self):
        """Test notes classify through keywords."""
        assert detect_category("Trà sữa Gongcha") == CategoryType.FOOD
        assert detect_category("Cafe Highlands") == CategoryType.COFFEE
        assert detect_category("Grab đi làm") == CategoryType.TRANSPORT
        assert detect_category("Tiền điện tháng 3") == CategoryType.HOUSING

    def test_overlapping_keyword_first_match_wins(self):
        """Test 'nước' resolves to the first category declaring it."""
        assert detect_category("tiền nước") == CategoryType.FOOD

    def test_decomposed_unicode(self):
        """Test NFD input classifies like NFC input."""
        decomposed = unicodedata.normalize("NFD", "Cà phê sữa đá")
        assert detect_category(decomposed) == CategoryType.COFFEE

    def test_unknown_is_other(self):
        """Test unmatched text falls back to OTHER."""
        assert detect_category("quà sinh nhật") == CategoryType.OTHER
        assert detect_category("") == CategoryType.OTHER
        assert detect_category(None) == CategoryType.OTHER


class TestProbe:
    """Tests for alias probing."""

    def test_case_insensitive_keys(self):
        """Test keys are matched ignoring case and padding."""
        assert probe({" Amount ": 5}, ("amount",)) == 5

    def test_first_alias_wins(self):
        """Test alias order decides between two present keys."""
        assert probe({"price": 1, "amount": 2}, ("amount", "price")) == 2

    def test_blank_values_are_absent(self):
        """Test empty strings fall through to the next alias."""
        assert probe({"amount": " ", "price": 3}, ("amount", "price")) == 3


class TestNormalizeRecord:
    """Tests for the record normalizer."""

    @pytest.mark.parametrize("record", [
        {"amount": 0, "note": "Phở", "date": "2024-03-05"},
        {"note": "Phở", "date": "2024-03-05", "category": "FOOD"},
        {"amount": "không có", "note": "Phở"},
        {"amount": None, "note": "Phở"},
        {"amount": -20000, "note": "Hoàn tiền"},
    ])
    def test_rejects_unusable_amounts(self, record):
        """Test zero, missing, non-numeric and negative amounts are rejected."""
        assert normalize_record(record) is None

    def test_rejects_non_mapping(self):
        """Test non-object records are rejected."""
        assert normalize_record(["2024-03-05", 1000]) is None
        assert normalize_record("50000") is None

    def test_vietnamese_columns(self):
        """Test Vietnamese aliases for every field."""
        draft = normalize_record({
            "Ngày": "05/03/2024",
            "Số tiền": "1.500.000",
            "Ghi chú": "Trà sữa Gongcha",
        })
        assert draft.amount == Decimal("1500000")
        assert draft.date == datetime(2024, 3, 5)
        assert draft.note == "Trà sữa Gongcha"
        assert draft.category == CategoryType.FOOD

    def test_explicit_category_wins_over_note(self):
        """Test a category column beats the note's keywords."""
        draft = normalize_record({
            "amount": 30000,
            "note": "Grab",
            "category": "Cà phê",
            "date": "2024-03-05",
        })
        assert draft.category == CategoryType.COFFEE
        assert draft.note == "Grab"

    def test_note_falls_back_to_category_text(self):
        """Test the raw category becomes the note when there is none."""
        draft = normalize_record({"amount": 30000, "category": "Cà phê", "date": "2024-03-05"})
        assert draft.note == "Cà phê"

    def test_note_falls_back_to_label(self):
        """Test a bare amount gets the category label as note."""
        draft = normalize_record({"amount": 30000, "date": "2024-03-05"})
        assert draft.category == CategoryType.OTHER
        assert draft.note == "Khác"

    def test_missing_date_is_now(self):
        """Test a record without a date still imports."""
        before = datetime.now()
        draft = normalize_record({"amount": 1000, "note": "x"})
        assert draft.date >= before

    def test_overlong_note_is_truncated(self):
        """Test notes are capped instead of rejecting the record."""
        draft = normalize_record({"amount": 1000, "note": "a" * 600, "date": "2024-03-05"})
        assert len(draft.note) == 500

    @pytest.mark.parametrize("amount,when,note,category", [
        (50000, "2024-01-31", "Phở", "FOOD"),
        ("45.000", "01/02/2024", "Cafe", "COFFEE"),
        (3000000, "2023-12-01T08:00:00", "Tiền nhà", "HOUSING"),
        (120000, "29/02/2024", "Shopee", "SHOPPING"),
    ])
    def test_month_key_matches_date(self, amount, when, note, category):
        """Test the normalized record's month-key is the date's month-key."""
        draft = normalize_record({"amount": amount, "date": when, "note": note, "category": category})
        assert draft.month_key == month_key(parse_date(when))
