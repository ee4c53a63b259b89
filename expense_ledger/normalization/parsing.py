"""
Amount and Date Normalization

Pure functions that turn loosely-typed external values into the
canonical amount (Decimal) and date (datetime).

IMPORTANT: These functions NEVER raise.
- An unparseable amount becomes 0, which callers treat as "invalid".
- An unparseable date becomes "now", so callers must tolerate
  approximate dates for malformed input.
"""

import re
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional


_NON_DIGITS = re.compile(r"[^0-9]")
_DATE_SEPARATORS = re.compile(r"[/-]")

ZERO = Decimal(0)


def parse_amount(value: Any) -> Decimal:
    """
    Convert an external amount to a Decimal.

    - Numbers are taken as-is (non-finite numbers become 0).
    - Strings keep only their digits: "1.500.000 đ" -> 1500000.
      Amounts are VND, so separators of any locale are dropped.
    - Anything else is 0.
    """
    if isinstance(value, bool):
        return ZERO

    if isinstance(value, (int, float, Decimal)):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return ZERO
        return amount if amount.is_finite() else ZERO

    if isinstance(value, str):
        digits = _NON_DIGITS.sub("", value)
        if not digits:
            return ZERO
        return Decimal(digits)

    return ZERO


def _parse_positional(token: str) -> Optional[datetime]:
    """
    Interpret a three-part date by position.

    "05/03/2024" -> Day-Month-Year, "2024-3-5" -> Year-Month-Day.
    """
    # Ignore a trailing time component: "05/03/2024 10:30"
    head = token.split()[0] if token.split() else ""
    parts = _DATE_SEPARATORS.split(head)
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        return None

    first, middle, last = parts
    try:
        if len(last) >= 4:
            return datetime(int(last), int(middle), int(first))
        if len(first) >= 4:
            return datetime(int(first), int(middle), int(last))
    except ValueError:
        return None
    return None


def parse_date(
    value: Any,
    now: Optional[Callable[[], datetime]] = None,
) -> datetime:
    """
    Convert an external date value to a datetime.

    Order of attempts:
    1. Already a datetime/date
    2. ISO 8601 string ("2024-03-05", "2024-03-05T10:00:00Z")
    3. Positional three-part string (Day-Month-Year or Year-Month-Day)
    4. Fallback: the current instant
    """
    now = now or datetime.now

    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())

    if isinstance(value, str):
        token = value.strip()
        if token:
            try:
                return datetime.fromisoformat(token)
            except ValueError:
                pass

            if "/" in token or "-" in token:
                parsed = _parse_positional(token)
                if parsed is not None:
                    return parsed

    return now()
