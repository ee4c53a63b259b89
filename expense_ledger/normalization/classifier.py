"""
Category Classifier

Maps a free-text label or note to one category.

Precedence:
1. Exact (case-insensitive) category identifier: "food" -> FOOD
2. Display label, exact or contained: "Chi Ăn uống tuần 2" -> FOOD
3. Keyword table, checked in category declaration order
4. OTHER

NOTE: Keyword lists overlap on purpose-neutral tokens ("nước" is both a
drink and the water bill). The first category in declaration order wins,
so "tiền nước" lands in FOOD. This keeps compatibility with data the
original app already classified this way.
"""

import unicodedata
from typing import Optional

from expense_ledger.models.ledger import CATEGORIES, CategoryType


CATEGORY_KEYWORDS: dict[CategoryType, tuple[str, ...]] = {
    CategoryType.FOOD: (
        "ăn sáng", "ăn trưa", "ăn tối", "ăn vặt", "đồ ăn", "cơm", "phở",
        "bún", "bánh", "lẩu", "nướng", "nhà hàng", "trà sữa", "gongcha",
        "nước ngọt", "nước", "bia", "food", "lunch", "dinner", "breakfast",
        "snack", "shopeefood", "baemin",
    ),
    CategoryType.COFFEE: (
        "cà phê", "cafe", "café", "coffee", "highlands", "starbucks",
        "phúc long", "katinat", "bạc xỉu", "trà đá",
    ),
    CategoryType.HOUSING: (
        "tiền nhà", "thuê nhà", "căn hộ", "tiền điện", "điện", "nước",
        "internet", "wifi", "gas", "phí quản lý", "rent", "nhà",
    ),
    CategoryType.SHOPPING: (
        "mua", "shopee", "lazada", "tiki", "siêu thị", "quần áo",
        "giày", "túi", "mỹ phẩm", "shopping",
    ),
    CategoryType.TRANSPORT: (
        "xăng", "grab", "gojek", "taxi", "gửi xe", "xe buýt", "vé xe",
        "vé máy bay", "xe", "bus", "parking",
    ),
}


def _normalize(text: str) -> str:
    # Vietnamese text arrives both precomposed and decomposed
    return unicodedata.normalize("NFC", text).strip().lower()


def detect_category(text: Optional[str]) -> CategoryType:
    """Classify a label or note. Never raises; unknown text is OTHER."""
    if text is None:
        return CategoryType.OTHER

    lowered = _normalize(str(text))
    if not lowered:
        return CategoryType.OTHER

    # 1. Internal identifier
    for category in CategoryType:
        if lowered == category.value.lower():
            return category

    # 2. Display label
    for category, info in CATEGORIES.items():
        label = _normalize(info.label)
        if lowered == label or label in lowered:
            return category

    # 3. Keywords, first match wins
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(keyword in lowered for keyword in keywords):
            return category

    return CategoryType.OTHER
