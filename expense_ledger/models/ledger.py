"""
Core Data Models for the Expense Ledger

These models define the canonical shapes stored by the Ledger Store:
1. Expense - one dated, categorized transaction
2. MonthlySession - the personal-mode container for one calendar month
3. GroupEvent - the group-mode container for one shared occasion or fund

DESIGN DECISION: Persisted JSON keeps the camelCase field names of the
original app (isCompleted, startDate, isArchived, ...). Models accept both
the snake_case attribute names and the camelCase aliases, and always dump
by alias, so backups written by either version round-trip.
"""

import re
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)
from pydantic.alias_generators import to_camel


MONTH_KEY_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def new_id() -> str:
    """Opaque unique identifier for expenses, events and members."""
    return str(uuid4())


def month_key(value: date) -> str:
    """
    Derive the "YYYY-MM" month-key for a date or datetime.

    This is the only way the ledger partitions personal expenses.
    """
    return f"{value.year:04d}-{value.month:02d}"


def shift_month(key: str, delta: int) -> str:
    """Move a month-key forward or backward by `delta` months."""
    if not MONTH_KEY_PATTERN.match(key):
        raise ValueError(f"Invalid month key: {key!r}")
    year, month = (int(part) for part in key.split("-"))
    index = year * 12 + (month - 1) + delta
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


# =============================================================================
# CATEGORY REGISTRY
# =============================================================================

class CategoryType(str, Enum):
    """
    Closed set of spending categories.

    Declaration order matters: the classifier checks categories in this
    order and the first match wins.
    """
    FOOD = "FOOD"
    COFFEE = "COFFEE"
    HOUSING = "HOUSING"
    SHOPPING = "SHOPPING"
    TRANSPORT = "TRANSPORT"
    OTHER = "OTHER"


class CategoryInfo(BaseModel):
    """Display metadata for a category."""

    model_config = ConfigDict(frozen=True)

    id: CategoryType
    label: str
    icon: str
    color: str


CATEGORIES: dict[CategoryType, CategoryInfo] = {
    CategoryType.FOOD: CategoryInfo(
        id=CategoryType.FOOD, label="Ăn uống", icon="🍜", color="#FFD6A5"
    ),
    CategoryType.COFFEE: CategoryInfo(
        id=CategoryType.COFFEE, label="Cà phê", icon="☕", color="#FFEF96"
    ),
    CategoryType.HOUSING: CategoryInfo(
        id=CategoryType.HOUSING, label="Nhà ở", icon="🏠", color="#BDE0FE"
    ),
    CategoryType.SHOPPING: CategoryInfo(
        id=CategoryType.SHOPPING, label="Mua sắm", icon="🛍️", color="#FFC8DD"
    ),
    CategoryType.TRANSPORT: CategoryInfo(
        id=CategoryType.TRANSPORT, label="Đi lại", icon="🛵", color="#A2D2FF"
    ),
    CategoryType.OTHER: CategoryInfo(
        id=CategoryType.OTHER, label="Khác", icon="✨", color="#CDB4DB"
    ),
}


def category_label(category: CategoryType) -> str:
    return CATEGORIES[category].label


# =============================================================================
# EXPENSES
# =============================================================================

class LedgerModel(BaseModel):
    """Base for persisted models: camelCase aliases, populate by either name."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_json_dict(self) -> dict:
        """Dump in the persisted (camelCase, JSON-safe) shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ExpenseDraft(LedgerModel):
    """
    An expense that has not been assigned an identity yet.

    This is what the Record Normalizer produces and what callers hand to
    the Ledger Store. The store assigns the id on insertion.
    """

    amount: Decimal = Field(
        ...,
        gt=0,
        allow_inf_nan=False,
        description="Amount in VND (integer-valued in practice)"
    )
    note: str = Field(
        default="",
        max_length=500,
        description="Free-text note"
    )
    category: CategoryType = Field(
        default=CategoryType.OTHER,
        description="Spending category"
    )
    date: datetime = Field(
        ...,
        description="When the money was spent"
    )

    @field_validator("date")
    @classmethod
    def to_local_time(cls, v: datetime) -> datetime:
        """Store wall-clock local time so month-keys match what the user saw."""
        if v.tzinfo is not None:
            return v.astimezone().replace(tzinfo=None)
        return v

    @field_serializer("amount", when_used="json")
    def serialize_amount(self, value: Decimal):
        # Backups carry plain JSON numbers, not strings
        if value == value.to_integral_value():
            return int(value)
        return float(value)

    @property
    def month_key(self) -> str:
        return month_key(self.date)


class Expense(ExpenseDraft):
    """
    A stored expense.

    Identity is the id only: two expenses with identical fields but
    different ids are distinct (duplicates are allowed).
    """

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Opaque unique identifier"
    )

    @classmethod
    def from_draft(cls, draft: ExpenseDraft) -> "Expense":
        return cls(**{**draft.model_dump(exclude={"id"}), "id": new_id()})


# =============================================================================
# CONTAINERS
# =============================================================================

class MonthlySession(LedgerModel):
    """
    Personal-mode container of expenses for one calendar month.

    Expenses are kept in insertion order (new ones go to the front);
    callers sort on demand.
    """

    id: str = Field(
        ...,
        pattern=MONTH_KEY_PATTERN.pattern,
        description="The YYYY-MM month-key this session represents"
    )
    expenses: list[Expense] = Field(default_factory=list)
    budget: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Optional spending budget for the month"
    )
    is_completed: bool = Field(
        default=False,
        description="Locked flag: a completed month is frozen"
    )

    @field_serializer("budget", when_used="json")
    def serialize_budget(self, value: Optional[Decimal]):
        if value is None:
            return None
        if value == value.to_integral_value():
            return int(value)
        return float(value)

    @property
    def is_locked(self) -> bool:
        return self.is_completed


class GroupRole(str, Enum):
    """Whether I manage the event or just take part in it."""
    OWNER = "OWNER"
    MEMBER = "MEMBER"


class GroupMember(LedgerModel):
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=100)


class GroupEventDraft(LedgerModel):
    """Data needed to open a new group event."""

    name: str = Field(..., min_length=1, max_length=200)
    start_date: date = Field(default_factory=date.today)
    end_date: Optional[date] = None
    role: GroupRole = GroupRole.OWNER
    members: list[GroupMember] = Field(default_factory=list)


class GroupEvent(GroupEventDraft):
    """
    Group-mode container of expenses for a shared occasion or fund.

    The date range is informational only: member expenses are not
    checked against it.
    """

    id: str = Field(default_factory=new_id)
    expenses: list[Expense] = Field(default_factory=list)
    is_archived: bool = Field(
        default=False,
        description="Archived flag: a settled event is frozen"
    )

    @property
    def is_locked(self) -> bool:
        return self.is_archived


# =============================================================================
# ANALYSIS AND PREFERENCES
# =============================================================================

class Mood(str, Enum):
    HAPPY = "happy"
    CONCERNED = "concerned"
    NEUTRAL = "neutral"


class SpendingAnalysis(BaseModel):
    """The two-field result of the spending commentary."""

    message: str = Field(..., min_length=1)
    mood: Mood = Mood.NEUTRAL


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


class ViewMode(str, Enum):
    """Which container family the store's mutations currently target."""
    PERSONAL = "personal"
    GROUP = "group"
