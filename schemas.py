import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    model_validator,
)

from recurrence import Frequency, coerce_date, parse_frequency

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"
BACKUP_VERSION = "1.0"


def _known_frequency(value: object) -> Frequency:
    frequency = parse_frequency(value)
    if frequency is None:
        raise ValueError(f"Unknown frequency: {value!r}")
    return frequency


FrequencyCode = Annotated[Frequency, BeforeValidator(_known_frequency)]


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(..., pattern=HEX_COLOR)
    icon: str = Field(..., min_length=1, max_length=50)


class CategoryPatch(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    icon: Optional[str] = Field(default=None, min_length=1, max_length=50)


class ExpenseIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    date: dt.date
    frequency: FrequencyCode
    category_id: int


class ExpensePatch(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount: Optional[Decimal] = Field(
        default=None, ge=0, max_digits=12, decimal_places=2
    )
    date: Optional[dt.date] = None
    frequency: Optional[FrequencyCode] = None
    category_id: Optional[int] = None


class IncomeIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    date: dt.date
    frequency: FrequencyCode
    source: Optional[str] = Field(default=None, max_length=50)


class IncomePatch(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount: Optional[Decimal] = Field(
        default=None, ge=0, max_digits=12, decimal_places=2
    )
    date: Optional[dt.date] = None
    frequency: Optional[FrequencyCode] = None
    source: Optional[str] = Field(default=None, max_length=50)


class ReportFilter(str, Enum):
    all_expenses = "all-expenses"
    all_incomes = "all-incomes"
    all_categories = "all-categories"
    single_expense = "single-expense"
    single_category = "single-category"


class ReportOptions(BaseModel):
    start: dt.date
    end: dt.date
    filter_type: ReportFilter = ReportFilter.all_expenses
    expense_id: Optional[int] = None
    category_id: Optional[int] = None
    monthly_budget: bool = False

    @model_validator(mode="after")
    def _check(self) -> "ReportOptions":
        if self.start > self.end:
            raise ValueError("Start date must be before end date")
        if self.filter_type == ReportFilter.single_expense and self.expense_id is None:
            raise ValueError("single-expense reports require expense_id")
        if (
            self.filter_type == ReportFilter.single_category
            and self.category_id is None
        ):
            raise ValueError("single-category reports require category_id")
        return self

    @property
    def include_incomes(self) -> bool:
        return self.monthly_budget or self.filter_type == ReportFilter.all_incomes

    @property
    def include_expenses(self) -> bool:
        return self.monthly_budget or self.filter_type != ReportFilter.all_incomes


def _backup_date(value: object) -> dt.date:
    parsed = coerce_date(value)
    if parsed is None:
        raise ValueError(f"Invalid date: {value!r}")
    return parsed


def _backup_frequency(value: object) -> str:
    frequency = parse_frequency(value)
    if frequency is not None:
        return frequency.value
    text = str(value or "").strip().upper()
    if not text:
        raise ValueError("Frequency is required")
    return text


BackupDate = Annotated[dt.date, BeforeValidator(_backup_date)]
BackupFrequency = Annotated[
    str, BeforeValidator(_backup_frequency), Field(max_length=20)
]


class BackupCategory(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(..., pattern=HEX_COLOR)
    icon: str = Field(..., min_length=1, max_length=50)


class BackupExpense(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    date: BackupDate
    frequency: BackupFrequency
    category_id: int = Field(
        ..., validation_alias=AliasChoices("category_id", "categoryId")
    )


class BackupIncome(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    date: BackupDate
    frequency: BackupFrequency
    source: Optional[str] = Field(default=None, max_length=50)


def _reject_duplicates(kind: str, ids: list[Optional[int]]) -> None:
    seen: set[int] = set()
    for item_id in ids:
        if item_id is None:
            continue
        if item_id in seen:
            raise ValueError(f"duplicate {kind} id {item_id}")
        seen.add(item_id)


class BackupIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: str = Field(..., min_length=1)
    timestamp: str = Field(..., min_length=1)
    categories: list[BackupCategory]
    expenses: list[BackupExpense]
    incomes: list[BackupIncome]

    @model_validator(mode="after")
    def _check_references(self) -> "BackupIn":
        _reject_duplicates("category", [c.id for c in self.categories])
        _reject_duplicates("expense", [e.id for e in self.expenses])
        _reject_duplicates("income", [i.id for i in self.incomes])
        category_ids = {c.id for c in self.categories}
        for expense in self.expenses:
            if expense.category_id not in category_ids:
                raise ValueError(
                    f"Expense {expense.name!r} references unknown category "
                    f"{expense.category_id}"
                )
        return self
