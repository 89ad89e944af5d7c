from dataclasses import dataclass
from typing import ClassVar, Optional, Protocol

from recurrence import DateLike


class Recurring(Protocol):
    id: object
    name: str
    amount_cents: int
    anchor_date: DateLike
    frequency: Optional[str]


@dataclass(frozen=True)
class ExpenseRecord:
    kind: ClassVar[str] = "expense"

    id: object
    name: str
    amount_cents: int
    anchor_date: DateLike
    frequency: Optional[str]
    category_id: object


@dataclass(frozen=True)
class IncomeRecord:
    kind: ClassVar[str] = "income"

    id: object
    name: str
    amount_cents: int
    anchor_date: DateLike
    frequency: Optional[str]
    source: Optional[str] = None


@dataclass(frozen=True)
class CategoryRecord:
    id: object
    name: str
    color: Optional[str] = None
    icon: Optional[str] = None


UNCATEGORIZED = CategoryRecord(
    id=None, name="Uncategorized", color="#607D8B", icon="more-horizontal"
)
