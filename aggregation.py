"""Period aggregation over expanded recurring records.

Every function here is pure: records in, frozen dataclasses out. Amounts are
summed in integer cents; conversion to display strings happens in the
callers (see ``money.py``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence, Union

from periods import Period, month_period
from records import (
    UNCATEGORIZED,
    CategoryRecord,
    ExpenseRecord,
    IncomeRecord,
    Recurring,
)
from recurrence import (
    EXPANSION_HORIZON,
    Frequency,
    expand_checked,
    generation_date,
    parse_frequency,
)


Instant = Union[date, datetime]


@dataclass(frozen=True)
class Occurrence:
    date: date
    amount_cents: int
    is_pending: bool


@dataclass(frozen=True)
class Totals:
    incurred_cents: int = 0
    pending_cents: int = 0

    @property
    def total_cents(self) -> int:
        return self.incurred_cents + self.pending_cents

    def __add__(self, other: "Totals") -> "Totals":
        return Totals(
            self.incurred_cents + other.incurred_cents,
            self.pending_cents + other.pending_cents,
        )

    def __sub__(self, other: "Totals") -> "Totals":
        return Totals(
            self.incurred_cents - other.incurred_cents,
            self.pending_cents - other.pending_cents,
        )


def sum_totals(items: Iterable[Totals]) -> Totals:
    result = Totals()
    for item in items:
        result = result + item
    return result


@dataclass(frozen=True)
class ProcessedRecord:
    record: Recurring
    occurrences: tuple[Occurrence, ...]
    totals: Totals

    @property
    def incurred_cents(self) -> int:
        return self.totals.incurred_cents

    @property
    def pending_cents(self) -> int:
        return self.totals.pending_cents

    @property
    def total_cents(self) -> int:
        return self.totals.total_cents


@dataclass(frozen=True)
class Diagnostic:
    record_id: object
    name: Optional[str]
    message: str
    skipped: bool


@dataclass(frozen=True)
class Aggregation:
    records: tuple[ProcessedRecord, ...] = ()
    totals: Totals = field(default_factory=Totals)
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def skipped(self) -> tuple[Diagnostic, ...]:
        return tuple(d for d in self.diagnostics if d.skipped)


@dataclass(frozen=True)
class CategoryGroup:
    category: CategoryRecord
    records: tuple[ProcessedRecord, ...]
    totals: Totals


@dataclass(frozen=True)
class FrequencyGroup:
    frequency: str
    records: tuple[ProcessedRecord, ...]
    totals: Totals


@dataclass(frozen=True)
class ReportResult:
    interval: Period
    generated_on: date
    expenses: Aggregation
    incomes: Aggregation
    categories: tuple[CategoryGroup, ...] = ()

    @property
    def balance(self) -> Totals:
        return self.incomes.totals - self.expenses.totals


def is_pending(occurrence_date: date, generated_on: date) -> bool:
    # Same-day occurrences stay pending until the day has passed.
    return not occurrence_date < generated_on


def _process(
    record: Recurring,
    interval: Period,
    generated_on: date,
    horizon: date,
    diagnostics: list[Diagnostic],
) -> Optional[ProcessedRecord]:
    name = getattr(record, "name", None)
    amount = record.amount_cents
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        diagnostics.append(
            Diagnostic(record.id, name, f"invalid amount {amount!r}", skipped=True)
        )
        return None

    expansion = expand_checked(
        record.anchor_date, record.frequency, interval.end, horizon=horizon
    )
    if expansion.skipped:
        diagnostics.append(
            Diagnostic(record.id, name, expansion.skipped_reason, skipped=True)
        )
        return None
    if expansion.warning:
        diagnostics.append(
            Diagnostic(record.id, name, expansion.warning, skipped=False)
        )

    occurrences = tuple(
        Occurrence(d, amount, is_pending(d, generated_on))
        for d in expansion.dates
        if interval.start <= d <= interval.end
    )
    if not occurrences:
        return None

    incurred = sum(o.amount_cents for o in occurrences if not o.is_pending)
    pending = sum(o.amount_cents for o in occurrences if o.is_pending)
    return ProcessedRecord(record, occurrences, Totals(incurred, pending))


def aggregate(
    records: Sequence[Recurring],
    interval: Period,
    generated_at: Instant,
    *,
    tz: Optional[str] = None,
    horizon: date = EXPANSION_HORIZON,
) -> Aggregation:
    if records is None:
        raise TypeError("records must be a sequence, not None")

    generated_on = generation_date(generated_at, tz)
    diagnostics: list[Diagnostic] = []
    processed: list[ProcessedRecord] = []
    for record in records:
        item = _process(record, interval, generated_on, horizon, diagnostics)
        if item is not None:
            processed.append(item)

    return Aggregation(
        records=tuple(processed),
        totals=sum_totals(p.totals for p in processed),
        diagnostics=tuple(diagnostics),
    )


def group_by_category(
    processed: Iterable[ProcessedRecord],
    categories: Iterable[CategoryRecord],
) -> tuple[CategoryGroup, ...]:
    by_id = {category.id: category for category in categories}
    buckets: dict[object, list[ProcessedRecord]] = {}
    for item in processed:
        category_id = getattr(item.record, "category_id", None)
        key = category_id if category_id in by_id else None
        buckets.setdefault(key, []).append(item)

    groups = [
        CategoryGroup(
            category=by_id.get(key, UNCATEGORIZED),
            records=tuple(items),
            totals=sum_totals(i.totals for i in items),
        )
        for key, items in buckets.items()
    ]
    groups.sort(
        key=lambda g: (
            -g.totals.total_cents,
            g.category.name.lower(),
            str(g.category.id),
        )
    )
    return tuple(groups)


def group_by_frequency(
    processed: Iterable[ProcessedRecord],
) -> tuple[FrequencyGroup, ...]:
    buckets: dict[Frequency, list[ProcessedRecord]] = {}
    for item in processed:
        frequency = parse_frequency(item.record.frequency) or Frequency.once
        buckets.setdefault(frequency, []).append(item)
    return tuple(
        FrequencyGroup(
            frequency=frequency.value,
            records=tuple(buckets[frequency]),
            totals=sum_totals(i.totals for i in buckets[frequency]),
        )
        for frequency in Frequency
        if frequency in buckets
    )


def build_report(
    expenses: Sequence[ExpenseRecord],
    incomes: Sequence[IncomeRecord],
    interval: Period,
    generated_at: Instant,
    *,
    categories: Iterable[CategoryRecord] = (),
    group_categories: bool = False,
    tz: Optional[str] = None,
    horizon: date = EXPANSION_HORIZON,
) -> ReportResult:
    expense_agg = aggregate(expenses, interval, generated_at, tz=tz, horizon=horizon)
    income_agg = aggregate(incomes, interval, generated_at, tz=tz, horizon=horizon)
    groups: tuple[CategoryGroup, ...] = ()
    if group_categories:
        groups = group_by_category(expense_agg.records, categories)
    return ReportResult(
        interval=interval,
        generated_on=generation_date(generated_at, tz),
        expenses=expense_agg,
        incomes=income_agg,
        categories=groups,
    )


@dataclass(frozen=True)
class DayBucket:
    expenses: tuple[ExpenseRecord, ...] = ()
    incomes: tuple[IncomeRecord, ...] = ()

    @property
    def expense_cents(self) -> int:
        return sum(r.amount_cents for r in self.expenses)

    @property
    def income_cents(self) -> int:
        return sum(r.amount_cents for r in self.incomes)

    @property
    def net_cents(self) -> int:
        return self.income_cents - self.expense_cents

    @property
    def is_empty(self) -> bool:
        return not self.expenses and not self.incomes


def occurrences_by_date(
    expenses: Sequence[ExpenseRecord],
    incomes: Sequence[IncomeRecord],
    interval: Period,
    *,
    horizon: date = EXPANSION_HORIZON,
) -> dict[date, DayBucket]:
    """One bucket per day of ``interval``, listing the records occurring on it."""
    days: dict[date, tuple[list, list]] = {}
    cursor = interval.start
    while cursor <= interval.end:
        days[cursor] = ([], [])
        cursor += timedelta(days=1)

    for slot, records in ((0, expenses), (1, incomes)):
        for record in records:
            amount = record.amount_cents
            if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
                continue
            expansion = expand_checked(
                record.anchor_date, record.frequency, interval.end, horizon=horizon
            )
            for d in expansion.dates:
                if d in days:
                    days[d][slot].append(record)

    return {
        d: DayBucket(expenses=tuple(exp), incomes=tuple(inc))
        for d, (exp, inc) in days.items()
    }


@dataclass(frozen=True)
class DaySummary:
    day: date
    bucket: DayBucket
    expenses: Totals
    incomes: Totals
    upcoming: tuple[tuple[date, DayBucket], ...]

    @property
    def balance(self) -> Totals:
        return self.incomes - self.expenses


def day_summary(
    expenses: Sequence[ExpenseRecord],
    incomes: Sequence[IncomeRecord],
    day: date,
    generated_at: Instant,
    *,
    tz: Optional[str] = None,
    horizon: date = EXPANSION_HORIZON,
) -> DaySummary:
    interval = month_period(day.year, day.month)
    buckets = occurrences_by_date(expenses, incomes, interval, horizon=horizon)
    expense_agg = aggregate(expenses, interval, generated_at, tz=tz, horizon=horizon)
    income_agg = aggregate(incomes, interval, generated_at, tz=tz, horizon=horizon)
    upcoming = tuple(
        (d, bucket) for d, bucket in buckets.items() if d > day and not bucket.is_empty
    )
    return DaySummary(
        day=day,
        bucket=buckets[day],
        expenses=expense_agg.totals,
        incomes=income_agg.totals,
        upcoming=upcoming,
    )
