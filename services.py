from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, joinedload

from aggregation import (
    DayBucket,
    DaySummary,
    FrequencyGroup,
    ReportResult,
    build_report,
    day_summary,
    group_by_frequency,
    occurrences_by_date,
)
from config import Settings, get_settings
from models import Category, Expense, Income
from money import format_currency, parse_amount
from periods import month_period, report_interval, year_period
from records import CategoryRecord, ExpenseRecord, IncomeRecord
from schemas import (
    CategoryIn,
    CategoryPatch,
    ExpenseIn,
    ExpensePatch,
    IncomeIn,
    IncomePatch,
    ReportFilter,
    ReportOptions,
)


logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    ("Rent", "#3B93F5", "home"),
    ("Groceries", "#4CAF50", "shopping-cart"),
    ("Loans", "#FF5722", "credit-card"),
    ("Car Insurance", "#9C27B0", "car"),
    ("House Cleaning", "#795548", "trash"),
    ("Credit Cards", "#F44336", "credit-card"),
    ("Entertainment", "#2196F3", "tv"),
    ("Internet", "#00BCD4", "wifi"),
    ("Phone", "#E91E63", "phone"),
    ("Utilities", "#FFC107", "zap"),
    ("Insurance", "#673AB7", "shield"),
    ("Other", "#607D8B", "more-horizontal"),
]


def category_record(category: Category) -> CategoryRecord:
    return CategoryRecord(
        id=category.id, name=category.name, color=category.color, icon=category.icon
    )


def expense_record(expense: Expense) -> ExpenseRecord:
    return ExpenseRecord(
        id=expense.id,
        name=expense.name,
        amount_cents=expense.amount_cents,
        anchor_date=expense.date,
        frequency=expense.frequency,
        category_id=expense.category_id,
    )


def income_record(income: Income) -> IncomeRecord:
    return IncomeRecord(
        id=income.id,
        name=income.name,
        amount_cents=income.amount_cents,
        anchor_date=income.date,
        frequency=income.frequency,
        source=income.source,
    )


class CategoryService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[Category]:
        stmt = select(Category).order_by(Category.name, Category.id)
        return self.session.scalars(stmt).all()

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category:
            raise ValueError("Category not found")
        return category

    def create(self, data: CategoryIn) -> Category:
        existing = self.session.scalar(
            select(Category).where(func.lower(Category.name) == data.name.lower())
        )
        if existing:
            raise ValueError("Category with this name already exists")
        category = Category(name=data.name.strip(), color=data.color, icon=data.icon)
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def update(self, category_id: int, data: CategoryPatch) -> Category:
        category = self.get(category_id)
        if data.name is not None:
            existing = self.session.scalar(
                select(Category).where(
                    func.lower(Category.name) == data.name.strip().lower(),
                    Category.id != category_id,
                )
            )
            if existing:
                raise ValueError("Category with this name already exists")
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None:
                continue
            setattr(category, field, value.strip() if field == "name" else value)
        self.session.commit()
        self.session.refresh(category)
        return category

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        in_use = self.session.scalar(
            select(func.count(Expense.id)).where(Expense.category_id == category_id)
        )
        if in_use:
            raise ValueError("Category is used by existing expenses")
        self.session.delete(category)
        self.session.commit()

    def seed_defaults(self) -> int:
        count = self.session.scalar(select(func.count(Category.id))) or 0
        if count:
            return 0
        for name, color, icon in DEFAULT_CATEGORIES:
            self.session.add(Category(name=name, color=color, icon=icon))
        self.session.commit()
        logger.info(f"categories_seeded: count={len(DEFAULT_CATEGORIES)}")
        return len(DEFAULT_CATEGORIES)


class ExpenseService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[Expense]:
        stmt = (
            select(Expense)
            .options(joinedload(Expense.category))
            .order_by(Expense.date, Expense.id)
        )
        return self.session.scalars(stmt).all()

    def get(self, expense_id: int) -> Expense:
        expense = self.session.get(Expense, expense_id)
        if not expense:
            raise ValueError("Expense not found")
        return expense

    def _require_category(self, category_id: int) -> None:
        if not self.session.get(Category, category_id):
            raise ValueError("Category not found")

    def create(self, data: ExpenseIn) -> Expense:
        self._require_category(data.category_id)
        expense = Expense(
            name=data.name.strip(),
            amount_cents=parse_amount(data.amount),
            date=data.date,
            frequency=data.frequency.value,
            category_id=data.category_id,
        )
        self.session.add(expense)
        self.session.commit()
        self.session.refresh(expense)
        return expense

    def update(self, expense_id: int, data: ExpensePatch) -> Expense:
        expense = self.get(expense_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("category_id") is not None:
            self._require_category(changes["category_id"])
        for field, value in changes.items():
            if value is None:
                continue
            if field == "amount":
                expense.amount_cents = parse_amount(value)
            elif field == "frequency":
                expense.frequency = value.value
            elif field == "name":
                expense.name = value.strip()
            else:
                setattr(expense, field, value)
        self.session.commit()
        self.session.refresh(expense)
        return expense

    def delete(self, expense_id: int) -> None:
        expense = self.get(expense_id)
        self.session.delete(expense)
        self.session.commit()


class IncomeService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[Income]:
        stmt = select(Income).order_by(Income.date, Income.id)
        return self.session.scalars(stmt).all()

    def get(self, income_id: int) -> Income:
        income = self.session.get(Income, income_id)
        if not income:
            raise ValueError("Income not found")
        return income

    def create(self, data: IncomeIn) -> Income:
        income = Income(
            name=data.name.strip(),
            amount_cents=parse_amount(data.amount),
            date=data.date,
            frequency=data.frequency.value,
            source=data.source,
        )
        self.session.add(income)
        self.session.commit()
        self.session.refresh(income)
        return income

    def update(self, income_id: int, data: IncomePatch) -> Income:
        income = self.get(income_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if field == "source":
                income.source = value
            elif value is None:
                continue
            elif field == "amount":
                income.amount_cents = parse_amount(value)
            elif field == "frequency":
                income.frequency = value.value
            elif field == "name":
                income.name = value.strip()
            else:
                setattr(income, field, value)
        self.session.commit()
        self.session.refresh(income)
        return income

    def delete(self, income_id: int) -> None:
        income = self.get(income_id)
        self.session.delete(income)
        self.session.commit()


def purge_tables(session: Session) -> None:
    session.execute(delete(Expense))
    session.execute(delete(Income))
    session.execute(delete(Category))


def clear_all_data(session: Session) -> None:
    purge_tables(session)
    session.commit()
    logger.info("data_cleared: tables=expenses,incomes,categories")


@dataclass(frozen=True)
class AnnualReport:
    year: int
    report: ReportResult
    expense_frequencies: tuple[FrequencyGroup, ...]


class ReportService:
    def __init__(self, session: Session, settings: Optional[Settings] = None) -> None:
        self.session = session
        self.settings = settings or get_settings()

    def now(self) -> datetime:
        return datetime.now(ZoneInfo(self.settings.timezone))

    def _categories(self) -> list[CategoryRecord]:
        return [category_record(c) for c in CategoryService(self.session).list_all()]

    def _expenses(self) -> list[ExpenseRecord]:
        return [expense_record(e) for e in ExpenseService(self.session).list_all()]

    def _incomes(self) -> list[IncomeRecord]:
        return [income_record(i) for i in IncomeService(self.session).list_all()]

    def _select_expenses(self, options: ReportOptions) -> list[ExpenseRecord]:
        expenses = self._expenses()
        if options.filter_type == ReportFilter.single_expense:
            expenses = [e for e in expenses if e.id == options.expense_id]
            if not expenses:
                raise ValueError("Expense not found")
        elif options.filter_type == ReportFilter.single_category:
            CategoryService(self.session).get(options.category_id)
            expenses = [e for e in expenses if e.category_id == options.category_id]
        return expenses

    def report(
        self, options: ReportOptions, generated_at: Optional[datetime] = None
    ) -> ReportResult:
        started = datetime.now()
        generated_at = generated_at or self.now()
        interval = report_interval(options.start, options.end)
        expenses = self._select_expenses(options) if options.include_expenses else []
        incomes = self._incomes() if options.include_incomes else []
        result = build_report(
            expenses,
            incomes,
            interval,
            generated_at,
            categories=self._categories(),
            group_categories=options.filter_type == ReportFilter.all_categories,
            tz=self.settings.timezone,
            horizon=self.settings.expansion_horizon,
        )
        duration = (datetime.now() - started).total_seconds()
        logger.info(
            f"report_generated: start={interval.start} end={interval.end} "
            f"filter={options.filter_type.value} "
            f"expenses={len(result.expenses.records)} "
            f"incomes={len(result.incomes.records)} "
            f"balance={format_currency(result.balance.total_cents)} "
            f"skipped={len(result.expenses.skipped) + len(result.incomes.skipped)} "
            f"duration={duration:.3f}s"
        )
        return result

    def annual(
        self, year: int, generated_at: Optional[datetime] = None
    ) -> AnnualReport:
        generated_at = generated_at or self.now()
        result = build_report(
            self._expenses(),
            self._incomes(),
            year_period(year),
            generated_at,
            categories=self._categories(),
            group_categories=True,
            tz=self.settings.timezone,
            horizon=self.settings.expansion_horizon,
        )
        return AnnualReport(
            year=year,
            report=result,
            expense_frequencies=group_by_frequency(result.expenses.records),
        )

    def calendar_month(self, year: int, month: int) -> dict[date, DayBucket]:
        return occurrences_by_date(
            self._expenses(),
            self._incomes(),
            month_period(year, month),
            horizon=self.settings.expansion_horizon,
        )

    def day(self, day: date, generated_at: Optional[datetime] = None) -> DaySummary:
        return day_summary(
            self._expenses(),
            self._incomes(),
            day,
            generated_at or self.now(),
            tz=self.settings.timezone,
            horizon=self.settings.expansion_horizon,
        )
