from dataclasses import dataclass
from datetime import date
from typing import Optional

from recurrence import days_in_month


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def month_bounds(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, days_in_month(year, month))


def year_bounds(year: int) -> tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)


def month_period(year: int, month: int) -> Period:
    start, end = month_bounds(year, month)
    return Period("month", start, end)


def year_period(year: int) -> Period:
    start, end = year_bounds(year)
    return Period("year", start, end)


def parse_month(value: str) -> tuple[int, int]:
    try:
        year_text, month_text = value.strip().split("-", 1)
        year, month = int(year_text), int(month_text)
    except ValueError as exc:
        raise ValueError("Month must be formatted as YYYY-MM") from exc
    if not 1 <= year <= 9999:
        raise ValueError("Year must be between 0001 and 9999")
    if not 1 <= month <= 12:
        raise ValueError("Month must be between 01 and 12")
    return year, month


def report_interval(start: date, end: date) -> Period:
    """Monthly view when both ends fall in the same month, otherwise the range."""
    if start > end:
        raise ValueError("Start date must be before end date")
    if (start.year, start.month) == (end.year, end.month):
        return month_period(start.year, start.month)
    return Period("range", start, end)


def resolve_period(
    period: Optional[str],
    start: Optional[str] = None,
    end: Optional[str] = None,
    *,
    month: Optional[str] = None,
    year: Optional[str] = None,
    today: Optional[date] = None,
) -> Period:
    today = today or date.today()
    if period == "last_month":
        first_this = today.replace(day=1)
        last_month_end = first_this - date.resolution
        last = month_period(last_month_end.year, last_month_end.month)
        return Period("last_month", last.start, last.end)
    if period == "month":
        if not month:
            raise ValueError("Month period requires month=YYYY-MM")
        return month_period(*parse_month(month))
    if period == "year":
        try:
            year_value = int(year) if year else today.year
        except ValueError as exc:
            raise ValueError("Year must be a number") from exc
        if not 1 <= year_value <= 9999:
            raise ValueError("Year must be between 0001 and 9999")
        return year_period(year_value)
    if period == "custom":
        if not start or not end:
            raise ValueError("Custom period requires start and end dates")
        start_date = date.fromisoformat(start)
        end_date = date.fromisoformat(end)
        return report_interval(start_date, end_date)

    # this month
    this = month_period(today.year, today.month)
    return Period("this_month", this.start, this.end)
