import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings


logger = logging.getLogger(__name__)

# Upper bound for every expansion, whatever window end the caller asks for.
EXPANSION_HORIZON = date(2030, 12, 31)


class Frequency(str, Enum):
    once = "ONCE"
    daily = "DAILY"
    weekly = "WEEKLY"
    biweekly = "BIWEEKLY"
    twice_monthly = "TWICE_MONTHLY"
    monthly = "MONTHLY"
    yearly = "YEARLY"


FREQUENCY_ALIASES = {"ONE_TIME": Frequency.once}

DAY_STEPS = {
    Frequency.daily: 1,
    Frequency.weekly: 7,
    Frequency.biweekly: 14,
}

DateLike = Union[date, datetime, str, None]


@dataclass(frozen=True)
class Expansion:
    """Occurrence dates for one record, or the reason it was skipped."""

    dates: tuple[date, ...]
    skipped_reason: Optional[str] = None
    warning: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def generation_date(instant: Union[date, datetime], tz: Optional[str] = None) -> date:
    """Calendar day an occurrence is compared against.

    Aware datetimes are moved into ``tz`` (the configured timezone when
    omitted); naive datetimes are taken at face value.
    """
    if isinstance(instant, datetime):
        if instant.tzinfo is not None:
            zone = ZoneInfo(tz or get_settings().timezone)
            return instant.astimezone(zone).date()
        return instant.date()
    return instant


def coerce_date(value: DateLike) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) < 10:
            return None
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def parse_frequency(value: object) -> Optional[Frequency]:
    if isinstance(value, Frequency):
        return value
    if value is None:
        return None
    key = str(value).strip().upper()
    if not key:
        return None
    if key in FREQUENCY_ALIASES:
        return FREQUENCY_ALIASES[key]
    try:
        return Frequency(key)
    except ValueError:
        return None


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def add_months(base: date, months: int, *, desired_day: Optional[int] = None) -> date:
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1
    day = desired_day if desired_day is not None else base.day
    return date(year, month, min(day, days_in_month(year, month)))


def add_years(base: date, years: int) -> date:
    year = base.year + years
    return date(year, base.month, min(base.day, days_in_month(year, base.month)))


def _half_month_partner(day: int) -> int:
    return day + 15 if day <= 15 else day - 15


def _expand_days(anchor: date, step: int, end: date) -> list[date]:
    dates = []
    cursor = anchor
    while cursor <= end:
        dates.append(cursor)
        cursor += timedelta(days=step)
    return dates


def _expand_monthly(anchor: date, end: date, days: tuple[int, ...]) -> list[date]:
    dates = []
    month_start = anchor.replace(day=1)
    while month_start <= end:
        dim = days_in_month(month_start.year, month_start.month)
        candidates = sorted({month_start.replace(day=min(d, dim)) for d in days})
        for candidate in candidates:
            if anchor <= candidate <= end:
                dates.append(candidate)
        month_start = add_months(month_start, 1, desired_day=1)
    return dates


def _expand_yearly(anchor: date, end: date) -> list[date]:
    dates = []
    years = 0
    candidate = anchor
    while candidate <= end:
        dates.append(candidate)
        years += 1
        candidate = add_years(anchor, years)
    return dates


def expand_checked(
    anchor_date: DateLike,
    frequency: object,
    window_end: Optional[date] = None,
    *,
    horizon: date = EXPANSION_HORIZON,
) -> Expansion:
    anchor = coerce_date(anchor_date)
    if anchor is None:
        reason = (
            "missing anchor date"
            if anchor_date in (None, "")
            else f"invalid anchor date {anchor_date!r}"
        )
        logger.warning(f"recurrence_skipped: anchor={anchor_date!r} reason={reason}")
        return Expansion(dates=(), skipped_reason=reason)

    warning = None
    freq = parse_frequency(frequency)
    if freq is None:
        warning = f"unknown frequency {frequency!r}, treated as ONCE"
        logger.warning(
            f"recurrence_unknown_frequency: anchor={anchor.isoformat()} "
            f"frequency={frequency!r}"
        )
        freq = Frequency.once

    end = min(window_end or horizon, horizon)

    if freq == Frequency.once:
        dates = [anchor]
    elif freq in DAY_STEPS:
        dates = _expand_days(anchor, DAY_STEPS[freq], end)
    elif freq == Frequency.monthly:
        dates = _expand_monthly(anchor, end, (anchor.day,))
    elif freq == Frequency.twice_monthly:
        dates = _expand_monthly(
            anchor, end, (anchor.day, _half_month_partner(anchor.day))
        )
    else:
        dates = _expand_yearly(anchor, end)

    return Expansion(dates=tuple(dates), warning=warning)


def expand(
    anchor_date: DateLike,
    frequency: object,
    window_end: Optional[date] = None,
    *,
    horizon: date = EXPANSION_HORIZON,
) -> list[date]:
    expansion = expand_checked(anchor_date, frequency, window_end, horizon=horizon)
    return list(expansion.dates)
