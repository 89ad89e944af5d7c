from datetime import date

import pytest

from periods import (
    month_bounds,
    parse_month,
    report_interval,
    resolve_period,
    year_bounds,
)


def test_month_and_year_bounds():
    assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_bounds(2025, 12) == (date(2025, 12, 1), date(2025, 12, 31))
    assert year_bounds(2025) == (date(2025, 1, 1), date(2025, 12, 31))


def test_same_month_range_snaps_to_whole_month():
    interval = report_interval(date(2025, 3, 10), date(2025, 3, 20))
    assert interval.slug == "month"
    assert (interval.start, interval.end) == (date(2025, 3, 1), date(2025, 3, 31))


def test_cross_month_range_is_kept():
    interval = report_interval(date(2025, 1, 15), date(2025, 3, 10))
    assert interval.slug == "range"
    assert (interval.start, interval.end) == (date(2025, 1, 15), date(2025, 3, 10))
    assert interval.contains(date(2025, 2, 1))
    assert not interval.contains(date(2025, 3, 11))


def test_inverted_range_is_rejected():
    with pytest.raises(ValueError):
        report_interval(date(2025, 3, 10), date(2025, 3, 1))


def test_resolve_period_slugs():
    today = date(2025, 3, 15)
    assert resolve_period(None, today=today).start == date(2025, 3, 1)
    last = resolve_period("last_month", today=today)
    assert (last.start, last.end) == (date(2025, 2, 1), date(2025, 2, 28))
    january = resolve_period("last_month", today=date(2025, 1, 5))
    assert january.start == date(2024, 12, 1)
    assert resolve_period("year", year="2024", today=today).end == date(2024, 12, 31)
    with pytest.raises(ValueError, match="Year must be between"):
        resolve_period("year", year="0", today=today)
    assert resolve_period("month", month="2025-07").end == date(2025, 7, 31)
    custom = resolve_period("custom", "2025-01-01", "2025-02-15", today=today)
    assert custom.slug == "range"


def test_parse_month_rejects_garbage():
    assert parse_month("2025-03") == (2025, 3)
    with pytest.raises(ValueError):
        parse_month("March")
    with pytest.raises(ValueError):
        parse_month("2025-13")
    with pytest.raises(ValueError, match="Year must be between"):
        parse_month("0000-01")
