from datetime import date, datetime, timezone

from recurrence import (
    EXPANSION_HORIZON,
    Frequency,
    add_months,
    add_years,
    coerce_date,
    expand,
    expand_checked,
    generation_date,
    parse_frequency,
)


def test_monthly_clamps_to_short_months():
    dates = expand(date(2025, 1, 31), "MONTHLY", date(2025, 4, 30))
    assert dates == [
        date(2025, 1, 31),
        date(2025, 2, 28),
        date(2025, 3, 31),
        date(2025, 4, 30),
    ]


def test_monthly_clamps_to_leap_february():
    dates = expand(date(2024, 1, 31), "MONTHLY", date(2024, 3, 31))
    assert dates == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)]


def test_biweekly_steps_fourteen_days():
    dates = expand(date(2025, 1, 1), "BIWEEKLY", date(2025, 2, 1))
    assert dates == [date(2025, 1, 1), date(2025, 1, 15), date(2025, 1, 29)]


def test_weekly_and_daily():
    assert expand(date(2025, 3, 1), "WEEKLY", date(2025, 3, 20)) == [
        date(2025, 3, 1),
        date(2025, 3, 8),
        date(2025, 3, 15),
    ]
    assert len(expand(date(2025, 2, 1), "DAILY", date(2025, 2, 28))) == 28


def test_yearly_recurs_on_anchor_day():
    dates = expand(date(2025, 6, 2), "YEARLY", date(2027, 1, 1))
    assert dates == [date(2025, 6, 2), date(2026, 6, 2)]


def test_yearly_leap_day_returns_in_leap_years():
    dates = expand(date(2024, 2, 29), Frequency.yearly, date(2028, 12, 31))
    assert dates == [
        date(2024, 2, 29),
        date(2025, 2, 28),
        date(2026, 2, 28),
        date(2027, 2, 28),
        date(2028, 2, 29),
    ]


def test_once_ignores_window():
    assert expand(date(2025, 5, 5), "ONCE", date(2025, 1, 1)) == [date(2025, 5, 5)]
    assert expand(date(2025, 5, 5), "ONE_TIME") == [date(2025, 5, 5)]


def test_twice_monthly_uses_half_month_partner():
    dates = expand(date(2025, 1, 10), "TWICE_MONTHLY", date(2025, 2, 28))
    assert dates == [
        date(2025, 1, 10),
        date(2025, 1, 25),
        date(2025, 2, 10),
        date(2025, 2, 25),
    ]


def test_twice_monthly_late_anchor_clamps_partner():
    dates = expand(date(2025, 1, 31), "TWICE_MONTHLY", date(2025, 2, 28))
    assert dates == [date(2025, 1, 31), date(2025, 2, 16), date(2025, 2, 28)]


def test_twice_monthly_never_emits_before_anchor():
    dates = expand(date(2025, 1, 20), "TWICE_MONTHLY", date(2025, 2, 28))
    assert dates == [date(2025, 1, 20), date(2025, 2, 5), date(2025, 2, 20)]


def test_expansion_stops_at_horizon():
    dates = expand(date(2030, 12, 30), "DAILY")
    assert dates == [date(2030, 12, 30), EXPANSION_HORIZON]

    capped = expand(
        date(2025, 1, 1), "MONTHLY", date(2026, 1, 1), horizon=date(2025, 3, 15)
    )
    assert capped[-1] == date(2025, 3, 1)


def test_window_end_before_anchor_is_empty_for_recurring():
    assert expand(date(2025, 5, 1), "MONTHLY", date(2025, 4, 1)) == []


def test_unknown_frequency_degrades_to_single_occurrence():
    expansion = expand_checked(date(2025, 4, 2), "FORTNIGHTLY", date(2025, 12, 31))
    assert expansion.dates == (date(2025, 4, 2),)
    assert not expansion.skipped
    assert "FORTNIGHTLY" in expansion.warning


def test_invalid_anchor_is_skipped_not_defaulted():
    missing = expand_checked(None, "MONTHLY")
    assert missing.skipped
    assert missing.dates == ()
    assert missing.skipped_reason == "missing anchor date"

    garbage = expand_checked("31/01/2025", "MONTHLY")
    assert garbage.skipped
    assert expand("2025-02-30", "MONTHLY") == []


def test_string_anchors_are_accepted():
    assert coerce_date("2025-03-01T12:00:00.000Z") == date(2025, 3, 1)
    assert coerce_date(datetime(2025, 3, 1, 23, 59)) == date(2025, 3, 1)
    assert coerce_date("2025-3-1") is None
    assert expand("2025-03-01", "monthly", date(2025, 4, 30)) == [
        date(2025, 3, 1),
        date(2025, 4, 1),
    ]


def test_parse_frequency_normalizes_codes():
    assert parse_frequency(" weekly ") is Frequency.weekly
    assert parse_frequency("ONE_TIME") is Frequency.once
    assert parse_frequency("") is None
    assert parse_frequency("QUARTERLY") is None


def test_month_and_year_arithmetic_clamp():
    assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
    assert add_months(date(2025, 11, 15), 3) == date(2026, 2, 15)
    assert add_months(date(2025, 3, 1), 1, desired_day=31) == date(2025, 4, 30)
    assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)


def test_generation_date_uses_configured_timezone():
    instant = datetime(2025, 3, 15, 5, 0, tzinfo=timezone.utc)
    assert generation_date(instant, "America/Los_Angeles") == date(2025, 3, 14)
    assert generation_date(instant, "UTC") == date(2025, 3, 15)
    assert generation_date(datetime(2025, 3, 15, 23, 0)) == date(2025, 3, 15)
    assert generation_date(date(2025, 3, 15)) == date(2025, 3, 15)
