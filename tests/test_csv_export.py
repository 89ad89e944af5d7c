import csv
from datetime import date
from io import StringIO

from aggregation import build_report
from csv_utils import export_report_csv, sanitize_csv_value
from periods import month_period
from records import ExpenseRecord, IncomeRecord


def test_sanitize_csv_value_blocks_formulas():
    assert sanitize_csv_value("=SUM(A1:A2)") == "\t=SUM(A1:A2)"
    assert sanitize_csv_value("@cmd") == "\t@cmd"
    assert sanitize_csv_value("  Rent  ") == "Rent"
    assert sanitize_csv_value("") == ""


def test_report_csv_lists_occurrences_and_summary():
    result = build_report(
        [ExpenseRecord(1, "=Rent", 375000, date(2025, 1, 1), "MONTHLY", 1)],
        [IncomeRecord(1, "Paycheck", 216800, date(2025, 1, 10), "BIWEEKLY")],
        month_period(2025, 3),
        date(2025, 3, 15),
    )

    rows = list(csv.reader(StringIO(export_report_csv(result, {1: "Housing"}))))

    assert rows[0][0] == "Date"
    assert rows[1] == [
        "2025-03-01",
        "expense",
        "\t=Rent",
        "Housing",
        "MONTHLY",
        "3750.00",
        "incurred",
    ]
    assert rows[2][:2] == ["2025-03-07", "income"]
    assert rows[3][0] == "2025-03-21"
    assert rows[3][-1] == "pending"
    summary = {row[0]: row[1:] for row in rows[5:]}
    assert summary["Expenses"] == ["3750.00", "0.00", "3750.00"]
    assert summary["Income"] == ["2168.00", "2168.00", "4336.00"]
    assert summary["Balance"] == ["-1582.00", "2168.00", "586.00"]


def test_report_csv_sanitizes_unknown_frequency():
    result = build_report(
        [ExpenseRecord(1, "Rent", 100, date(2025, 3, 2), "=HYPERLINK(1)", 1)],
        [],
        month_period(2025, 3),
        date(2025, 3, 15),
    )

    rows = list(csv.reader(StringIO(export_report_csv(result, {1: "Housing"}))))

    assert rows[1][:3] == ["2025-03-02", "expense", "Rent"]
    assert rows[1][4] == "\t=HYPERLINK(1)"
