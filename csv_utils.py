import csv
import re
from io import StringIO

from aggregation import ProcessedRecord, ReportResult
from money import cents_to_amount


def sanitize_csv_value(value: str) -> str:
    """Prefix values a spreadsheet would evaluate as formulas with a tab."""
    if not value or value.strip() == "":
        return ""

    value = value.strip()

    if value.startswith(("=", "+", "-", "@", "\t", "\r")):
        return "\t" + value

    for pattern in (r"^cmd\s*", r"^powershell\s*", r"^http[s]?://"):
        if re.match(pattern, value, re.IGNORECASE):
            return "\t" + value

    return value


def _record_rows(kind: str, items: tuple[ProcessedRecord, ...], category_names):
    for item in items:
        record = item.record
        if kind == "expense":
            label = category_names.get(record.category_id, "Uncategorized")
        else:
            label = record.source or ""
        for occurrence in item.occurrences:
            yield [
                occurrence.date.isoformat(),
                kind,
                sanitize_csv_value(record.name),
                sanitize_csv_value(label),
                sanitize_csv_value(record.frequency or ""),
                cents_to_amount(occurrence.amount_cents),
                "pending" if occurrence.is_pending else "incurred",
            ]


def export_report_csv(result: ReportResult, category_names: dict) -> str:
    """One row per occurrence, followed by the incurred/pending/total summary."""
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(
        ["Date", "Type", "Name", "Category/Source", "Frequency", "Amount", "Status"]
    )
    rows = list(_record_rows("expense", result.expenses.records, category_names))
    rows.extend(_record_rows("income", result.incomes.records, {}))
    rows.sort(key=lambda row: (row[0], row[1]))
    writer.writerows(rows)

    writer.writerow([])
    writer.writerow(["Summary", "Incurred", "Pending", "Total"])
    for label, totals in (
        ("Expenses", result.expenses.totals),
        ("Income", result.incomes.totals),
        ("Balance", result.balance),
    ):
        writer.writerow(
            [
                label,
                cents_to_amount(totals.incurred_cents),
                cents_to_amount(totals.pending_cents),
                cents_to_amount(totals.total_cents),
            ]
        )
    return output.getvalue()
