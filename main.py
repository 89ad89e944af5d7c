import logging
from datetime import date, datetime
from typing import Optional

from fastapi import (
    Body,
    Depends,
    FastAPI,
    Header,
    HTTPException,
    Query,
    Request,
    Response,
)
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session

from aggregation import (
    Aggregation,
    CategoryGroup,
    DayBucket,
    Diagnostic,
    FrequencyGroup,
    ProcessedRecord,
    ReportResult,
    Totals,
)
from backup import BackupService, backup_filename
from config import get_settings
from csrf import generate_csrf_token, validate_csrf_token
from csv_utils import export_report_csv
from database import SessionLocal, init_db
from models import Category, Expense, Income
from money import cents_to_amount
from periods import parse_month, resolve_period
from recurrence import local_today
from scheduler import SchedulerManager
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
from services import (
    CategoryService,
    ExpenseService,
    IncomeService,
    ReportService,
    clear_all_data,
)


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"

app = FastAPI(title="Budget Planner", version=APP_VERSION)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    init_db()
    with SessionLocal() as session:
        CategoryService(session).seed_defaults()
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def http_error(exc: ValueError) -> HTTPException:
    status = 404 if "not found" in str(exc).lower() else 400
    return HTTPException(status_code=status, detail=str(exc))


def require_csrf(token: str) -> None:
    if not validate_csrf_token(token):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")


def category_to_dict(category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "color": category.color,
        "icon": category.icon,
    }


def expense_to_dict(expense: Expense) -> dict:
    return {
        "id": expense.id,
        "name": expense.name,
        "amount": cents_to_amount(expense.amount_cents),
        "date": expense.date.isoformat(),
        "frequency": expense.frequency,
        "category_id": expense.category_id,
    }


def income_to_dict(income: Income) -> dict:
    return {
        "id": income.id,
        "name": income.name,
        "amount": cents_to_amount(income.amount_cents),
        "date": income.date.isoformat(),
        "frequency": income.frequency,
        "source": income.source,
    }


def totals_to_dict(totals: Totals) -> dict:
    return {
        "incurred": cents_to_amount(totals.incurred_cents),
        "pending": cents_to_amount(totals.pending_cents),
        "total": cents_to_amount(totals.total_cents),
    }


def processed_to_dict(item: ProcessedRecord) -> dict:
    record = item.record
    data = {
        "id": record.id,
        "name": record.name,
        "amount": cents_to_amount(record.amount_cents),
        "frequency": record.frequency,
        "occurrences": [
            {
                "date": o.date.isoformat(),
                "amount": cents_to_amount(o.amount_cents),
                "is_pending": o.is_pending,
            }
            for o in item.occurrences
        ],
        **totals_to_dict(item.totals),
    }
    if record.kind == "expense":
        data["category_id"] = record.category_id
    else:
        data["source"] = record.source
    return data


def diagnostic_to_dict(diagnostic: Diagnostic) -> dict:
    return {
        "id": diagnostic.record_id,
        "name": diagnostic.name,
        "message": diagnostic.message,
        "skipped": diagnostic.skipped,
    }


def aggregation_to_dict(aggregation: Aggregation) -> dict:
    return {
        "records": [processed_to_dict(p) for p in aggregation.records],
        "totals": totals_to_dict(aggregation.totals),
        "diagnostics": [diagnostic_to_dict(d) for d in aggregation.diagnostics],
    }


def category_group_to_dict(group: CategoryGroup) -> dict:
    return {
        "category": {
            "id": group.category.id,
            "name": group.category.name,
            "color": group.category.color,
            "icon": group.category.icon,
        },
        "expenses": [processed_to_dict(p) for p in group.records],
        "totals": totals_to_dict(group.totals),
    }


def frequency_group_to_dict(group: FrequencyGroup) -> dict:
    return {
        "frequency": group.frequency,
        "records": [processed_to_dict(p) for p in group.records],
        "totals": totals_to_dict(group.totals),
    }


def report_to_dict(result: ReportResult) -> dict:
    return {
        "interval": {
            "kind": result.interval.slug,
            "start": result.interval.start.isoformat(),
            "end": result.interval.end.isoformat(),
        },
        "generated_on": result.generated_on.isoformat(),
        "expenses": aggregation_to_dict(result.expenses),
        "incomes": aggregation_to_dict(result.incomes),
        "categories": [category_group_to_dict(g) for g in result.categories],
        "balance": totals_to_dict(result.balance),
    }


def bucket_to_dict(day: date, bucket: DayBucket) -> dict:
    return {
        "date": day.isoformat(),
        "expenses": [
            {"id": r.id, "name": r.name, "amount": cents_to_amount(r.amount_cents)}
            for r in bucket.expenses
        ],
        "incomes": [
            {"id": r.id, "name": r.name, "amount": cents_to_amount(r.amount_cents)}
            for r in bucket.incomes
        ],
        "expense_total": cents_to_amount(bucket.expense_cents),
        "income_total": cents_to_amount(bucket.income_cents),
        "net": cents_to_amount(bucket.net_cents),
    }


def report_options_from_request(request: Request) -> ReportOptions:
    params = request.query_params
    start = params.get("start")
    end = params.get("end")
    try:
        if not start or not end:
            period = resolve_period(
                params.get("period"),
                month=params.get("month"),
                year=params.get("year"),
                today=local_today(),
            )
            start, end = period.start.isoformat(), period.end.isoformat()
        return ReportOptions(
            start=start,
            end=end,
            filter_type=params.get("filter_type") or ReportFilter.all_expenses,
            expense_id=params.get("expense_id") or None,
            category_id=params.get("category_id") or None,
            monthly_budget=params.get("monthly_budget", "false"),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/api/health")
def health():
    return {"status": "ok", "version": APP_VERSION}


@app.get("/api/csrf-token")
def csrf_token():
    return {"csrf_token": generate_csrf_token()}


@app.get("/api/categories")
def list_categories(db: Session = Depends(get_db)):
    return [category_to_dict(c) for c in CategoryService(db).list_all()]


@app.post("/api/categories", status_code=201)
def create_category(payload: CategoryIn, db: Session = Depends(get_db)):
    try:
        category = CategoryService(db).create(payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return category_to_dict(category)


@app.patch("/api/categories/{category_id}")
def update_category(
    category_id: int, payload: CategoryPatch, db: Session = Depends(get_db)
):
    try:
        category = CategoryService(db).update(category_id, payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return category_to_dict(category)


@app.delete("/api/categories/{category_id}", status_code=204)
def delete_category(category_id: int, db: Session = Depends(get_db)):
    try:
        CategoryService(db).delete(category_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return Response(status_code=204)


@app.get("/api/expenses")
def list_expenses(db: Session = Depends(get_db)):
    return [expense_to_dict(e) for e in ExpenseService(db).list_all()]


@app.post("/api/expenses", status_code=201)
def create_expense(payload: ExpenseIn, db: Session = Depends(get_db)):
    try:
        expense = ExpenseService(db).create(payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return expense_to_dict(expense)


@app.get("/api/expenses/{expense_id}")
def get_expense(expense_id: int, db: Session = Depends(get_db)):
    try:
        expense = ExpenseService(db).get(expense_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return expense_to_dict(expense)


@app.patch("/api/expenses/{expense_id}")
def update_expense(
    expense_id: int, payload: ExpensePatch, db: Session = Depends(get_db)
):
    try:
        expense = ExpenseService(db).update(expense_id, payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return expense_to_dict(expense)


@app.delete("/api/expenses/{expense_id}", status_code=204)
def delete_expense(expense_id: int, db: Session = Depends(get_db)):
    try:
        ExpenseService(db).delete(expense_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return Response(status_code=204)


@app.get("/api/incomes")
def list_incomes(db: Session = Depends(get_db)):
    return [income_to_dict(i) for i in IncomeService(db).list_all()]


@app.post("/api/incomes", status_code=201)
def create_income(payload: IncomeIn, db: Session = Depends(get_db)):
    try:
        income = IncomeService(db).create(payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return income_to_dict(income)


@app.get("/api/incomes/{income_id}")
def get_income(income_id: int, db: Session = Depends(get_db)):
    try:
        income = IncomeService(db).get(income_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return income_to_dict(income)


@app.patch("/api/incomes/{income_id}")
def update_income(income_id: int, payload: IncomePatch, db: Session = Depends(get_db)):
    try:
        income = IncomeService(db).update(income_id, payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return income_to_dict(income)


@app.delete("/api/incomes/{income_id}", status_code=204)
def delete_income(income_id: int, db: Session = Depends(get_db)):
    try:
        IncomeService(db).delete(income_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return Response(status_code=204)


@app.post("/api/clear-data")
def clear_data(
    x_csrf_token: str = Header(default=""), db: Session = Depends(get_db)
):
    require_csrf(x_csrf_token)
    clear_all_data(db)
    return {"status": "cleared"}


@app.get("/api/backup")
def download_backup(db: Session = Depends(get_db)):
    payload = BackupService(db).export()
    filename = backup_filename(datetime.now())
    return JSONResponse(
        content=payload,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/api/restore/preview")
def restore_preview(payload: dict = Body(...), db: Session = Depends(get_db)):
    try:
        preview = BackupService(db).preview(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "version": preview.version,
        "timestamp": preview.timestamp,
        "categories": preview.categories_count,
        "expenses": preview.expenses_count,
        "incomes": preview.incomes_count,
    }


@app.post("/api/restore")
def restore_backup(
    payload: dict = Body(...),
    x_csrf_token: str = Header(default=""),
    db: Session = Depends(get_db),
):
    require_csrf(x_csrf_token)
    try:
        counts = BackupService(db).restore(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"status": "restored", **counts}


@app.get("/api/reports/summary")
def report_summary(request: Request, db: Session = Depends(get_db)):
    options = report_options_from_request(request)
    try:
        result = ReportService(db).report(options)
    except ValueError as exc:
        raise http_error(exc) from exc
    return report_to_dict(result)


@app.get("/api/reports/annual")
def report_annual(
    year: Optional[int] = Query(None, ge=1, le=9999),
    db: Session = Depends(get_db),
):
    service = ReportService(db)
    annual = service.annual(year if year is not None else service.now().year)
    data = report_to_dict(annual.report)
    data["year"] = annual.year
    data["expense_frequencies"] = [
        frequency_group_to_dict(g) for g in annual.expense_frequencies
    ]
    return data


@app.get("/api/reports/export.csv")
def export_report(request: Request, db: Session = Depends(get_db)):
    options = report_options_from_request(request)
    try:
        result = ReportService(db).report(options)
    except ValueError as exc:
        raise http_error(exc) from exc
    category_names = {c.id: c.name for c in CategoryService(db).list_all()}
    csv_text = export_report_csv(result, category_names)
    filename = f"budget_report_{result.interval.start}_{result.interval.end}.csv"
    return StreamingResponse(
        iter([csv_text]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/calendar")
def calendar_month(month: str, db: Session = Depends(get_db)):
    try:
        year, month_number = parse_month(month)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    buckets = ReportService(db).calendar_month(year, month_number)
    return {
        "month": f"{year:04d}-{month_number:02d}",
        "days": [bucket_to_dict(d, bucket) for d, bucket in buckets.items()],
    }


@app.get("/api/calendar/day")
def calendar_day(
    day: date = Query(..., alias="date"), db: Session = Depends(get_db)
):
    summary = ReportService(db).day(day)
    return {
        **bucket_to_dict(summary.day, summary.bucket),
        "month_expenses": totals_to_dict(summary.expenses),
        "month_incomes": totals_to_dict(summary.incomes),
        "month_balance": totals_to_dict(summary.balance),
        "upcoming": [bucket_to_dict(d, bucket) for d, bucket in summary.upcoming],
    }


def main():
    import uvicorn

    settings = get_settings()
    logger.info(f"starting: database={settings.database_url} tz={settings.timezone}")
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
