import json
from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from backup import BackupService, prune_backups, write_backup_file
from database import Base
from models import Category, Expense, Income
from services import CategoryService, ExpenseService, IncomeService


def _session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def _populate(session: Session) -> None:
    session.add(Category(id=7, name="Rent", color="#3B93F5", icon="home"))
    session.flush()
    session.add(
        Expense(
            id=11,
            name="Rent",
            amount_cents=375000,
            date=date(2025, 1, 1),
            frequency="MONTHLY",
            category_id=7,
        )
    )
    session.add(
        Income(
            id=3,
            name="Paycheck",
            amount_cents=216800,
            date=date(2025, 1, 10),
            frequency="BIWEEKLY",
            source="Employer",
        )
    )
    session.commit()


def _legacy_payload() -> dict:
    return {
        "version": "1.0",
        "timestamp": "2025-02-01T10:00:00.000Z",
        "categories": [
            {"id": 1, "name": "Rent", "color": "#3B93F5", "icon": "home"},
            {"id": 2, "name": "Phone", "color": "#E91E63", "icon": "phone"},
        ],
        "expenses": [
            {
                "id": 5,
                "name": "Rent",
                "amount": "3750.00",
                "date": "2025-01-01T12:00:00.000Z",
                "frequency": "MONTHLY",
                "categoryId": 1,
            },
            {
                "id": 6,
                "name": "Phone plan",
                "amount": 80,
                "date": "2025-01-15",
                "frequency": "one_time",
                "category_id": 2,
            },
        ],
        "incomes": [
            {
                "id": 9,
                "name": "Paycheck",
                "amount": "2168.00",
                "date": "2025-01-10",
                "frequency": "BIWEEKLY",
                "source": None,
            }
        ],
    }


def test_export_uses_wire_format():
    with _session() as session:
        _populate(session)
        payload = BackupService(session).export()

        assert payload["version"] == "1.0"
        assert payload["categories"][0]["id"] == 7
        assert payload["expenses"][0] == {
            "id": 11,
            "name": "Rent",
            "amount": "3750.00",
            "date": "2025-01-01",
            "frequency": "MONTHLY",
            "category_id": 7,
        }
        assert payload["incomes"][0]["amount"] == "2168.00"
        json.dumps(payload)


def test_export_then_restore_preserves_ids():
    with _session() as source:
        _populate(source)
        payload = BackupService(source).export()

    with _session() as target:
        counts = BackupService(target).restore(payload)
        assert counts == {"categories": 1, "expenses": 1, "incomes": 1}
        expense = ExpenseService(target).get(11)
        assert expense.category_id == 7
        assert expense.amount_cents == 375000
        assert IncomeService(target).get(3).source == "Employer"


def test_restore_accepts_legacy_keys_and_replaces_data():
    with _session() as session:
        _populate(session)
        BackupService(session).restore(_legacy_payload())

        assert [c.id for c in CategoryService(session).list_all()] == [2, 1]
        expenses = ExpenseService(session).list_all()
        assert [(e.id, e.frequency, e.amount_cents) for e in expenses] == [
            (5, "MONTHLY", 375000),
            (6, "ONCE", 8000),
        ]
        assert expenses[0].date == date(2025, 1, 1)
        assert [i.id for i in IncomeService(session).list_all()] == [9]


def test_preview_counts_without_writing():
    with _session() as session:
        preview = BackupService(session).preview(_legacy_payload())
        assert preview.expenses_count == 2
        assert preview.timestamp == "2025-02-01T10:00:00.000Z"
        assert CategoryService(session).list_all() == []


def test_malformed_backup_is_rejected_and_data_kept():
    with _session() as session:
        _populate(session)
        payload = _legacy_payload()
        payload["expenses"][0]["categoryId"] = 99
        with pytest.raises(ValueError, match="unknown category"):
            BackupService(session).restore(payload)

        with pytest.raises(ValueError, match="Invalid backup"):
            BackupService(session).restore({"version": "1.0"})
        with pytest.raises(ValueError, match="expected a JSON object"):
            BackupService(session).preview([1, 2, 3])

        assert [e.id for e in ExpenseService(session).list_all()] == [11]


@pytest.mark.parametrize(
    "section, message",
    [
        ("categories", "duplicate category id 1"),
        ("expenses", "duplicate expense id 5"),
        ("incomes", "duplicate income id 9"),
    ],
)
def test_duplicate_ids_are_rejected_and_data_kept(section, message):
    with _session() as session:
        _populate(session)
        payload = _legacy_payload()
        payload[section].append(dict(payload[section][0]))
        with pytest.raises(ValueError, match=message):
            BackupService(session).restore(payload)

        assert [c.id for c in CategoryService(session).list_all()] == [7]
        assert [e.id for e in ExpenseService(session).list_all()] == [11]


def test_backup_files_are_written_and_pruned(tmp_path):
    for hour in range(4):
        write_backup_file({"version": "1.0"}, tmp_path, datetime(2025, 3, 1, hour, 0))

    removed = prune_backups(tmp_path, keep=2)

    assert [p.name for p in removed] == [
        "budget-backup-2025-03-01-01-00.json",
        "budget-backup-2025-03-01-00-00.json",
    ]
    remaining = sorted(p.name for p in tmp_path.iterdir())
    assert remaining == [
        "budget-backup-2025-03-01-02-00.json",
        "budget-backup-2025-03-01-03-00.json",
    ]
    assert json.loads((tmp_path / remaining[0]).read_text()) == {"version": "1.0"}
