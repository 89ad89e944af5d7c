from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.orm import Session

from models import Category, Expense, Income
from money import cents_to_amount, parse_amount
from schemas import BACKUP_VERSION, BackupIn
from services import CategoryService, ExpenseService, IncomeService, purge_tables


logger = logging.getLogger(__name__)

BACKUP_PREFIX = "budget-backup-"


@dataclass(frozen=True)
class BackupPreview:
    version: str
    timestamp: str
    categories_count: int
    expenses_count: int
    incomes_count: int


def _validate(payload: object) -> BackupIn:
    if not isinstance(payload, dict):
        raise ValueError("Invalid backup: expected a JSON object")
    try:
        return BackupIn.model_validate(payload)
    except ValidationError as exc:
        error = exc.errors()[0]
        location = ".".join(str(part) for part in error["loc"])
        detail = f"{location}: {error['msg']}" if location else error["msg"]
        raise ValueError(f"Invalid backup: {detail}") from exc


class BackupService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def export(self) -> dict:
        categories = CategoryService(self.session).list_all()
        expenses = ExpenseService(self.session).list_all()
        incomes = IncomeService(self.session).list_all()
        return {
            "version": BACKUP_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "categories": [
                {"id": c.id, "name": c.name, "color": c.color, "icon": c.icon}
                for c in categories
            ],
            "expenses": [
                {
                    "id": e.id,
                    "name": e.name,
                    "amount": cents_to_amount(e.amount_cents),
                    "date": e.date.isoformat(),
                    "frequency": e.frequency,
                    "category_id": e.category_id,
                }
                for e in expenses
            ],
            "incomes": [
                {
                    "id": i.id,
                    "name": i.name,
                    "amount": cents_to_amount(i.amount_cents),
                    "date": i.date.isoformat(),
                    "frequency": i.frequency,
                    "source": i.source,
                }
                for i in incomes
            ],
        }

    def preview(self, payload: object) -> BackupPreview:
        backup = _validate(payload)
        return BackupPreview(
            version=backup.version,
            timestamp=backup.timestamp,
            categories_count=len(backup.categories),
            expenses_count=len(backup.expenses),
            incomes_count=len(backup.incomes),
        )

    def restore(self, payload: object) -> dict[str, int]:
        backup = _validate(payload)
        if backup.version != BACKUP_VERSION:
            logger.warning(
                f"restore_version_mismatch: found={backup.version} "
                f"expected={BACKUP_VERSION}"
            )

        try:
            purge_tables(self.session)
            for item in backup.categories:
                self.session.add(
                    Category(
                        id=item.id, name=item.name, color=item.color, icon=item.icon
                    )
                )
            self.session.flush()
            for item in backup.expenses:
                self.session.add(
                    Expense(
                        id=item.id,
                        name=item.name,
                        amount_cents=parse_amount(item.amount),
                        date=item.date,
                        frequency=item.frequency,
                        category_id=item.category_id,
                    )
                )
            for item in backup.incomes:
                self.session.add(
                    Income(
                        id=item.id,
                        name=item.name,
                        amount_cents=parse_amount(item.amount),
                        date=item.date,
                        frequency=item.frequency,
                        source=item.source,
                    )
                )
            self.session.flush()
            self._reset_sequences()
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        counts = {
            "categories": len(backup.categories),
            "expenses": len(backup.expenses),
            "incomes": len(backup.incomes),
        }
        logger.info(
            f"backup_restored: timestamp={backup.timestamp} "
            f"categories={counts['categories']} expenses={counts['expenses']} "
            f"incomes={counts['incomes']}"
        )
        return counts

    def _reset_sequences(self) -> None:
        # Explicit ids bypass PostgreSQL sequences; SQLite needs nothing.
        if self.session.get_bind().dialect.name != "postgresql":
            return
        for table in ("categories", "expenses", "incomes"):
            self.session.execute(
                text(
                    f"SELECT setval(pg_get_serial_sequence('{table}', 'id'), "
                    f"COALESCE((SELECT MAX(id) FROM {table}), 1))"
                )
            )


def backup_filename(moment: datetime) -> str:
    return f"{BACKUP_PREFIX}{moment.strftime('%Y-%m-%d-%H-%M')}.json"


def write_backup_file(
    payload: dict, directory: Path, moment: Optional[datetime] = None
) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / backup_filename(moment or datetime.now())
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path


def prune_backups(directory: Path, keep: int) -> list[Path]:
    """Delete the oldest backup files beyond the newest ``keep``."""
    if not directory.exists():
        return []
    files = sorted(directory.glob(f"{BACKUP_PREFIX}*.json"), reverse=True)
    removed = files[max(keep, 0):]
    for path in removed:
        path.unlink()
    return removed
