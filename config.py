import os
from datetime import date
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        csrf_secret: str,
        expansion_horizon: date,
        backup_dir: Path,
        backup_keep: int,
        backup_enabled: bool,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.csrf_secret = csrf_secret
        self.expansion_horizon = expansion_horizon
        self.backup_dir = backup_dir
        self.backup_keep = backup_keep
        self.backup_enabled = backup_enabled


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("BUDGET_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "budget.db"
    database_url = os.getenv("BUDGET_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("BUDGET_TIMEZONE", "America/Los_Angeles")
    csrf_secret = os.getenv(
        "BUDGET_CSRF_SECRET",
        "4c0f6b5e2d9a8c71e3b2f0a9d6c4e8b17a5f3d2c1b0e9f8a7d6c5b4a3f2e1d0c",
    )
    expansion_horizon = date.fromisoformat(
        os.getenv("BUDGET_EXPANSION_HORIZON", "2030-12-31")
    )
    backup_dir = Path(
        os.getenv("BUDGET_BACKUP_DIR", str(data_dir / "backups"))
    ).resolve()
    backup_keep = int(os.getenv("BUDGET_BACKUP_KEEP", "14"))
    backup_enabled = _env_flag("BUDGET_BACKUP_ENABLED", "1")
    return Settings(
        database_url=database_url,
        timezone=timezone,
        csrf_secret=csrf_secret,
        expansion_horizon=expansion_horizon,
        backup_dir=backup_dir,
        backup_keep=backup_keep,
        backup_enabled=backup_enabled,
    )
