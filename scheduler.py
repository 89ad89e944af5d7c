import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from backup import BackupService, prune_backups, write_backup_file
from config import get_settings
from database import session_scope


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self) -> None:
        self.settings = get_settings()
        self.scheduler = BackgroundScheduler(timezone=self.settings.timezone)

    def _run_job(self, source: str = "manual") -> Optional[str]:
        if not self.settings.backup_enabled:
            logger.info(f"scheduler_run: source={source} skipped=backups_disabled")
            return None
        with session_scope() as session:
            payload = BackupService(session).export()
        path = write_backup_file(payload, self.settings.backup_dir)
        removed = prune_backups(self.settings.backup_dir, self.settings.backup_keep)
        logger.info(
            f"scheduler_run: source={source} path={path} pruned={len(removed)}"
        )
        return str(path)

    def start(self) -> None:
        if not self.settings.backup_enabled:
            logger.info("Scheduler not started: backups disabled")
            return

        trigger = CronTrigger(hour=3, minute=15)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=["daily_03:15"],
            id="backup_daily",
            replace_existing=True,
            misfire_grace_time=3600,
        )

        self.scheduler.start()
        logger.info("Scheduler started with daily 03:15 backup")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
