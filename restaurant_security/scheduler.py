from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
import logging

from restaurant_security.config import settings
from restaurant_security.database import AsyncSessionLocal
from restaurant_security.exceptions import StoreFailureError
from restaurant_security.repositories.backup_store import SqlBackupStore
from restaurant_security.repositories.restaurant_data_store import SqlRestaurantDataStore
from restaurant_security.services.backup_service import BackupService

scheduler = AsyncIOScheduler()

logger = logging.getLogger(__name__)

BACKUP_JOB_ID = "automated_backup_pass"


async def run_scheduled_backup_pass() -> dict:
    async with AsyncSessionLocal() as db:
        service = BackupService(SqlBackupStore(db), SqlRestaurantDataStore(db))
        try:
            report = await service.run_backup_pass()
        except StoreFailureError as e:
            logger.error(f"[Scheduler] Backup pass aborted: {e.message}")
            return {"message": "Backup process failed", "results": []}

        logger.info(f"[Scheduler] Backup pass completed with {len(report.results)} results")
        return report.to_dict()


def install_backup_job(interval_minutes: int | None = None) -> None:
    scheduler.add_job(
        run_scheduled_backup_pass,
        trigger=IntervalTrigger(minutes=interval_minutes or settings.backup_check_interval_minutes),
        id=BACKUP_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    logger.info(f"[Scheduler] Backup job installed, every {interval_minutes or settings.backup_check_interval_minutes} minutes")
