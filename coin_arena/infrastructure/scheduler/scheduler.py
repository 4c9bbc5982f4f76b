from typing import Awaitable, Callable, Optional
import logging
from zoneinfo import ZoneInfo
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.jobstores.base import JobLookupError

from coin_arena.infrastructure.scheduler.cron_expression_enum import CronSchedule


logger = logging.getLogger(__name__)


class JobScheduler:
    """
    Scheduler for the periodic trading batch
    """

    def __init__(
        self,
        timezone: str = "UTC",
    ):
        self.timezone = timezone
        self.scheduler: Optional[AsyncIOScheduler] = None

        logger.info(f"JobScheduler initialized with timezone: {timezone}")

    async def start(self) -> None:
        logger.info("Starting scheduler...")

        if self.scheduler and self.scheduler.running:
            logger.warning("The scheduler is already running")
            return

        self.scheduler = AsyncIOScheduler(
            timezone=ZoneInfo(self.timezone),
            job_defaults={"coalesce": True, "max_instances": 1},
        )

        self.scheduler.start()
        logger.info(f"Scheduler running in timezone: {self.timezone}")

    def add_cron_job(
        self,
        func: Callable[[], Awaitable[None]],
        expression: str,
        job_id: str,
    ) -> None:
        if self.scheduler is None:
            raise RuntimeError("Scheduler must be started before adding jobs")

        crontab = CronSchedule.resolve(expression)
        self.scheduler.add_job(
            func,
            CronTrigger.from_crontab(crontab, timezone=ZoneInfo(self.timezone)),
            id=job_id,
            replace_existing=True,
        )
        logger.info(f"Job '{job_id}' scheduled with cron '{crontab}'")

    async def shutdown(self) -> None:
        if self.scheduler and self.scheduler.running:
            logger.info("Shutting down scheduler...")
            try:
                self.scheduler.shutdown(wait=False)
                logger.info("Scheduler shut down correctly")
            except JobLookupError as e:
                logger.error(f"Error shutting down scheduler: {e}")
