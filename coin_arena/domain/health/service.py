import logging
from coin_arena.infrastructure.database.client import DatabaseClient
from coin_arena.infrastructure.scheduler.scheduler import JobScheduler

logger = logging.getLogger(__name__)


class HealthService:
    def __init__(self, db_client: DatabaseClient, scheduler: JobScheduler):
        self.db_client = db_client
        self.scheduler = scheduler

    async def check_database_health(self) -> bool:
        try:
            return await self.db_client.health_check()
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def scheduler_running(self) -> bool:
        return bool(self.scheduler.scheduler and self.scheduler.scheduler.running)
