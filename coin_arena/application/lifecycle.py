from contextlib import asynccontextmanager
import logging
from fastapi import FastAPI
from coin_arena.application.container import container
from coin_arena.infrastructure.scheduler.scheduler import JobScheduler
from coin_arena.infrastructure.config.settings import settings
from coin_arena.domain.trading.trading_module import TradingModule
from coin_arena.domain.trading.jobs.trade_batch_job import TradeBatchJob

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    scheduler: JobScheduler = container.scheduler()

    try:
        # 1) Database first
        await container.db_client().init()
        logger.info("Database initialized successfully")

        # 2) Scheduler + trading batch
        if settings.scheduler_enabled:
            await scheduler.start()
            logger.info("Scheduler started")

            trading: TradingModule = app.state.trading_module
            trade_job: TradeBatchJob = trading.trade_batch_job()
            scheduler.add_cron_job(
                trade_job.run,
                settings.trade_cron,
                job_id="trade_batch_job",
            )
            logger.info("TradeBatchJob scheduled")

        yield

    except Exception as e:
        logger.error(f"Error during startup: {str(e)}")
        raise

    finally:
        logger.info("Shutting down application...")

        try:
            await scheduler.shutdown()
            logger.info("Scheduler shut down successfully")
        except Exception as e:
            logger.error(f"Error shutting down scheduler: {e}")

        await container.price_oracle().close()
        await container.secondme().close()
        await container.db_client().close()
        logger.info("Application shut down successfully")
