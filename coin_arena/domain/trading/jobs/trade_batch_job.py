import logging
from datetime import datetime
from typing import Optional

from coin_arena.domain.trading.batch_orchestrator import BatchOrchestrator
from coin_arena.domain.trading.dtos.batch_dto import BatchReportDTO
from coin_arena.infrastructure.market.price_oracle_base import PriceOracleError


logger = logging.getLogger(__name__)


class TradeBatchJob:

    def __init__(self, orchestrator: BatchOrchestrator) -> None:
        self.orchestrator = orchestrator

    async def run(self) -> Optional[BatchReportDTO]:
        logger.info("Starting TradeBatchJob at %s", datetime.now().isoformat())

        try:
            report = await self.orchestrator.run_batch()
        except PriceOracleError as e:
            # Whole round skipped; the next tick starts fresh
            logger.error(f"TradeBatchJob aborted, market data unavailable: {e}")
            return None

        for result in report.results:
            if result.error:
                logger.warning(
                    "Account %s (%s) -> %s: %s",
                    result.user_name, result.user_id, result.status.value, result.error,
                )

        logger.info("Finished TradeBatchJob at %s", datetime.now().isoformat())
        return report
