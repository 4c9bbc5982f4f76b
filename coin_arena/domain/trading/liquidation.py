import logging
from typing import Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from coin_arena.domain.ledger.ledger_math import total_assets
from coin_arena.domain.ledger.transaction import run_ledger_transaction
from coin_arena.infrastructure.database.client import DatabaseClient
from coin_arena.infrastructure.database.repositories.holding_repository import HoldingRepository
from coin_arena.infrastructure.database.repositories.portfolio_repository import PortfolioRepository

logger = logging.getLogger(__name__)


class LiquidationMonitor:
    """
    Force-closes a portfolio once its leveraged equity is no longer
    positive. Liquidation is terminal.
    """

    def __init__(self, db_client: DatabaseClient, max_retries: int = 3):
        self.db_client = db_client
        self.max_retries = max_retries

    async def check_and_liquidate(
        self,
        portfolio_id: str,
        prices: Mapping[str, float],
    ) -> bool:
        return await run_ledger_transaction(
            self.db_client,
            lambda session: self._check(session, portfolio_id, prices),
            max_retries=self.max_retries,
            label=f"liquidation check portfolio={portfolio_id}",
        )

    async def _check(
        self,
        session: AsyncSession,
        portfolio_id: str,
        prices: Mapping[str, float],
    ) -> bool:
        portfolios = PortfolioRepository(session)
        portfolio = await portfolios.get_by_id(portfolio_id)
        if portfolio is None:
            logger.warning(f"Liquidation check on unknown portfolio={portfolio_id}")
            return False

        if portfolio.is_liquidated:
            return True

        holdings = await HoldingRepository(session).list_for_portfolio(portfolio_id)
        assets = total_assets(portfolio.cash_balance, holdings, prices)
        if assets > 0:
            return False

        await portfolios.liquidate(portfolio)
        logger.warning(
            f"💥 Portfolio {portfolio_id} liquidated "
            f"(total assets {assets:.2f}, {len(holdings)} holdings wiped)"
        )
        return True
