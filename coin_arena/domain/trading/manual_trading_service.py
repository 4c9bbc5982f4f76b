import logging
from typing import Optional

from pydantic import ValidationError

from coin_arena.commons.enums.trade_enums import PortfolioTypeEnum, TradeActionEnum
from coin_arena.domain.trading.dtos.batch_dto import ManualTradeResultDTO
from coin_arena.domain.trading.dtos.decision_dto import DecisionDTO
from coin_arena.domain.trading.errors import (
    ManualTradeError,
    PortfolioLiquidatedError,
    PortfolioNotFoundError,
)
from coin_arena.domain.trading.liquidation import LiquidationMonitor
from coin_arena.domain.trading.trade_executor import TradeExecutor
from coin_arena.infrastructure.database.client import DatabaseClient
from coin_arena.infrastructure.database.repositories.holding_repository import HoldingRepository
from coin_arena.infrastructure.database.repositories.portfolio_repository import PortfolioRepository
from coin_arena.infrastructure.market.price_oracle_base import PriceOracle

logger = logging.getLogger(__name__)

MANUAL_TRADE_REASON = "Manual trade"


class ManualTradingService:
    """Human-driven trades against a user's MANUAL portfolio."""

    def __init__(
        self,
        db_client: DatabaseClient,
        price_oracle: PriceOracle,
        executor: TradeExecutor,
        liquidation: LiquidationMonitor,
    ):
        self.db_client = db_client
        self.price_oracle = price_oracle
        self.executor = executor
        self.liquidation = liquidation

    async def execute_manual_trade(
        self,
        user_id: str,
        symbol: str,
        action: str,
        percentage: float,
        leverage: Optional[float] = 1,
    ) -> ManualTradeResultDTO:
        decision = self._build_decision(symbol, action, percentage, leverage)

        async with self.db_client.get_session() as session:
            portfolio = await PortfolioRepository(session).get_for_user(
                user_id, PortfolioTypeEnum.MANUAL
            )
        if portfolio is None:
            raise PortfolioNotFoundError(f"No MANUAL portfolio for user {user_id}")
        if portfolio.is_liquidated:
            raise PortfolioLiquidatedError(
                f"MANUAL portfolio of user {user_id} is liquidated"
            )

        logger.info(
            f"🖐️ Manual {decision.action.value} {decision.symbol} "
            f"{decision.percentage:g}% x{decision.leverage} for user={user_id}"
        )
        outcome = await self.executor.execute(user_id, portfolio.id, decision)

        liquidated = False
        if outcome.executed:
            async with self.db_client.get_session() as session:
                held = await HoldingRepository(session).list_for_portfolio(portfolio.id)
            prices = await self.price_oracle.get_prices(
                {decision.symbol} | {h.symbol for h in held}
            )
            liquidated = await self.liquidation.check_and_liquidate(portfolio.id, prices)

        return ManualTradeResultDTO(
            status=outcome.status,
            executed=outcome.executed,
            liquidated=liquidated,
            reason=outcome.reason,
            trade=outcome.trade,
        )

    @staticmethod
    def _build_decision(
        symbol: str,
        action: str,
        percentage: float,
        leverage: Optional[float],
    ) -> DecisionDTO:
        side = (action or "").strip().upper()
        if side not in (TradeActionEnum.BUY.value, TradeActionEnum.SELL.value):
            raise ManualTradeError(f"Action must be BUY or SELL, got {action!r}")

        if percentage is None or not 1 <= percentage <= 100:
            raise ManualTradeError("Percentage must be between 1 and 100")

        try:
            return DecisionDTO(
                action=side,
                symbol=symbol,
                percentage=percentage,
                leverage=leverage,
                reason=MANUAL_TRADE_REASON,
            )
        except ValidationError as e:
            raise ManualTradeError(f"Invalid manual trade: {e}") from e
