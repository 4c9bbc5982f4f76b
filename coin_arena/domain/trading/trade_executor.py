import logging
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from coin_arena.commons.enums.trade_enums import TradeActionEnum, TradeSideEnum
from coin_arena.domain.ledger.ledger_math import (
    DUST_THRESHOLD,
    QUANTITY_EPSILON,
    blend_average_cost,
    clamp_leverage,
    leveraged_sale_proceeds,
    weighted_leverage,
)
from coin_arena.domain.ledger.transaction import run_ledger_transaction
from coin_arena.domain.trading.dtos.decision_dto import DecisionDTO
from coin_arena.domain.trading.dtos.trade_dto import ExecutionResultDTO, TradeDTO
from coin_arena.infrastructure.database.client import DatabaseClient
from coin_arena.infrastructure.database.models.holding_model import HoldingModel
from coin_arena.infrastructure.database.models.portfolio_model import PortfolioModel
from coin_arena.infrastructure.database.repositories.holding_repository import HoldingRepository
from coin_arena.infrastructure.database.repositories.portfolio_repository import PortfolioRepository
from coin_arena.infrastructure.database.repositories.trade_repository import TradeRepository
from coin_arena.infrastructure.market.price_oracle_base import PriceOracle, PriceOracleError

logger = logging.getLogger(__name__)


class TradeExecutor:
    """
    Applies one decision to one portfolio.

    Cash, holdings and the trade record change in a single transaction.
    Guard conditions (HOLD, dust, nothing to sell, unknown or liquidated
    portfolio) come back as SKIPPED results instead of exceptions.
    """

    def __init__(
        self,
        db_client: DatabaseClient,
        price_oracle: PriceOracle,
        max_retries: int = 3,
    ):
        self.db_client = db_client
        self.price_oracle = price_oracle
        self.max_retries = max_retries

    async def execute(
        self,
        user_id: str,
        portfolio_id: str,
        decision: DecisionDTO,
    ) -> ExecutionResultDTO:
        if decision.is_hold:
            logger.info(
                f"⏸️ HOLD {decision.symbol} for portfolio={portfolio_id}: {decision.reason}"
            )
            return ExecutionResultDTO.skipped("HOLD")

        # One price for the whole call, fetched before any ledger access
        price = await self.price_oracle.get_price(decision.symbol)
        if price is None or price <= 0:
            raise PriceOracleError(f"Invalid price for {decision.symbol}: {price}")

        result = await run_ledger_transaction(
            self.db_client,
            lambda session: self._apply(session, user_id, portfolio_id, decision, price),
            max_retries=self.max_retries,
            label=f"{decision.action.value} {decision.symbol} portfolio={portfolio_id}",
        )

        if result.executed:
            t = result.trade
            logger.info(
                f"✅ {t.side.value} {t.symbol} x{t.leverage} qty={t.quantity:.8f} "
                f"@ {t.price:.4f} total={t.total:.2f} portfolio={portfolio_id}"
            )
        else:
            logger.info(
                f"⏭️ Skipped {decision.action.value} {decision.symbol} "
                f"for portfolio={portfolio_id}: {result.reason}"
            )
        return result

    async def _apply(
        self,
        session: AsyncSession,
        user_id: str,
        portfolio_id: str,
        decision: DecisionDTO,
        price: float,
    ) -> ExecutionResultDTO:
        portfolio = await PortfolioRepository(session).get_by_id(portfolio_id)
        if portfolio is None:
            return ExecutionResultDTO.skipped("Portfolio not found")
        if portfolio.is_liquidated:
            return ExecutionResultDTO.skipped("Portfolio is liquidated")

        if decision.action == TradeActionEnum.BUY:
            return await self._buy(session, user_id, portfolio, decision, price)
        return await self._sell(session, user_id, portfolio, decision, price)

    async def _buy(
        self,
        session: AsyncSession,
        user_id: str,
        portfolio: PortfolioModel,
        decision: DecisionDTO,
        price: float,
    ) -> ExecutionResultDTO:
        spend = portfolio.cash_balance * (decision.percentage / 100)
        if spend < DUST_THRESHOLD:
            return ExecutionResultDTO.skipped(
                f"Spend {spend:.4f} below dust threshold"
            )

        quantity = spend / price
        leverage = clamp_leverage(decision.leverage)

        holdings = HoldingRepository(session)
        holding = await holdings.get_tier(portfolio.id, decision.symbol, leverage)
        if holding is None:
            holdings.add(
                HoldingModel(
                    portfolio_id=portfolio.id,
                    symbol=decision.symbol,
                    quantity=quantity,
                    avg_cost=price,
                    leverage=leverage,
                )
            )
        else:
            holding.avg_cost = blend_average_cost(
                holding.avg_cost, holding.quantity, price, quantity
            )
            holding.quantity = holding.quantity + quantity

        portfolio.cash_balance = portfolio.cash_balance - spend
        portfolio.bump_version()

        trade = await TradeRepository(session).append(
            TradeDTO(
                user_id=user_id,
                portfolio_id=portfolio.id,
                symbol=decision.symbol,
                side=TradeSideEnum.BUY,
                quantity=quantity,
                price=price,
                total=spend,
                leverage=leverage,
                reason=decision.reason,
                monologue=decision.monologue,
            )
        )
        return ExecutionResultDTO.done(trade)

    async def _sell(
        self,
        session: AsyncSession,
        user_id: str,
        portfolio: PortfolioModel,
        decision: DecisionDTO,
        price: float,
    ) -> ExecutionResultDTO:
        holdings = HoldingRepository(session)
        tiers = await holdings.list_for_symbol(portfolio.id, decision.symbol)
        if not tiers:
            return ExecutionResultDTO.skipped(f"No {decision.symbol} holding to sell")

        fraction = decision.percentage / 100
        sold: List[tuple] = []
        proceeds = 0.0

        for holding in tiers:
            sell_qty = holding.quantity * fraction
            if sell_qty <= 0:
                continue

            proceeds += leveraged_sale_proceeds(
                sell_qty, holding.avg_cost, price, holding.leverage
            )
            sold.append((sell_qty, holding.leverage))

            remaining = holding.quantity - sell_qty
            if remaining <= QUANTITY_EPSILON:
                await holdings.remove(holding)
            else:
                holding.quantity = remaining

        total_qty = sum(q for q, _ in sold)
        if total_qty <= 0:
            return ExecutionResultDTO.skipped(f"Nothing to sell for {decision.symbol}")

        portfolio.cash_balance = portfolio.cash_balance + proceeds
        portfolio.bump_version()

        trade = await TradeRepository(session).append(
            TradeDTO(
                user_id=user_id,
                portfolio_id=portfolio.id,
                symbol=decision.symbol,
                side=TradeSideEnum.SELL,
                quantity=total_qty,
                price=price,
                total=proceeds,
                leverage=weighted_leverage(sold),
                reason=decision.reason,
                monologue=decision.monologue,
            )
        )
        return ExecutionResultDTO.done(trade)
