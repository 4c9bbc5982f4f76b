from __future__ import annotations
import logging
from datetime import timedelta
from typing import Dict, List, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from coin_arena.commons.enums.trade_enums import PortfolioTypeEnum, SnapshotPeriodEnum
from coin_arena.domain.ledger.ledger_math import (
    equity_breakdown,
    leveraged_market_value,
    profit_loss_percent,
)
from coin_arena.domain.ledger.transaction import run_ledger_transaction
from coin_arena.domain.portfolio.dtos.portfolio_dto import (
    EquityPointDTO,
    HoldingViewDTO,
    LeaderboardEntryDTO,
    PortfolioDTO,
    PortfolioViewDTO,
)
from coin_arena.domain.portfolio.snapshot_recorder import snapshot_date
from coin_arena.domain.trading.errors import PortfolioNotFoundError, UserNotFoundError
from coin_arena.infrastructure.database.client import DatabaseClient
from coin_arena.infrastructure.database.repositories.portfolio_repository import PortfolioRepository
from coin_arena.infrastructure.database.repositories.snapshot_repository import SnapshotRepository
from coin_arena.infrastructure.database.repositories.trade_repository import TradeRepository
from coin_arena.infrastructure.database.repositories.user_repository import UserRepository
from coin_arena.infrastructure.market.price_oracle_base import PriceOracle

logger = logging.getLogger(__name__)


class PortfolioService:
    """
    Account lifecycle (open / close) and read models: portfolio view,
    leaderboard and equity history. Profit is always measured against
    the starting fund.
    """

    def __init__(
        self,
        db_client: DatabaseClient,
        price_oracle: PriceOracle,
        initial_fund: float = 100_000.0,
    ):
        self.db_client = db_client
        self.price_oracle = price_oracle
        self.initial_fund = initial_fund

    # ==========================
    #        LIFECYCLE
    # ==========================

    async def open_portfolio(
        self,
        user_id: str,
        portfolio_type: PortfolioTypeEnum,
    ) -> PortfolioDTO:
        """Activate a portfolio; an existing one is returned untouched."""

        async def work(session: AsyncSession) -> PortfolioDTO:
            if await UserRepository(session).get_by_id(user_id) is None:
                raise UserNotFoundError(f"User {user_id} not found")

            portfolios = PortfolioRepository(session)
            model = await portfolios.get_for_user(user_id, portfolio_type)
            if model is None:
                model = await portfolios.create(user_id, portfolio_type, self.initial_fund)
            return await portfolios.get_dto(model.id)

        return await run_ledger_transaction(
            self.db_client, work, label=f"open {portfolio_type.value} portfolio"
        )

    async def close_portfolio(
        self,
        user_id: str,
        portfolio_type: PortfolioTypeEnum,
    ) -> None:
        """Delete the portfolio with its holdings, trades and snapshots."""
        async with self.db_client.get_session() as session:
            async with session.begin():
                portfolios = PortfolioRepository(session)
                model = await portfolios.get_for_user(user_id, portfolio_type)
                if model is None:
                    raise PortfolioNotFoundError(
                        f"No {portfolio_type.value} portfolio for user {user_id}"
                    )
                await portfolios.delete_cascade(model)

        logger.info(f"🗑️ {portfolio_type.value} portfolio of user={user_id} closed")

    # ==========================
    #        READ MODELS
    # ==========================

    async def get_portfolio_view(
        self,
        portfolio_id: str,
        prices: Optional[Mapping[str, float]] = None,
    ) -> PortfolioViewDTO:
        async with self.db_client.get_session() as session:
            portfolio = await PortfolioRepository(session).get_dto(portfolio_id)
        if portfolio is None:
            raise PortfolioNotFoundError(f"Portfolio {portfolio_id} not found")

        if prices is None:
            prices = await self._prices_for(portfolio.symbols)
        return self._build_view(portfolio, prices)

    async def get_user_portfolio_view(
        self,
        user_id: str,
        portfolio_type: PortfolioTypeEnum,
    ) -> PortfolioViewDTO:
        async with self.db_client.get_session() as session:
            model = await PortfolioRepository(session).get_for_user(user_id, portfolio_type)
        if model is None:
            raise PortfolioNotFoundError(
                f"No {portfolio_type.value} portfolio for user {user_id}"
            )
        return await self.get_portfolio_view(model.id)

    async def get_leaderboard(
        self,
        portfolio_type: Optional[PortfolioTypeEnum] = None,
    ) -> List[LeaderboardEntryDTO]:
        async with self.db_client.get_session() as session:
            rows = await PortfolioRepository(session).list_dtos_with_users(portfolio_type)
            trades = TradeRepository(session)
            monologues = {p.id: await trades.latest_monologue(p.id) for p, _ in rows}

        # One oracle round-trip for every symbol on the board
        symbols = {s for p, _ in rows for s in p.symbols}
        prices = await self._prices_for(symbols)

        entries: List[LeaderboardEntryDTO] = []
        for portfolio, user in rows:
            equity = equity_breakdown(
                portfolio.cash_balance,
                portfolio.holdings,
                prices,
                liquidated=portfolio.is_liquidated,
            )
            profit = equity["total_assets"] - self.initial_fund
            entries.append(
                LeaderboardEntryDTO(
                    user_id=user.id,
                    name=user.name,
                    avatar=user.avatar,
                    type=portfolio.type,
                    total_assets=equity["total_assets"],
                    profit_loss=profit,
                    profit_loss_percent=self._percent_of_fund(profit),
                    holdings_count=len(portfolio.holdings),
                    is_liquidated=portfolio.is_liquidated,
                    latest_monologue=monologues.get(portfolio.id),
                )
            )

        entries.sort(key=lambda e: e.total_assets, reverse=True)
        for rank, entry in enumerate(entries, start=1):
            entry.rank = rank
        return entries

    async def get_equity_history(
        self,
        user_id: str,
        portfolio_type: PortfolioTypeEnum,
        period: SnapshotPeriodEnum = SnapshotPeriodEnum.ONE_MONTH,
    ) -> List[EquityPointDTO]:
        since = None
        if period.days is not None:
            since = snapshot_date() - timedelta(days=period.days)

        async with self.db_client.get_session() as session:
            model = await PortfolioRepository(session).get_for_user(user_id, portfolio_type)
            if model is None:
                raise PortfolioNotFoundError(
                    f"No {portfolio_type.value} portfolio for user {user_id}"
                )
            snapshots = await SnapshotRepository(session).list_for_portfolio(
                model.id, since=since
            )

        return [
            EquityPointDTO(
                date=s.date,
                total_assets=s.total_assets,
                profit_loss=s.total_assets - self.initial_fund,
            )
            for s in snapshots
        ]

    # ------------------------
    # HELPERS
    # ------------------------

    async def _prices_for(self, symbols) -> Dict[str, float]:
        symbols = sorted(set(symbols))
        if not symbols:
            return {}
        return await self.price_oracle.get_prices(symbols)

    def _percent_of_fund(self, profit: float) -> float:
        if self.initial_fund <= 0:
            return 0.0
        return profit / self.initial_fund * 100

    def _build_view(
        self,
        portfolio: PortfolioDTO,
        prices: Mapping[str, float],
    ) -> PortfolioViewDTO:
        equity = equity_breakdown(
            portfolio.cash_balance,
            portfolio.holdings,
            prices,
            liquidated=portfolio.is_liquidated,
        )

        holdings: List[HoldingViewDTO] = []
        if not portfolio.is_liquidated:
            for h in portfolio.holdings:
                price = prices.get(h.symbol)
                cost = h.quantity * h.avg_cost
                value = (
                    leveraged_market_value(h.quantity, h.avg_cost, price, h.leverage)
                    if price is not None
                    else 0.0
                )
                holdings.append(
                    HoldingViewDTO(
                        symbol=h.symbol,
                        quantity=h.quantity,
                        avg_cost=h.avg_cost,
                        leverage=h.leverage,
                        current_price=price,
                        market_value=value,
                        profit_loss=value - cost if price is not None else 0.0,
                        profit_loss_percent=(
                            profit_loss_percent(value, cost) if price is not None else 0.0
                        ),
                    )
                )

        return PortfolioViewDTO(
            portfolio_id=portfolio.id,
            user_id=portfolio.user_id,
            type=portfolio.type,
            cash_balance=equity["cash_balance"],
            holdings_value=equity["holdings_value"],
            total_assets=equity["total_assets"],
            profit_loss=equity["total_assets"] - self.initial_fund,
            is_liquidated=portfolio.is_liquidated,
            holdings=holdings,
        )
