import asyncio
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

from coin_arena.commons.enums.trade_enums import (
    AccountStatusEnum,
    BatchStateEnum,
    PortfolioTypeEnum,
)
from coin_arena.domain.ledger.ledger_math import merge_prices
from coin_arena.domain.portfolio.snapshot_recorder import SnapshotRecorder
from coin_arena.domain.trading.dtos.agent_dto import PersonalityDTO
from coin_arena.domain.trading.dtos.batch_dto import AccountResultDTO, BatchReportDTO
from coin_arena.domain.trading.dtos.market_dto import MarketSnapshotDTO
from coin_arena.domain.trading.errors import TradingError
from coin_arena.domain.trading.liquidation import LiquidationMonitor
from coin_arena.domain.trading.market_summary import build_market_summary
from coin_arena.domain.trading.styles import resolve_persona
from coin_arena.domain.trading.trade_executor import TradeExecutor
from coin_arena.infrastructure.agents.decision_source_base import (
    AuthClient,
    DecisionSource,
    DecisionSourceError,
)
from coin_arena.infrastructure.database.client import DatabaseClient
from coin_arena.infrastructure.database.models.portfolio_model import PortfolioModel
from coin_arena.infrastructure.database.models.user_model import UserModel
from coin_arena.infrastructure.database.repositories.holding_repository import HoldingRepository
from coin_arena.infrastructure.database.repositories.portfolio_repository import PortfolioRepository
from coin_arena.infrastructure.database.repositories.user_repository import UserRepository
from coin_arena.infrastructure.market.price_oracle_base import PriceOracle, PriceOracleError

logger = logging.getLogger(__name__)


class BatchOrchestrator:
    """
    Drives every active AI portfolio through one trading round.

    IDLE -> FETCHING_MARKET -> DISPATCHING -> COMPLETED

    All accounts share one market snapshot. Accounts run concurrently up
    to `concurrency`; each account's pipeline is strictly sequential and
    its failures never leave the account boundary.
    """

    def __init__(
        self,
        db_client: DatabaseClient,
        price_oracle: PriceOracle,
        decision_source: DecisionSource,
        auth_client: AuthClient,
        executor: TradeExecutor,
        liquidation: LiquidationMonitor,
        snapshots: SnapshotRecorder,
        concurrency: int = 5,
        max_decisions: int = 3,
    ):
        self.db_client = db_client
        self.price_oracle = price_oracle
        self.decision_source = decision_source
        self.auth_client = auth_client
        self.executor = executor
        self.liquidation = liquidation
        self.snapshots = snapshots
        self.concurrency = max(1, concurrency)
        self.max_decisions = max_decisions
        self.state = BatchStateEnum.IDLE

    # ==========================
    #        BATCH
    # ==========================

    async def run_batch(self) -> BatchReportDTO:
        logger.info("🚀 Starting trading batch")
        try:
            report = await self._dispatch()
        except Exception:
            self._set_state(BatchStateEnum.IDLE)
            raise

        logger.info(
            f"🏁 Batch finished: {report.total} accounts, "
            f"{report.executed_trades} trades, "
            f"success={report.count(AccountStatusEnum.SUCCESS)} "
            f"no_trade={report.count(AccountStatusEnum.NO_TRADE)} "
            f"error={report.count(AccountStatusEnum.ERROR)} "
            f"liquidated={report.count(AccountStatusEnum.LIQUIDATED)}"
        )
        return report

    async def _dispatch(self) -> BatchReportDTO:
        report = BatchReportDTO()

        self._set_state(BatchStateEnum.FETCHING_MARKET)
        market = await self._fetch_market()

        async with self.db_client.get_session() as session:
            accounts = await PortfolioRepository(session).list_active_with_users(
                PortfolioTypeEnum.AI
            )

        self._set_state(BatchStateEnum.DISPATCHING)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def guarded(portfolio: PortfolioModel, user: UserModel) -> AccountResultDTO:
            async with semaphore:
                return await self._run_account(user, portfolio, market)

        results = await asyncio.gather(
            *(guarded(portfolio, user) for portfolio, user in accounts)
        )
        report.results = list(results)
        report.total = len(report.results)

        try:
            prices = await self._valuation_prices(market.prices)
            report.snapshots_recorded = await self.snapshots.record_daily(prices)
        except Exception as e:
            logger.error(f"❌ Post-batch snapshot failed: {e}")
            report.snapshot_error = str(e)

        self._set_state(BatchStateEnum.COMPLETED)
        report.state = self.state
        report.finished_at = datetime.now()
        return report

    async def run_single_account(self, user_id: str) -> AccountResultDTO:
        """Ad-hoc trigger for one user's AI portfolio. No snapshot is taken."""
        async with self.db_client.get_session() as session:
            user = await UserRepository(session).get_by_id(user_id)
            portfolio = await PortfolioRepository(session).get_for_user(
                user_id, PortfolioTypeEnum.AI
            )

        if user is None:
            return self._failed(user_id, None, None, f"User {user_id} not found")
        if portfolio is None:
            return self._failed(user_id, user.name, None, "AI portfolio not found")
        if portfolio.is_liquidated:
            return self._failed(
                user_id, user.name, portfolio.id, "Portfolio is liquidated"
            )

        try:
            market = await self._fetch_market()
        except PriceOracleError as e:
            return self._failed(
                user_id, user.name, portfolio.id, f"Market data unavailable: {e}"
            )

        return await self._run_account(user, portfolio, market)

    # ==========================
    #        ACCOUNT
    # ==========================

    async def _run_account(
        self,
        user: UserModel,
        portfolio: PortfolioModel,
        market: MarketSnapshotDTO,
    ) -> AccountResultDTO:
        result = AccountResultDTO(
            user_id=user.id,
            user_name=user.name or "unknown",
            portfolio_id=portfolio.id,
        )

        try:
            access_token = await self._ensure_token(user)
            personality = await self._personality(access_token, user)
            persona = resolve_persona(
                user.trading_style, user.custom_persona, personality.shades
            )

            async with self.db_client.get_session() as session:
                state = await PortfolioRepository(session).get_dto(portfolio.id)
            if state is None or state.is_liquidated:
                return self._failed(
                    user.id, user.name, portfolio.id, "Portfolio is no longer active"
                )

            summary = build_market_summary(state, market.tickers)
            decisions = await self.decision_source.get_decisions(
                access_token, summary, personality, persona
            )
            if len(decisions) > self.max_decisions:
                logger.info(
                    f"Capping {len(decisions)} decisions to {self.max_decisions} "
                    f"for user={user.id}"
                )
            result.decisions = decisions[: self.max_decisions]

            errors: List[str] = []
            for decision in result.decisions:
                try:
                    outcome = await self.executor.execute(user.id, portfolio.id, decision)
                except (PriceOracleError, TradingError) as e:
                    logger.error(
                        f"❌ {decision.action.value} {decision.symbol} failed "
                        f"for user={user.id}: {e}"
                    )
                    errors.append(f"{decision.action.value} {decision.symbol}: {e}")
                    continue
                if outcome.executed:
                    result.executed_trades += 1

            if result.executed_trades > 0:
                prices = await self._valuation_prices(
                    market.prices, portfolio_id=portfolio.id
                )
                if await self.liquidation.check_and_liquidate(portfolio.id, prices):
                    result.status = AccountStatusEnum.LIQUIDATED
                    return result
                result.status = AccountStatusEnum.SUCCESS
            elif errors:
                result.status = AccountStatusEnum.ERROR

            if errors:
                result.error = "; ".join(errors)

        except Exception as e:
            logger.error(f"❌ Account user={user.id} failed: {e}")
            result.status = AccountStatusEnum.ERROR
            result.error = str(e)

        return result

    async def _ensure_token(self, user: UserModel) -> str:
        if not self.auth_client.is_expiring_soon(user.token_expires_at):
            return user.access_token

        token = await self.auth_client.refresh(user.refresh_token)
        async with self.db_client.get_session() as session:
            async with session.begin():
                await UserRepository(session).update_tokens(user.id, token)
        return token.access_token

    async def _personality(self, access_token: str, user: UserModel) -> PersonalityDTO:
        try:
            personality = await self.decision_source.get_personality(access_token)
        except DecisionSourceError as e:
            logger.warning(f"Personalization unavailable for user={user.id}: {e}")
            personality = PersonalityDTO()

        if user.bio and not personality.bio:
            personality.bio = user.bio
        return personality

    # ==========================
    #        MARKET
    # ==========================

    async def _fetch_market(self) -> MarketSnapshotDTO:
        try:
            tickers = await self.price_oracle.get_top_tickers()
        except PriceOracleError as e:
            logger.error(f"❌ Could not fetch market snapshot: {e}")
            raise
        logger.info(f"📈 Market snapshot with {len(tickers)} tickers")
        return MarketSnapshotDTO(tickers=tickers)

    async def _valuation_prices(
        self,
        base: Mapping[str, float],
        portfolio_id: Optional[str] = None,
    ) -> Dict[str, float]:
        """
        Market prices plus oracle prices for held symbols outside the
        snapshot. A failed supplemental lookup leaves those symbols out.
        """
        async with self.db_client.get_session() as session:
            holdings = HoldingRepository(session)
            if portfolio_id is None:
                held = await holdings.distinct_symbols()
            else:
                held = [h.symbol for h in await holdings.list_for_portfolio(portfolio_id)]

        missing = self._missing(held, base)
        if not missing:
            return dict(base)

        try:
            extra = await self.price_oracle.get_prices(missing)
        except PriceOracleError as e:
            logger.warning(f"Supplemental prices unavailable for {missing}: {e}")
            extra = {}
        return merge_prices(base, extra)

    @staticmethod
    def _missing(symbols: Iterable[str], prices: Mapping[str, float]) -> List[str]:
        return sorted({s for s in symbols if s not in prices})

    # ------------------------
    # HELPERS
    # ------------------------

    def _set_state(self, state: BatchStateEnum) -> None:
        logger.debug(f"Batch state {self.state.value} -> {state.value}")
        self.state = state

    @staticmethod
    def _failed(
        user_id: str,
        user_name: Optional[str],
        portfolio_id: Optional[str],
        message: str,
    ) -> AccountResultDTO:
        logger.warning(f"⚠️ user={user_id}: {message}")
        return AccountResultDTO(
            user_id=user_id,
            user_name=user_name or "unknown",
            portfolio_id=portfolio_id,
            status=AccountStatusEnum.ERROR,
            error=message,
        )
