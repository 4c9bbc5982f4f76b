import asyncio
from datetime import datetime

import pytest
from unittest.mock import AsyncMock, MagicMock

from coin_arena.commons.enums.trade_enums import (
    AccountStatusEnum,
    BatchStateEnum,
    PortfolioTypeEnum,
)
from coin_arena.domain.portfolio.snapshot_recorder import SnapshotRecorder
from coin_arena.domain.trading.batch_orchestrator import BatchOrchestrator
from coin_arena.domain.trading.dtos.agent_dto import PersonalityDTO, TokenDTO
from coin_arena.domain.trading.dtos.decision_dto import DecisionDTO, hold_decision
from coin_arena.domain.trading.dtos.market_dto import CoinTickerDTO
from coin_arena.domain.trading.liquidation import LiquidationMonitor
from coin_arena.domain.trading.trade_executor import TradeExecutor
from coin_arena.infrastructure.agents.decision_source_base import (
    AuthenticationError,
    DecisionSourceError,
)
from coin_arena.infrastructure.database.repositories.user_repository import UserRepository
from coin_arena.infrastructure.market.price_oracle_base import PriceOracleError

pytestmark = pytest.mark.integration

PRICES = {"BTCUSDT": 50_000.0, "ETHUSDT": 2_000.0}


def buy(symbol: str = "BTCUSDT", percentage: float = 10, leverage: int = 1) -> DecisionDTO:
    return DecisionDTO(action="BUY", symbol=symbol, percentage=percentage, leverage=leverage, reason="test")


@pytest.fixture
def price_oracle():
    oracle = MagicMock()
    oracle.get_top_tickers = AsyncMock(return_value=[
        CoinTickerDTO(symbol=s, name=s.replace("USDT", ""), price=p) for s, p in PRICES.items()
    ])
    oracle.get_price = AsyncMock(side_effect=lambda symbol: PRICES[symbol])
    oracle.get_prices = AsyncMock(return_value={})
    return oracle


@pytest.fixture
def decision_source():
    source = MagicMock()
    source.get_personality = AsyncMock(return_value=PersonalityDTO())
    source.get_decisions = AsyncMock(return_value=[hold_decision("quiet market")])
    return source


@pytest.fixture
def auth_client():
    auth = MagicMock()
    auth.is_expiring_soon = MagicMock(return_value=False)
    auth.refresh = AsyncMock()
    return auth


@pytest.fixture
def snapshots(db_client):
    return SnapshotRecorder(db_client=db_client)


@pytest.fixture
def make_orchestrator(db_client, price_oracle, decision_source, auth_client, snapshots):
    def _make(**overrides) -> BatchOrchestrator:
        kwargs = dict(
            db_client=db_client,
            price_oracle=price_oracle,
            decision_source=decision_source,
            auth_client=auth_client,
            executor=TradeExecutor(db_client=db_client, price_oracle=price_oracle),
            liquidation=LiquidationMonitor(db_client=db_client),
            snapshots=snapshots,
            concurrency=1,
            max_decisions=3,
        )
        kwargs.update(overrides)
        return BatchOrchestrator(**kwargs)

    return _make


def by_name(report):
    return {r.user_name: r for r in report.results}


# ==================== BATCH ====================


@pytest.mark.asyncio
async def test_failing_account_does_not_affect_others(
    make_orchestrator, decision_source, price_oracle, create_user, create_portfolio, load_portfolio
):
    alice = await create_user("alice")
    bob = await create_user("bob")
    carol = await create_user("carol")
    alice_pid = await create_portfolio(alice.id)
    await create_portfolio(bob.id)
    await create_portfolio(carol.id)

    async def decisions(access_token, summary, personality, persona):
        if access_token == "token-bob":
            raise DecisionSourceError("act api exploded")
        if access_token == "token-alice":
            return [buy()]
        return [hold_decision()]

    decision_source.get_decisions.side_effect = decisions
    orchestrator = make_orchestrator()

    report = await orchestrator.run_batch()

    results = by_name(report)
    assert report.total == 3
    assert results["alice"].status == AccountStatusEnum.SUCCESS
    assert results["alice"].executed_trades == 1
    assert results["bob"].status == AccountStatusEnum.ERROR
    assert "act api exploded" in results["bob"].error
    assert results["carol"].status == AccountStatusEnum.NO_TRADE
    assert report.executed_trades == 1
    assert report.state == BatchStateEnum.COMPLETED
    assert orchestrator.state == BatchStateEnum.COMPLETED
    price_oracle.get_top_tickers.assert_awaited_once()
    assert (await load_portfolio(alice_pid)).cash_balance == pytest.approx(9_000)


@pytest.mark.asyncio
async def test_only_active_ai_portfolios_are_dispatched(
    make_orchestrator, decision_source, create_user, create_portfolio
):
    alice = await create_user("alice")
    bob = await create_user("bob")
    await create_portfolio(alice.id)
    await create_portfolio(alice.id, PortfolioTypeEnum.MANUAL)
    await create_portfolio(bob.id, liquidated=True)

    report = await make_orchestrator().run_batch()

    assert report.total == 1
    assert report.results[0].user_name == "alice"
    assert decision_source.get_decisions.await_count == 1
    # snapshots cover the whole population
    assert report.snapshots_recorded == 3


@pytest.mark.asyncio
async def test_decisions_are_capped(make_orchestrator, decision_source, create_user, create_portfolio):
    user = await create_user("alice")
    await create_portfolio(user.id)
    decision_source.get_decisions.return_value = [buy(percentage=5) for _ in range(5)]

    report = await make_orchestrator().run_batch()

    result = report.results[0]
    assert len(result.decisions) == 3
    assert result.executed_trades == 3


@pytest.mark.asyncio
async def test_market_summary_and_persona_reach_decision_source(
    make_orchestrator, decision_source, create_user, create_portfolio
):
    user = await create_user("alice", custom_persona="Only buy dips.")
    await create_portfolio(user.id, cash=7_777.0)

    await make_orchestrator().run_batch()

    token, summary, personality, persona = decision_source.get_decisions.await_args.args
    assert token == "token-alice"
    assert "BTCUSDT" in summary
    assert "7777.00" in summary
    assert persona == "Only buy dips."


@pytest.mark.asyncio
async def test_expiring_token_is_refreshed_and_persisted(
    make_orchestrator, db_client, auth_client, decision_source, create_user, create_portfolio
):
    user = await create_user("alice")
    await create_portfolio(user.id)
    auth_client.is_expiring_soon.return_value = True
    auth_client.refresh.return_value = TokenDTO(
        access_token="fresh-token", refresh_token="fresh-refresh", expires_in=3600
    )

    report = await make_orchestrator().run_batch()

    assert report.results[0].status == AccountStatusEnum.NO_TRADE
    auth_client.refresh.assert_awaited_once_with("refresh-alice")
    assert decision_source.get_decisions.await_args.args[0] == "fresh-token"

    async with db_client.get_session() as session:
        stored = await UserRepository(session).get_by_id(user.id)
    assert stored.access_token == "fresh-token"
    assert stored.refresh_token == "fresh-refresh"
    assert stored.token_expires_at > datetime.now()


@pytest.mark.asyncio
async def test_refresh_failure_marks_account_error(
    make_orchestrator, auth_client, decision_source, create_user, create_portfolio
):
    user = await create_user("alice")
    await create_portfolio(user.id)
    auth_client.is_expiring_soon.return_value = True
    auth_client.refresh.side_effect = AuthenticationError("refresh token revoked")

    report = await make_orchestrator().run_batch()

    assert report.results[0].status == AccountStatusEnum.ERROR
    assert "revoked" in report.results[0].error
    decision_source.get_decisions.assert_not_called()


@pytest.mark.asyncio
async def test_personalization_failure_is_tolerated(
    make_orchestrator, decision_source, create_user, create_portfolio
):
    user = await create_user("alice")
    await create_portfolio(user.id)
    decision_source.get_personality.side_effect = DecisionSourceError("shades down")
    decision_source.get_decisions.return_value = [buy()]

    report = await make_orchestrator().run_batch()

    assert report.results[0].status == AccountStatusEnum.SUCCESS
    personality = decision_source.get_decisions.await_args.args[2]
    assert personality.shades == []


@pytest.mark.asyncio
async def test_losing_account_is_liquidated_after_trading(
    make_orchestrator, decision_source, create_user, create_portfolio, load_portfolio
):
    user = await create_user("alice")
    # BTC x10 bought at 100k is deep under water at 50k
    pid = await create_portfolio(
        user.id, cash=1_000.0, holdings=[("BTCUSDT", 1, 100_000.0, 10)]
    )
    decision_source.get_decisions.return_value = [buy("ETHUSDT", percentage=50)]

    report = await make_orchestrator().run_batch()

    assert report.results[0].status == AccountStatusEnum.LIQUIDATED
    portfolio = await load_portfolio(pid)
    assert portfolio.is_liquidated
    assert portfolio.holdings == []


@pytest.mark.asyncio
async def test_held_symbols_outside_market_are_priced_for_snapshots(
    make_orchestrator, price_oracle, create_user, create_portfolio
):
    user = await create_user("alice")
    await create_portfolio(user.id, holdings=[("DOGEUSDT", 100, 0.1, 1)])
    price_oracle.get_prices.return_value = {"DOGEUSDT": 0.2}

    report = await make_orchestrator().run_batch()

    price_oracle.get_prices.assert_awaited_once_with(["DOGEUSDT"])
    assert report.snapshots_recorded == 1
    assert report.snapshot_error is None


@pytest.mark.asyncio
async def test_snapshot_failure_is_reported(make_orchestrator, create_user, create_portfolio):
    user = await create_user("alice")
    await create_portfolio(user.id)
    broken = MagicMock()
    broken.record_daily = AsyncMock(side_effect=RuntimeError("disk full"))

    report = await make_orchestrator(snapshots=broken).run_batch()

    assert report.snapshot_error == "disk full"
    assert report.state == BatchStateEnum.COMPLETED
    assert report.results[0].status == AccountStatusEnum.NO_TRADE


@pytest.mark.asyncio
async def test_market_failure_aborts_before_dispatch(
    make_orchestrator, price_oracle, decision_source, create_user, create_portfolio
):
    user = await create_user("alice")
    await create_portfolio(user.id)
    price_oracle.get_top_tickers.side_effect = PriceOracleError("binance down")
    orchestrator = make_orchestrator()

    with pytest.raises(PriceOracleError):
        await orchestrator.run_batch()

    assert orchestrator.state == BatchStateEnum.IDLE
    decision_source.get_decisions.assert_not_called()


@pytest.mark.asyncio
async def test_unexpected_market_error_resets_state(
    make_orchestrator, price_oracle, decision_source, create_user, create_portfolio
):
    user = await create_user("alice")
    await create_portfolio(user.id)
    price_oracle.get_top_tickers.side_effect = KeyError("lastPrice")
    orchestrator = make_orchestrator()

    with pytest.raises(KeyError):
        await orchestrator.run_batch()

    assert orchestrator.state == BatchStateEnum.IDLE
    decision_source.get_decisions.assert_not_called()


@pytest.mark.asyncio
async def test_concurrency_is_bounded(make_orchestrator, decision_source, create_user, create_portfolio):
    for i in range(6):
        user = await create_user(f"user{i}")
        await create_portfolio(user.id)

    in_flight = 0
    peak = 0

    async def slow_hold(*args):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.1)
        in_flight -= 1
        return [hold_decision()]

    decision_source.get_decisions.side_effect = slow_hold
    snapshots = MagicMock()
    snapshots.record_daily = AsyncMock(return_value=6)

    report = await make_orchestrator(concurrency=2, snapshots=snapshots).run_batch()

    assert report.total == 6
    assert peak == 2


# ==================== SINGLE ACCOUNT ====================


@pytest.mark.asyncio
async def test_single_account_run(make_orchestrator, decision_source, create_user, create_portfolio):
    user = await create_user("alice")
    await create_portfolio(user.id)
    decision_source.get_decisions.return_value = [buy()]
    snapshots = MagicMock()
    snapshots.record_daily = AsyncMock()

    result = await make_orchestrator(snapshots=snapshots).run_single_account(user.id)

    assert result.status == AccountStatusEnum.SUCCESS
    assert result.executed_trades == 1
    snapshots.record_daily.assert_not_called()


@pytest.mark.asyncio
async def test_single_account_unknown_user(make_orchestrator):
    result = await make_orchestrator().run_single_account("ghost")

    assert result.status == AccountStatusEnum.ERROR
    assert "not found" in result.error


@pytest.mark.asyncio
async def test_single_account_without_ai_portfolio(make_orchestrator, create_user, create_portfolio):
    user = await create_user("alice")
    await create_portfolio(user.id, PortfolioTypeEnum.MANUAL)

    result = await make_orchestrator().run_single_account(user.id)

    assert result.status == AccountStatusEnum.ERROR
    assert result.error == "AI portfolio not found"


@pytest.mark.asyncio
async def test_single_account_liquidated(make_orchestrator, decision_source, create_user, create_portfolio):
    user = await create_user("alice")
    await create_portfolio(user.id, liquidated=True)

    result = await make_orchestrator().run_single_account(user.id)

    assert result.status == AccountStatusEnum.ERROR
    assert "liquidated" in result.error
    decision_source.get_decisions.assert_not_called()
