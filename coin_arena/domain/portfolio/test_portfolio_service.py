from datetime import timedelta

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import func, select

from coin_arena.commons.enums.trade_enums import (
    PortfolioTypeEnum,
    SnapshotPeriodEnum,
    TradeSideEnum,
)
from coin_arena.domain.portfolio.portfolio_service import PortfolioService
from coin_arena.domain.portfolio.snapshot_recorder import snapshot_date
from coin_arena.domain.trading.dtos.trade_dto import TradeDTO
from coin_arena.domain.trading.errors import PortfolioNotFoundError, UserNotFoundError
from coin_arena.infrastructure.database.models.holding_model import HoldingModel
from coin_arena.infrastructure.database.models.portfolio_model import PortfolioModel
from coin_arena.infrastructure.database.models.portfolio_snapshot_model import PortfolioSnapshotModel
from coin_arena.infrastructure.database.models.trade_model import TradeModel
from coin_arena.infrastructure.database.repositories.snapshot_repository import SnapshotRepository
from coin_arena.infrastructure.database.repositories.trade_repository import TradeRepository

pytestmark = pytest.mark.integration

AI = PortfolioTypeEnum.AI


@pytest.fixture
def price_oracle():
    oracle = MagicMock()
    oracle.get_prices = AsyncMock(return_value={"BTCUSDT": 60_000.0})
    return oracle


@pytest.fixture
def service(db_client, price_oracle):
    return PortfolioService(db_client=db_client, price_oracle=price_oracle, initial_fund=100_000.0)


async def count(db_client, model, portfolio_id: str) -> int:
    column = model.id if model is PortfolioModel else model.portfolio_id
    async with db_client.get_session() as session:
        res = await session.execute(select(func.count()).select_from(model).where(column == portfolio_id))
        return res.scalar_one()


async def add_trade(db_client, user_id: str, portfolio_id: str, monologue=None):
    async with db_client.get_session() as session:
        async with session.begin():
            await TradeRepository(session).append(
                TradeDTO(
                    user_id=user_id,
                    portfolio_id=portfolio_id,
                    symbol="BTCUSDT",
                    side=TradeSideEnum.BUY,
                    quantity=0.1,
                    price=50_000.0,
                    total=5_000.0,
                    reason="test",
                    monologue=monologue,
                )
            )


async def add_snapshot(db_client, portfolio_id: str, days_ago: int, total: float):
    async with db_client.get_session() as session:
        async with session.begin():
            await SnapshotRepository(session).upsert(
                portfolio_id=portfolio_id,
                snapshot_date=snapshot_date() - timedelta(days=days_ago),
                total_assets=total,
                cash_balance=total,
                holdings_value=0.0,
            )


# ==================== LIFECYCLE ====================


@pytest.mark.asyncio
async def test_open_portfolio_is_idempotent(service, create_user):
    user = await create_user("alice")

    first = await service.open_portfolio(user.id, AI)
    second = await service.open_portfolio(user.id, AI)

    assert first.id == second.id
    assert first.cash_balance == 100_000.0
    assert first.type == AI


@pytest.mark.asyncio
async def test_ai_and_manual_are_independent(service, create_user):
    user = await create_user("alice")

    ai = await service.open_portfolio(user.id, AI)
    manual = await service.open_portfolio(user.id, PortfolioTypeEnum.MANUAL)

    assert ai.id != manual.id


@pytest.mark.asyncio
async def test_open_for_unknown_user(service):
    with pytest.raises(UserNotFoundError):
        await service.open_portfolio("ghost", AI)


@pytest.mark.asyncio
async def test_close_portfolio_cascades(service, db_client, create_user, create_portfolio):
    user = await create_user("alice")
    pid = await create_portfolio(user.id, holdings=[("BTCUSDT", 0.1, 50_000.0, 2)])
    await add_trade(db_client, user.id, pid)
    await add_snapshot(db_client, pid, 0, 10_000.0)

    await service.close_portfolio(user.id, AI)

    for model in (PortfolioModel, HoldingModel, TradeModel, PortfolioSnapshotModel):
        assert await count(db_client, model, pid) == 0


@pytest.mark.asyncio
async def test_close_missing_portfolio(service, create_user):
    user = await create_user("alice")

    with pytest.raises(PortfolioNotFoundError):
        await service.close_portfolio(user.id, AI)


# ==================== READ MODELS ====================


@pytest.mark.asyncio
async def test_portfolio_view_values_holdings(service, create_user, create_portfolio):
    user = await create_user("alice")
    pid = await create_portfolio(user.id, cash=5_000.0, holdings=[("BTCUSDT", 0.1, 50_000.0, 2)])

    view = await service.get_portfolio_view(pid)

    assert view.total_assets == pytest.approx(12_000)
    assert view.holdings_value == pytest.approx(7_000)
    assert view.profit_loss == pytest.approx(12_000 - 100_000)
    h = view.holdings[0]
    assert h.current_price == 60_000.0
    assert h.market_value == pytest.approx(7_000)
    assert h.profit_loss == pytest.approx(2_000)
    assert h.profit_loss_percent == pytest.approx(40)


@pytest.mark.asyncio
async def test_liquidated_view_is_zero(service, create_user, create_portfolio):
    user = await create_user("alice")
    pid = await create_portfolio(user.id, cash=5_000.0, liquidated=True)

    view = await service.get_portfolio_view(pid, prices={})

    assert view.is_liquidated
    assert view.total_assets == 0.0
    assert view.holdings == []


@pytest.mark.asyncio
async def test_view_of_unknown_portfolio(service):
    with pytest.raises(PortfolioNotFoundError):
        await service.get_portfolio_view("missing", prices={})


@pytest.mark.asyncio
async def test_leaderboard_ranks_by_total_assets(service, price_oracle, db_client, create_user, create_portfolio):
    alice = await create_user("alice")
    bob = await create_user("bob")
    carol = await create_user("carol")
    alice_pid = await create_portfolio(alice.id, cash=90_000.0)
    await create_portfolio(bob.id, cash=100_000.0, holdings=[("BTCUSDT", 1, 50_000.0, 2)])
    await create_portfolio(carol.id, cash=5_000.0, liquidated=True)
    await add_trade(db_client, alice.id, alice_pid, monologue="patience pays")

    board = await service.get_leaderboard(AI)

    assert [e.name for e in board] == ["bob", "alice", "carol"]
    assert [e.rank for e in board] == [1, 2, 3]
    assert board[0].total_assets == pytest.approx(100_000 + 70_000)
    assert board[0].profit_loss_percent == pytest.approx(70)
    assert board[0].holdings_count == 1
    assert board[1].latest_monologue == "patience pays"
    assert board[2].total_assets == 0.0
    assert board[2].is_liquidated
    price_oracle.get_prices.assert_awaited_once_with(["BTCUSDT"])


@pytest.mark.asyncio
async def test_equity_history_periods(service, db_client, create_user, create_portfolio):
    user = await create_user("alice")
    pid = await create_portfolio(user.id)
    await add_snapshot(db_client, pid, 10, 95_000.0)
    await add_snapshot(db_client, pid, 3, 98_000.0)
    await add_snapshot(db_client, pid, 0, 101_000.0)

    week = await service.get_equity_history(user.id, AI, SnapshotPeriodEnum.ONE_WEEK)
    everything = await service.get_equity_history(user.id, AI, SnapshotPeriodEnum.ALL)

    assert [p.total_assets for p in week] == [98_000.0, 101_000.0]
    assert [p.total_assets for p in everything] == [95_000.0, 98_000.0, 101_000.0]
    assert everything[-1].profit_loss == pytest.approx(1_000)
    assert everything[0].date < everything[-1].date


@pytest.mark.asyncio
async def test_equity_history_without_portfolio(service, create_user):
    user = await create_user("alice")

    with pytest.raises(PortfolioNotFoundError):
        await service.get_equity_history(user.id, AI, SnapshotPeriodEnum.ALL)
