from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from coin_arena.commons.enums.trade_enums import PortfolioTypeEnum
from coin_arena.domain.portfolio.snapshot_recorder import SnapshotRecorder
from coin_arena.infrastructure.database.models.portfolio_snapshot_model import PortfolioSnapshotModel

pytestmark = pytest.mark.integration


@pytest.fixture
def recorder(db_client):
    return SnapshotRecorder(db_client=db_client)


async def snapshots_of(db_client, portfolio_id: str):
    async with db_client.get_session() as session:
        res = await session.execute(
            select(PortfolioSnapshotModel).where(PortfolioSnapshotModel.portfolio_id == portfolio_id)
        )
        return list(res.scalars().all())


@pytest.mark.asyncio
async def test_same_day_snapshot_is_overwritten(recorder, db_client, create_user, create_portfolio):
    user = await create_user()
    pid = await create_portfolio(user.id, cash=5_000.0, holdings=[("BTCUSDT", 0.1, 50_000.0, 2)])

    await recorder.record_daily({"BTCUSDT": 50_000.0})
    await recorder.record_daily({"BTCUSDT": 60_000.0})

    rows = await snapshots_of(db_client, pid)
    assert len(rows) == 1
    assert rows[0].date == datetime.now(timezone.utc).date()
    assert rows[0].cash_balance == pytest.approx(5_000)
    assert rows[0].holdings_value == pytest.approx(7_000)
    assert rows[0].total_assets == pytest.approx(12_000)


@pytest.mark.asyncio
async def test_records_every_portfolio_by_default(recorder, create_user, create_portfolio):
    alice = await create_user("alice")
    bob = await create_user("bob")
    await create_portfolio(alice.id)
    await create_portfolio(alice.id, PortfolioTypeEnum.MANUAL)
    await create_portfolio(bob.id)

    assert await recorder.record_daily({}) == 3


@pytest.mark.asyncio
async def test_single_portfolio_snapshot(recorder, db_client, create_user, create_portfolio):
    alice = await create_user("alice")
    bob = await create_user("bob")
    pid = await create_portfolio(alice.id)
    other = await create_portfolio(bob.id)

    assert await recorder.record_daily({}, portfolio_id=pid) == 1
    assert len(await snapshots_of(db_client, pid)) == 1
    assert await snapshots_of(db_client, other) == []


@pytest.mark.asyncio
async def test_liquidated_portfolio_snapshots_zero(recorder, db_client, create_user, create_portfolio):
    user = await create_user()
    pid = await create_portfolio(user.id, cash=123.0, liquidated=True)

    await recorder.record_daily({})

    row = (await snapshots_of(db_client, pid))[0]
    assert (row.total_assets, row.cash_balance, row.holdings_value) == (0.0, 0.0, 0.0)


@pytest.mark.asyncio
async def test_unpriced_holdings_are_left_out(recorder, db_client, create_user, create_portfolio):
    user = await create_user()
    pid = await create_portfolio(user.id, cash=1_000.0, holdings=[("NEWUSDT", 5, 10.0, 1)])

    await recorder.record_daily({"BTCUSDT": 1.0})

    row = (await snapshots_of(db_client, pid))[0]
    assert row.total_assets == pytest.approx(1_000)
    assert row.holdings_value == 0.0
