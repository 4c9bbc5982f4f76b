from datetime import datetime, timedelta
from typing import Iterable, Optional

import pytest
import pytest_asyncio
from sqlalchemy import select

from coin_arena.commons.enums.trade_enums import PortfolioTypeEnum
from coin_arena.domain.portfolio.dtos.portfolio_dto import PortfolioDTO
from coin_arena.infrastructure.database.client import DatabaseClient
from coin_arena.infrastructure.database.models.holding_model import HoldingModel
from coin_arena.infrastructure.database.models.trade_model import TradeModel
from coin_arena.infrastructure.database.repositories.portfolio_repository import PortfolioRepository
from coin_arena.infrastructure.database.repositories.user_repository import UserRepository


@pytest_asyncio.fixture
async def db_client(tmp_path):
    """File-backed SQLite ledger, fresh schema per test."""
    client = DatabaseClient(f"sqlite+aiosqlite:///{tmp_path / 'arena.db'}")
    await client.init()
    yield client
    await client.close()


@pytest.fixture
def create_user(db_client):
    """Factory: persisted user with a token valid for one day."""

    async def _create(name: str = "trader", **extra):
        extra.setdefault("token_expires_at", datetime.now() + timedelta(days=1))
        async with db_client.get_session() as session:
            async with session.begin():
                return await UserRepository(session).create(
                    name=name,
                    access_token=f"token-{name}",
                    refresh_token=f"refresh-{name}",
                    **extra,
                )

    return _create


@pytest.fixture
def create_portfolio(db_client):
    """
    Factory: portfolio with optional holdings given as
    (symbol, quantity, avg_cost, leverage) tuples. Returns the id.
    """

    async def _create(
        user_id: str,
        portfolio_type: PortfolioTypeEnum = PortfolioTypeEnum.AI,
        cash: float = 10_000.0,
        holdings: Iterable[tuple] = (),
        liquidated: bool = False,
    ) -> str:
        async with db_client.get_session() as session:
            async with session.begin():
                model = await PortfolioRepository(session).create(
                    user_id, portfolio_type, cash
                )
                for symbol, quantity, avg_cost, leverage in holdings:
                    session.add(
                        HoldingModel(
                            portfolio_id=model.id,
                            symbol=symbol,
                            quantity=quantity,
                            avg_cost=avg_cost,
                            leverage=leverage,
                        )
                    )
                if liquidated:
                    model.liquidated_at = datetime.now()
                    model.bump_version()
                return model.id

    return _create


@pytest.fixture
def load_portfolio(db_client):
    async def _load(portfolio_id: str) -> Optional[PortfolioDTO]:
        async with db_client.get_session() as session:
            return await PortfolioRepository(session).get_dto(portfolio_id)

    return _load


@pytest.fixture
def load_trades(db_client):
    """Trades of a portfolio, oldest first."""

    async def _load(portfolio_id: str):
        async with db_client.get_session() as session:
            res = await session.execute(
                select(TradeModel)
                .where(TradeModel.portfolio_id == portfolio_id)
                .order_by(TradeModel.created_at)
            )
            return list(res.scalars().all())

    return _load
