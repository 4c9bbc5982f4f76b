import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coin_arena.infrastructure.database.models.holding_model import HoldingModel

logger = logging.getLogger(__name__)


class HoldingRepository:
    """Repository for open positions. Callers own the transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_for_portfolio(self, portfolio_id: str) -> List[HoldingModel]:
        stmt = (
            select(HoldingModel)
            .where(HoldingModel.portfolio_id == portfolio_id)
            .order_by(HoldingModel.symbol, HoldingModel.leverage)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_for_symbol(
        self,
        portfolio_id: str,
        symbol: str,
    ) -> List[HoldingModel]:
        """Every leverage tier held for one symbol."""
        stmt = (
            select(HoldingModel)
            .where(
                HoldingModel.portfolio_id == portfolio_id,
                HoldingModel.symbol == symbol,
            )
            .order_by(HoldingModel.leverage)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_tier(
        self,
        portfolio_id: str,
        symbol: str,
        leverage: int,
    ) -> Optional[HoldingModel]:
        stmt = select(HoldingModel).where(
            HoldingModel.portfolio_id == portfolio_id,
            HoldingModel.symbol == symbol,
            HoldingModel.leverage == leverage,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def distinct_symbols(self) -> List[str]:
        """All symbols held by any portfolio."""
        stmt = select(HoldingModel.symbol).distinct()
        result = await self.session.execute(stmt)
        return sorted(result.scalars().all())

    def add(self, holding: HoldingModel) -> HoldingModel:
        self.session.add(holding)
        return holding

    async def remove(self, holding: HoldingModel) -> None:
        await self.session.delete(holding)
