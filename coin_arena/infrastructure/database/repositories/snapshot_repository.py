import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coin_arena.domain.portfolio.dtos.portfolio_dto import SnapshotDTO
from coin_arena.infrastructure.database.models.portfolio_snapshot_model import (
    PortfolioSnapshotModel,
)

logger = logging.getLogger(__name__)


class SnapshotRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ==========================
    #        QUERIES
    # ==========================

    async def get(
        self,
        portfolio_id: str,
        snapshot_date: date,
    ) -> Optional[PortfolioSnapshotModel]:
        stmt = select(PortfolioSnapshotModel).where(
            PortfolioSnapshotModel.portfolio_id == portfolio_id,
            PortfolioSnapshotModel.date == snapshot_date,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_portfolio(
        self,
        portfolio_id: str,
        since: Optional[date] = None,
    ) -> List[SnapshotDTO]:
        """
        Snapshot series for one portfolio in ascending date order,
        optionally starting at `since` (inclusive).
        """
        stmt = select(PortfolioSnapshotModel).where(
            PortfolioSnapshotModel.portfolio_id == portfolio_id,
        )
        if since is not None:
            stmt = stmt.where(PortfolioSnapshotModel.date >= since)

        stmt = stmt.order_by(PortfolioSnapshotModel.date.asc())
        result = await self.session.execute(stmt)
        return [SnapshotDTO.model_validate(m) for m in result.scalars().all()]

    # ==========================
    #        COMMANDS
    # ==========================

    async def upsert(
        self,
        *,
        portfolio_id: str,
        snapshot_date: date,
        total_assets: float,
        cash_balance: float,
        holdings_value: float,
    ) -> PortfolioSnapshotModel:
        """
        Insert or overwrite the (portfolio_id, date) row.
        The commit is done by the caller.
        """
        model = await self.get(portfolio_id, snapshot_date)

        if model is None:
            model = PortfolioSnapshotModel(
                portfolio_id=portfolio_id,
                date=snapshot_date,
            )
            self.session.add(model)

        model.total_assets = float(total_assets)
        model.cash_balance = float(cash_balance)
        model.holdings_value = float(holdings_value)

        await self.session.flush()
        return model
