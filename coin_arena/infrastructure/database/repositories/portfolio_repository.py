import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from coin_arena.commons.enums.trade_enums import PortfolioTypeEnum
from coin_arena.domain.portfolio.dtos.portfolio_dto import HoldingDTO, PortfolioDTO
from coin_arena.infrastructure.database.models.holding_model import HoldingModel
from coin_arena.infrastructure.database.models.portfolio_model import PortfolioModel
from coin_arena.infrastructure.database.models.portfolio_snapshot_model import (
    PortfolioSnapshotModel,
)
from coin_arena.infrastructure.database.models.trade_model import TradeModel
from coin_arena.infrastructure.database.models.user_model import UserModel

logger = logging.getLogger(__name__)


class PortfolioRepository:
    """
    Portfolio persistence.

    Never commits: callers wrap mutations in `session.begin()` so that
    cash, holdings and trades land in a single transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ==========================
    #        QUERIES
    # ==========================

    async def get_by_id(self, portfolio_id: str) -> Optional[PortfolioModel]:
        stmt = select(PortfolioModel).where(PortfolioModel.id == portfolio_id)
        res = await self.session.execute(stmt)
        return res.scalar_one_or_none()

    async def get_for_user(
        self,
        user_id: str,
        portfolio_type: PortfolioTypeEnum,
    ) -> Optional[PortfolioModel]:
        stmt = select(PortfolioModel).where(
            PortfolioModel.user_id == user_id,
            PortfolioModel.type == portfolio_type,
        )
        res = await self.session.execute(stmt)
        return res.scalar_one_or_none()

    async def list_all(
        self,
        portfolio_type: Optional[PortfolioTypeEnum] = None,
    ) -> List[PortfolioModel]:
        stmt = select(PortfolioModel).order_by(PortfolioModel.created_at)
        if portfolio_type is not None:
            stmt = stmt.where(PortfolioModel.type == portfolio_type)
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def list_active_with_users(
        self,
        portfolio_type: PortfolioTypeEnum = PortfolioTypeEnum.AI,
    ) -> List[Tuple[PortfolioModel, UserModel]]:
        """Non-liquidated portfolios of a type, joined with their owner."""
        stmt = (
            select(PortfolioModel, UserModel)
            .join(UserModel, UserModel.id == PortfolioModel.user_id)
            .where(
                PortfolioModel.type == portfolio_type,
                PortfolioModel.liquidated_at.is_(None),
            )
            .order_by(PortfolioModel.created_at)
        )
        res = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in res.all()]

    async def get_dto(self, portfolio_id: str) -> Optional[PortfolioDTO]:
        model = await self.get_by_id(portfolio_id)
        if not model:
            return None
        holdings = await self._holdings_of([model.id])
        return self._model_to_dto(model, holdings)

    async def list_dtos(
        self,
        portfolio_type: Optional[PortfolioTypeEnum] = None,
    ) -> List[PortfolioDTO]:
        models = await self.list_all(portfolio_type)
        if not models:
            return []

        holdings = await self._holdings_of([m.id for m in models])
        return [self._model_to_dto(m, holdings) for m in models]

    async def list_dtos_with_users(
        self,
        portfolio_type: Optional[PortfolioTypeEnum] = None,
    ) -> List[Tuple[PortfolioDTO, UserModel]]:
        """Every portfolio (liquidated included) with holdings and owner."""
        stmt = (
            select(PortfolioModel, UserModel)
            .join(UserModel, UserModel.id == PortfolioModel.user_id)
            .order_by(PortfolioModel.created_at)
        )
        if portfolio_type is not None:
            stmt = stmt.where(PortfolioModel.type == portfolio_type)
        res = await self.session.execute(stmt)
        rows = [(row[0], row[1]) for row in res.all()]
        if not rows:
            return []

        holdings = await self._holdings_of([p.id for p, _ in rows])
        return [(self._model_to_dto(p, holdings), u) for p, u in rows]

    # ==========================
    #        COMMANDS
    # ==========================

    async def create(
        self,
        user_id: str,
        portfolio_type: PortfolioTypeEnum,
        initial_cash: float,
    ) -> PortfolioModel:
        model = PortfolioModel(
            user_id=user_id,
            type=portfolio_type,
            cash_balance=initial_cash,
            version=1,
        )
        self.session.add(model)
        await self.session.flush()

        logger.info(
            f"💰 {portfolio_type.value} portfolio created for user={user_id} "
            f"with cash={initial_cash:.2f}"
        )
        return model

    async def liquidate(self, model: PortfolioModel) -> None:
        """Wipe holdings, zero cash and stamp liquidated_at."""
        await self.session.execute(
            delete(HoldingModel).where(HoldingModel.portfolio_id == model.id)
        )
        model.cash_balance = 0.0
        model.liquidated_at = datetime.now()
        model.bump_version()
        await self.session.flush()

    async def delete_cascade(self, model: PortfolioModel) -> None:
        """Account closure: holdings, trades and snapshots go with it."""
        for table in (HoldingModel, TradeModel, PortfolioSnapshotModel):
            await self.session.execute(
                delete(table).where(table.portfolio_id == model.id)
            )
        await self.session.delete(model)
        await self.session.flush()

    # ------------------------
    # HELPERS
    # ------------------------

    async def _holdings_of(self, portfolio_ids: List[str]) -> List[HoldingModel]:
        stmt = select(HoldingModel).where(
            HoldingModel.portfolio_id.in_(portfolio_ids)
        )
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    @staticmethod
    def _model_to_dto(
        model: PortfolioModel,
        holdings: List[HoldingModel],
    ) -> PortfolioDTO:
        return PortfolioDTO(
            id=model.id,
            user_id=model.user_id,
            type=model.type,
            cash_balance=model.cash_balance,
            liquidated_at=model.liquidated_at,
            holdings=[
                HoldingDTO.model_validate(h)
                for h in holdings
                if h.portfolio_id == model.id
            ],
        )
