import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coin_arena.domain.trading.dtos.trade_dto import TradeDTO
from coin_arena.infrastructure.database.models.trade_model import TradeModel

logger = logging.getLogger(__name__)


class TradeRepository:
    """
    Append-only trade audit trail.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize repository.

        Args:
            session: Database session
        """
        self.session = session

    async def append(self, trade: TradeDTO) -> TradeDTO:
        """
        Stage a trade record in the current transaction.

        Args:
            trade: Trade to record

        Returns:
            The trade with its generated id
        """
        model = TradeModel(
            user_id=trade.user_id,
            portfolio_id=trade.portfolio_id,
            symbol=trade.symbol,
            side=trade.side,
            quantity=trade.quantity,
            price=trade.price,
            total=trade.total,
            leverage=trade.leverage,
            reason=trade.reason,
            monologue=trade.monologue,
        )

        self.session.add(model)
        await self.session.flush()

        return TradeDTO.model_validate(model)

    async def list_for_portfolio(
        self,
        portfolio_id: str,
        limit: Optional[int] = None,
    ) -> List[TradeDTO]:
        """Most recent first."""
        stmt = (
            select(TradeModel)
            .where(TradeModel.portfolio_id == portfolio_id)
            .order_by(TradeModel.created_at.desc())
        )
        if limit:
            stmt = stmt.limit(limit)

        result = await self.session.execute(stmt)
        return [TradeDTO.model_validate(m) for m in result.scalars().all()]

    async def latest_monologue(self, portfolio_id: str) -> Optional[str]:
        stmt = (
            select(TradeModel.monologue)
            .where(
                TradeModel.portfolio_id == portfolio_id,
                TradeModel.monologue.is_not(None),
                TradeModel.monologue != "",
            )
            .order_by(TradeModel.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
