"""
Portfolio Database Model

One ledger (cash + holdings) per user and portfolio type.
"""

from sqlalchemy import (
    Column,
    String,
    Float,
    Integer,
    DateTime,
    ForeignKey,
    Enum,
    UniqueConstraint,
)

from coin_arena.commons.enums.trade_enums import PortfolioTypeEnum
from coin_arena.infrastructure.database.models.base import BaseModel


class PortfolioModel(BaseModel):
    """
    Portfolio database model.

    `version` is an optimistic-lock counter. Every ledger mutation bumps it
    explicitly, so the UPDATE always carries `WHERE version = <read value>`
    and a concurrent writer surfaces as StaleDataError on flush.
    """
    __tablename__ = 'portfolios'

    user_id = Column(String, ForeignKey('users.id'), nullable=False, index=True)
    type = Column(Enum(PortfolioTypeEnum), nullable=False,
                  default=PortfolioTypeEnum.AI)
    cash_balance = Column(Float, nullable=False)
    liquidated_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {
        "version_id_col": version,
        "version_id_generator": False,
    }

    __table_args__ = (
        UniqueConstraint("user_id", "type", name="uq_portfolio_user_type"),
    )

    @property
    def is_liquidated(self) -> bool:
        return self.liquidated_at is not None

    def bump_version(self) -> None:
        self.version = (self.version or 0) + 1
