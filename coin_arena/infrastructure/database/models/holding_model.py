"""
Holding Database Model

One open position per (portfolio, symbol, leverage). Different leverage
tiers of the same symbol are separate rows.
"""

from sqlalchemy import (
    Column,
    String,
    Float,
    Integer,
    ForeignKey,
    UniqueConstraint,
)

from coin_arena.infrastructure.database.models.base import BaseModel


class HoldingModel(BaseModel):
    """Holding database model."""

    __tablename__ = 'holdings'

    portfolio_id = Column(
        String,
        ForeignKey('portfolios.id', ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    symbol = Column(String, nullable=False)
    quantity = Column(Float, nullable=False)
    avg_cost = Column(Float, nullable=False)
    leverage = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint(
            "portfolio_id",
            "symbol",
            "leverage",
            name="uq_holding_portfolio_symbol_leverage",
        ),
    )
