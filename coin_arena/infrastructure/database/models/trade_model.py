"""
Trade Database Model

Append-only audit record of an executed BUY or SELL.
"""

from sqlalchemy import Column, String, Float, Integer, Text, ForeignKey, Enum

from coin_arena.commons.enums.trade_enums import TradeSideEnum
from coin_arena.infrastructure.database.models.base import BaseModel


class TradeModel(BaseModel):
    """Trade database model."""

    __tablename__ = 'trades'

    user_id = Column(String, ForeignKey('users.id'), nullable=False, index=True)
    portfolio_id = Column(
        String,
        ForeignKey('portfolios.id', ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    symbol = Column(String, nullable=False)
    side = Column(Enum(TradeSideEnum), nullable=False)
    quantity = Column(Float, nullable=False)
    price = Column(Float, nullable=False)
    total = Column(Float, nullable=False)
    leverage = Column(Integer, nullable=False, default=1)
    reason = Column(Text, nullable=False, default="")
    monologue = Column(Text, nullable=True)
