from sqlalchemy import (
    Column,
    String,
    Float,
    Date,
    ForeignKey,
    UniqueConstraint,
)

from coin_arena.infrastructure.database.models.base import BaseModel


class PortfolioSnapshotModel(BaseModel):
    """
    One equity data point per portfolio per calendar day.

    - Upserted after each batch: the last write of the day wins.
    """

    __tablename__ = "portfolio_snapshots"

    portfolio_id = Column(
        String,
        ForeignKey('portfolios.id', ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date = Column(Date, nullable=False, index=True)
    total_assets = Column(Float, nullable=False)
    cash_balance = Column(Float, nullable=False)
    holdings_value = Column(Float, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "portfolio_id",
            "date",
            name="uq_snapshot_portfolio_date",
        ),
    )
