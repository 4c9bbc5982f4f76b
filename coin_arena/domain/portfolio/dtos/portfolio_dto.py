from datetime import date as Date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from coin_arena.commons.enums.trade_enums import PortfolioTypeEnum


class HoldingDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    portfolio_id: str
    symbol: str
    quantity: float
    avg_cost: float
    leverage: int = 1


class PortfolioDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    type: PortfolioTypeEnum
    cash_balance: float
    liquidated_at: Optional[datetime] = None
    holdings: List[HoldingDTO] = Field(default_factory=list)

    @property
    def is_liquidated(self) -> bool:
        return self.liquidated_at is not None

    @property
    def symbols(self) -> List[str]:
        return sorted({h.symbol for h in self.holdings})


class HoldingViewDTO(BaseModel):
    symbol: str
    quantity: float
    avg_cost: float
    leverage: int
    current_price: Optional[float] = None
    market_value: float = 0.0
    profit_loss: float = 0.0
    profit_loss_percent: float = 0.0


class PortfolioViewDTO(BaseModel):
    portfolio_id: str
    user_id: str
    type: PortfolioTypeEnum
    cash_balance: float
    holdings_value: float
    total_assets: float
    profit_loss: float
    is_liquidated: bool = False
    holdings: List[HoldingViewDTO] = Field(default_factory=list)


class LeaderboardEntryDTO(BaseModel):
    rank: int = 0
    user_id: str
    name: str
    avatar: Optional[str] = None
    type: PortfolioTypeEnum
    total_assets: float
    profit_loss: float
    profit_loss_percent: float
    holdings_count: int
    is_liquidated: bool = False
    latest_monologue: Optional[str] = None


class SnapshotDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    portfolio_id: str
    date: Date
    total_assets: float
    cash_balance: float
    holdings_value: float


class EquityPointDTO(BaseModel):
    date: Date
    total_assets: float
    profit_loss: float
