from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class CoinTickerDTO(BaseModel):
    """24h ticker for one symbol."""

    symbol: str
    name: str
    price: float
    price_change: float = 0.0
    price_change_percent: float = 0.0
    high_24h: float = 0.0
    low_24h: float = 0.0
    volume: float = 0.0
    quote_volume: float = 0.0


class MarketSnapshotDTO(BaseModel):
    """Shared, read-only market view handed to every account of a batch."""

    tickers: List[CoinTickerDTO] = Field(default_factory=list)
    fetched_at: datetime = Field(default_factory=datetime.now)

    @property
    def prices(self) -> Dict[str, float]:
        return {t.symbol: t.price for t in self.tickers}

    def price_of(self, symbol: str) -> Optional[float]:
        return self.prices.get(symbol)
