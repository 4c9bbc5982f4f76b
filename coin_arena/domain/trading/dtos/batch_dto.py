from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from coin_arena.commons.enums.trade_enums import (
    AccountStatusEnum,
    BatchStateEnum,
    ExecutionStatusEnum,
)
from coin_arena.domain.trading.dtos.decision_dto import DecisionDTO
from coin_arena.domain.trading.dtos.trade_dto import TradeDTO


class AccountResultDTO(BaseModel):
    """Per-account outcome of a batch or single-account run."""

    user_id: str
    user_name: str = "unknown"
    portfolio_id: Optional[str] = None
    status: AccountStatusEnum = AccountStatusEnum.NO_TRADE
    decisions: List[DecisionDTO] = Field(default_factory=list)
    executed_trades: int = 0
    error: Optional[str] = None


class BatchReportDTO(BaseModel):
    """Aggregate of one orchestration run; observability only."""

    total: int = 0
    results: List[AccountResultDTO] = Field(default_factory=list)
    state: BatchStateEnum = BatchStateEnum.IDLE
    snapshots_recorded: int = 0
    snapshot_error: Optional[str] = None
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @property
    def executed_trades(self) -> int:
        return sum(r.executed_trades for r in self.results)

    def count(self, status: AccountStatusEnum) -> int:
        return sum(1 for r in self.results if r.status == status)


class ManualTradeRequestDTO(BaseModel):
    user_id: str
    symbol: str
    action: str
    percentage: float
    leverage: Optional[float] = 1


class ManualTradeResultDTO(BaseModel):
    status: ExecutionStatusEnum
    executed: bool
    liquidated: bool = False
    reason: Optional[str] = None
    trade: Optional[TradeDTO] = None
