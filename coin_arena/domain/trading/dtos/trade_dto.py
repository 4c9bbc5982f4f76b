from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from coin_arena.commons.enums.trade_enums import ExecutionStatusEnum, TradeSideEnum


class TradeDTO(BaseModel):
    """Executed trade, as recorded in the audit trail."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    user_id: str
    portfolio_id: str
    symbol: str
    side: TradeSideEnum
    quantity: float
    price: float
    total: float
    leverage: int = 1
    reason: str = ""
    monologue: Optional[str] = None
    created_at: Optional[datetime] = None


class ExecutionResultDTO(BaseModel):
    """
    Outcome of one executor call. Guard conditions (HOLD, dust, missing
    holding, unknown portfolio) come back as SKIPPED with a reason.
    """

    status: ExecutionStatusEnum
    reason: Optional[str] = None
    trade: Optional[TradeDTO] = None

    @property
    def executed(self) -> bool:
        return self.status == ExecutionStatusEnum.EXECUTED

    @classmethod
    def skipped(cls, reason: str) -> "ExecutionResultDTO":
        return cls(status=ExecutionStatusEnum.SKIPPED, reason=reason)

    @classmethod
    def done(cls, trade: TradeDTO) -> "ExecutionResultDTO":
        return cls(status=ExecutionStatusEnum.EXECUTED, trade=trade)
