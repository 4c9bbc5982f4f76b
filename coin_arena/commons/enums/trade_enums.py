from enum import Enum


class PortfolioTypeEnum(str, Enum):
    AI = "AI"
    MANUAL = "MANUAL"


class TradeActionEnum(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class TradeSideEnum(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class AccountStatusEnum(str, Enum):
    SUCCESS = "success"
    NO_TRADE = "no_trade"
    ERROR = "error"
    LIQUIDATED = "liquidated"


class ExecutionStatusEnum(str, Enum):
    EXECUTED = "executed"
    SKIPPED = "skipped"


class BatchStateEnum(str, Enum):
    IDLE = "idle"
    FETCHING_MARKET = "fetching_market"
    DISPATCHING = "dispatching"
    COMPLETED = "completed"


class SnapshotPeriodEnum(str, Enum):
    ONE_DAY = "1D"
    ONE_WEEK = "1W"
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    ALL = "ALL"

    @property
    def days(self):
        return {
            "1D": 1,
            "1W": 7,
            "1M": 30,
            "3M": 90,
        }.get(self.value)
