from .base import Base, BaseModel
from .user_model import UserModel
from .portfolio_model import PortfolioModel
from .holding_model import HoldingModel
from .trade_model import TradeModel
from .portfolio_snapshot_model import PortfolioSnapshotModel


__all__ = [
    "Base",
    "BaseModel",
    "UserModel",
    "PortfolioModel",
    "HoldingModel",
    "TradeModel",
    "PortfolioSnapshotModel",
]
