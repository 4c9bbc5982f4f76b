class TradingError(Exception):
    """Base class for ledger / trading failures surfaced to callers."""
    pass


class LedgerConflictError(TradingError):
    """Concurrent writers kept invalidating the portfolio; retries exhausted."""
    pass


class ManualTradeError(TradingError):
    """Invalid manual trade request."""
    pass


class PortfolioNotFoundError(TradingError):
    pass


class PortfolioLiquidatedError(TradingError):
    pass


class UserNotFoundError(TradingError):
    pass
