from typing import Protocol, List, Dict, Iterable

from coin_arena.domain.trading.dtos.market_dto import CoinTickerDTO


class PriceOracle(Protocol):
    async def get_top_tickers(self) -> List[CoinTickerDTO]: ...

    async def get_price(self, symbol: str) -> float: ...

    async def get_prices(self, symbols: Iterable[str]) -> Dict[str, float]:
        """
        Current prices keyed by symbol. Unavailable symbols are omitted
        from the map instead of failing the whole call.
        """
        ...

    async def close(self) -> None: ...


class PriceOracleError(Exception):
    """Market data could not be fetched."""
    pass
