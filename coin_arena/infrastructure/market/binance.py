import json
import logging
from typing import Dict, Iterable, List, Optional

import httpx

from coin_arena.domain.trading.dtos.market_dto import CoinTickerDTO
from coin_arena.infrastructure.market.price_oracle_base import (
    PriceOracle,
    PriceOracleError,
)

logger = logging.getLogger(__name__)


class BinanceClient(PriceOracle):
    """Public Binance spot REST endpoints used as the price oracle."""

    BASE_URL = "https://api.binance.com"
    DEFAULT_SYMBOLS: List[str] = [
        "BTCUSDT", "ETHUSDT", "BNBUSDT", "SOLUSDT", "XRPUSDT",
        "DOGEUSDT", "ADAUSDT", "AVAXUSDT", "DOTUSDT", "LINKUSDT",
    ]

    def __init__(
        self,
        base_url: Optional[str] = None,
        symbols: Optional[List[str]] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.symbols = symbols or self.DEFAULT_SYMBOLS
        transport = httpx.AsyncHTTPTransport(retries=3)
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            transport=transport,
            timeout=timeout,
        )

    async def close(self) -> None:
        await self.client.aclose()

    # ------------------------------------------------------------------
    # Tickers
    # ------------------------------------------------------------------
    async def get_top_tickers(self) -> List[CoinTickerDTO]:
        """
        24h tickers for the configured symbol set, sorted by quote volume.
        """
        data = await self._get(
            "/api/v3/ticker/24hr",
            params={"symbols": json.dumps(self.symbols, separators=(",", ":"))},
        )

        try:
            tickers = [self._map_ticker(t) for t in data]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"Malformed ticker payload from Binance: {e}")
            raise PriceOracleError(f"Malformed ticker payload: {e}") from e
        tickers.sort(key=lambda t: t.quote_volume, reverse=True)

        logger.debug(f"Fetched {len(tickers)} tickers from Binance")
        return tickers

    # ------------------------------------------------------------------
    # Prices
    # ------------------------------------------------------------------
    async def get_price(self, symbol: str) -> float:
        data = await self._get("/api/v3/ticker/price", params={"symbol": symbol})
        try:
            return float(data["price"])
        except (KeyError, TypeError, ValueError) as e:
            raise PriceOracleError(
                f"Malformed price payload for {symbol}: {data}"
            ) from e

    async def get_prices(self, symbols: Iterable[str]) -> Dict[str, float]:
        wanted = sorted({s for s in symbols if s})
        if not wanted:
            return {}

        try:
            data = await self._get(
                "/api/v3/ticker/price",
                params={"symbols": json.dumps(wanted, separators=(",", ":"))},
            )
        except PriceOracleError as e:
            # Binance rejects the whole batch when one symbol is invalid
            logger.warning(
                f"Batch price request failed ({e}), falling back to per-symbol lookups"
            )
            return await self._get_prices_one_by_one(wanted)

        prices: Dict[str, float] = {}
        for item in data:
            try:
                prices[item["symbol"]] = float(item["price"])
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Skipping malformed price entry: {item}")
        return prices

    async def _get_prices_one_by_one(self, symbols: List[str]) -> Dict[str, float]:
        prices: Dict[str, float] = {}
        for symbol in symbols:
            try:
                prices[symbol] = await self.get_price(symbol)
            except PriceOracleError as e:
                logger.warning(f"No price for {symbol}, omitting: {e}")
        return prices

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------
    async def _get(self, path: str, params: Optional[Dict[str, str]] = None):
        try:
            response = await self.client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Binance request failed: {e}")
            raise PriceOracleError(
                f"Binance API error {e.response.status_code} on {path}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Unexpected error calling Binance: {e}")
            raise PriceOracleError(f"Binance request error on {path}: {e}") from e

    @staticmethod
    def _map_ticker(t: Dict) -> CoinTickerDTO:
        symbol = t["symbol"]
        return CoinTickerDTO(
            symbol=symbol,
            name=symbol.replace("USDT", ""),
            price=float(t["lastPrice"]),
            price_change=float(t.get("priceChange", 0.0)),
            price_change_percent=float(t.get("priceChangePercent", 0.0)),
            high_24h=float(t.get("highPrice", 0.0)),
            low_24h=float(t.get("lowPrice", 0.0)),
            volume=float(t.get("volume", 0.0)),
            quote_volume=float(t.get("quoteVolume", 0.0)),
        )
