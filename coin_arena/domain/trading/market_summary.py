from typing import List

from coin_arena.domain.ledger.ledger_math import leveraged_market_value
from coin_arena.domain.portfolio.dtos.portfolio_dto import PortfolioDTO
from coin_arena.domain.trading.dtos.market_dto import CoinTickerDTO


def build_market_summary(portfolio: PortfolioDTO, tickers: List[CoinTickerDTO]) -> str:
    """
    Plain-text market + account state handed to the decision source.
    Every account of a batch sees the same ticker block.
    """
    prices = {t.symbol: t.price for t in tickers}

    lines = ["Market (24h):"]
    for t in tickers:
        lines.append(
            f"- {t.symbol}: price {t.price:g}, change {t.price_change_percent:+.2f}%, "
            f"high {t.high_24h:g}, low {t.low_24h:g}, quote volume {t.quote_volume:,.0f}"
        )

    lines.append("")
    lines.append(f"Your cash balance: {portfolio.cash_balance:.2f} USDT")

    if not portfolio.holdings:
        lines.append("Your holdings: none")
        return "\n".join(lines)

    lines.append("Your holdings:")
    for h in portfolio.holdings:
        price = prices.get(h.symbol)
        if price is None:
            lines.append(
                f"- {h.symbol} x{h.leverage}: qty {h.quantity:g}, avg cost {h.avg_cost:g}"
            )
            continue
        value = leveraged_market_value(h.quantity, h.avg_cost, price, h.leverage)
        lines.append(
            f"- {h.symbol} x{h.leverage}: qty {h.quantity:g}, avg cost {h.avg_cost:g}, "
            f"value {value:.2f}"
        )
    return "\n".join(lines)
